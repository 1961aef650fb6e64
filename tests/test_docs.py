"""Test that Python code blocks in documentation files are runnable.

Uses pytest-examples to discover fenced Python code blocks in markdown files
and execute them.  All blocks within a single file share a chained namespace,
so a variable defined in an earlier block is visible to later blocks (matching
the sequential reading order of the README).

Each file's namespace starts with `catalog`, a small generated catalog of
fio results with one log directory, and `out_root`, a scratch directory
for reports.

Code fence annotations:
    test="skip"          Always skip (e.g. placeholder paths, shell usage).
    test="skip-remote"   Skip unless ``--run-remote`` is passed.  These blocks
                         download result catalogs from HF Hub.
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path

import matplotlib
import pytest
from pytest_examples import CodeExample, EvalExample, find_examples

matplotlib.use("Agg")

REPO_ROOT = Path(__file__).resolve().parent.parent

# Per-file namespace, keyed by resolved path.
_file_ns: dict[Path, dict] = {}


def _job(bs: str, bw: int) -> dict[str, object]:
    return {
        "jobname": f"write-{bs}",
        "job options": {
            "rw": "write",
            "bs": bs,
            "iodepth": "16",
            "numjobs": "2",
            "write_bw_log": f"write-{bs}",
        },
        "write": {
            "bw": bw,
            "bw_min": bw // 2,
            "bw_max": bw * 2,
            "lat_ns": {"min": 200_000, "max": 3_000_000, "stddev": 100_000.0},
            "clat_ns": {"percentile": {"99.000000": 2_500_000}},
        },
    }


def _make_catalog(root: Path) -> Path:
    for label, scale in (("nvme", 4), ("sata", 1)):
        doc = {
            "fio version": "fio-3.36",
            "jobs": [_job("4k", 20480 * scale), _job("64k", 102400 * scale)],
        }
        (root / f"{label}.json").write_text(json.dumps(doc))
    log_dir = root / "nvme"
    log_dir.mkdir()
    for worker in (1, 2):
        lines = "".join(f"{t * 1000}, {51200 + t}, 1, 0\n" for t in range(1, 40))
        (log_dir / f"write-64k_bw.{worker}.log").write_text(lines)
    return root


def _init_file_ns(path: Path) -> dict:
    """Build the initial namespace for a file's code blocks."""
    scratch = Path(tempfile.mkdtemp(prefix="fioplot-docs-"))
    catalog = scratch / "catalog"
    catalog.mkdir()
    return {"catalog": _make_catalog(catalog), "out_root": scratch / "reports"}


@pytest.mark.parametrize(
    "example",
    find_examples(REPO_ROOT / "README.md"),
    ids=str,
)
def test_docs(example: CodeExample, eval_example: EvalExample, request) -> None:
    settings = example.prefix_settings()

    # Ensure file namespace is initialized before any skip, so later blocks
    # in the same file still get the injected globals.
    path = example.path.resolve()
    if path not in _file_ns:
        _file_ns[path] = _init_file_ns(path)

    # Honor skip annotations.
    test_mode = settings.get("test", "")
    if test_mode == "skip":
        pytest.skip('test="skip" in code fence')
    if test_mode == "skip-remote" and not request.config.getoption("--run-remote"):
        pytest.skip("needs --run-remote")

    ns = eval_example.run(example, module_globals=dict(_file_ns[path]))
    _file_ns[path].update(ns)
