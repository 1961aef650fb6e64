"""Path parsing helpers for fio result catalogs.

A catalog is a directory holding `*.json` result documents and, optionally,
one subdirectory per run with that run's time-series logs:

    catalog/
        run-a.json
        run-b.json
        run-a/
            write-64k_bw.1.log
            write-64k_bw.2.log
            write-64k_iops.1.log
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

LOG_SUFFIXES = ("bw", "iops", "lat", "clat", "slat")


@dataclass(frozen=True)
class ParsedLogPath:
    """Parsed components of a fio time-series log file name.

    fio names per-worker logs `{prefix}_{kind}.{worker}.log`; logs written
    without worker splitting are named `{prefix}_{kind}.log`.

    Attributes:
        group: Logical log name shared by all workers (e.g. `"write-64k_bw"`).
        prefix: Log prefix from the job options (e.g. `"write-64k"`).
        kind: Log type suffix (`"bw"`, `"iops"`, `"lat"`, `"clat"` or `"slat"`),
            empty when the name carries no known suffix.
        worker: Worker index, or `None` for unsplit logs.
        path: The path as given.
    """

    group: str
    prefix: str
    kind: str
    worker: int | None
    path: Path


def parse_log_path(path: str | Path) -> ParsedLogPath:
    """Parse a fio log file path into its logical components."""
    p = Path(path)
    parts = p.name.split(".")
    group = parts[0]
    worker: int | None = None
    if len(parts) >= 3:
        try:
            worker = int(parts[1])
        except ValueError:
            worker = None

    prefix, sep, kind = group.rpartition("_")
    if not sep or kind not in LOG_SUFFIXES:
        prefix, kind = group, ""
    return ParsedLogPath(group=group, prefix=prefix, kind=kind, worker=worker, path=p)


def iter_result_files(catalog: str | Path, *, suffix: str = ".json") -> list[Path]:
    """List result documents directly under `catalog`, sorted by file name.

    Raises:
        FileNotFoundError: If `catalog` is not a directory.
    """
    root = Path(catalog)
    if not root.is_dir():
        raise FileNotFoundError(f"Results catalog does not exist: {root}")
    files = sorted(
        (p for p in root.iterdir() if p.is_file() and p.suffix == suffix),
        key=lambda p: p.name,
    )
    logger.debug("Found %d %s files in %s", len(files), suffix, root)
    return files


def find_log_dirs(catalog: str | Path) -> dict[str, Path]:
    """Map run labels to subdirectories of `catalog` that hold fio logs.

    A subdirectory qualifies when it is non-empty and contains only `*.log`
    files. Directories holding anything else are skipped with a warning.
    """
    root = Path(catalog)
    out: dict[str, Path] = {}
    for d in sorted(p for p in root.iterdir() if p.is_dir()):
        entries = list(d.iterdir())
        if not entries:
            continue
        stray = [e.name for e in entries if e.is_dir() or e.suffix != ".log"]
        if stray:
            logger.warning(
                "Skipping log directory %s: unrecognized entries %s", d, sorted(stray)[:5]
            )
            continue
        out[d.name] = d
    return out
