"""Tests for catalog sources and loading runs from Hugging Face snapshots."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from fioplot.records.runs import RunTables
from fioplot.sources import (
    DEFAULT_ALLOW_PATTERNS,
    HFResultsSource,
    LocalResultsSource,
    resolve_source_root,
)


def _write_json(path: Path, payload: dict[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload))


def _make_catalog(root: Path) -> None:
    job = {
        "jobname": "seq",
        "job options": {"rw": "read", "bs": "1m", "iodepth": "32", "numjobs": "1"},
        "read": {"bw": 1048576},
    }
    _write_json(root / "disk-a.json", {"jobs": [job]})
    _write_json(root / "disk-b.json", {"jobs": [job]})


class TestLocalSource:
    def test_local_root(self, tmp_path: Path) -> None:
        assert LocalResultsSource(tmp_path).local_root() == tmp_path
        assert resolve_source_root(str(tmp_path)) == tmp_path

    def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            resolve_source_root(tmp_path / "missing")


class TestHFSource:
    """HF snapshots are mocked; no network access."""

    def test_snapshot_arguments(self, tmp_path: Path) -> None:
        with patch(
            "fioplot.sources.snapshot_download", return_value=str(tmp_path)
        ) as mock:
            root = HFResultsSource("org/fio-results", revision="v1").local_root()
        assert root == tmp_path
        kwargs = mock.call_args.kwargs
        assert kwargs["repo_id"] == "org/fio-results"
        assert kwargs["repo_type"] == "dataset"
        assert kwargs["revision"] == "v1"
        assert kwargs["cache_dir"] is None
        assert kwargs["allow_patterns"] == list(DEFAULT_ALLOW_PATTERNS)

    def test_subdir_scopes_patterns_and_root(self, tmp_path: Path) -> None:
        with patch(
            "fioplot.sources.snapshot_download", return_value=str(tmp_path)
        ) as mock:
            root = HFResultsSource(
                "org/fio-results", subdir="nvme/", cache_dir=tmp_path / "cache"
            ).local_root()
        assert root == tmp_path / "nvme/"
        kwargs = mock.call_args.kwargs
        assert kwargs["cache_dir"] == str(tmp_path / "cache")
        assert kwargs["allow_patterns"] == [f"nvme/{p}" for p in DEFAULT_ALLOW_PATTERNS]

    def test_run_tables_from_source(self, tmp_path: Path) -> None:
        _make_catalog(tmp_path / "snap" / "batch1")
        with patch(
            "fioplot.sources.snapshot_download", return_value=str(tmp_path / "snap")
        ):
            runs = RunTables.from_source(HFResultsSource("org/fio-results", subdir="batch1"))
        assert runs.labels == ["disk-a", "disk-b"]
        [pm] = runs.pivot("performance")
        assert pm.pattern_key == "read-1m d=32 j=1"
        assert pm.values == pytest.approx([1024 * 1.049, 1024 * 1.049])
