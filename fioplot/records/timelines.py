"""Time-series helpers for fio bandwidth / IOPS / latency logs.

Each fio log line is `time_ms, value, op_type, block_size[, offset]`. For
bandwidth logs the value is KiB/s, for IOPS logs an I/O count and for
latency logs nanoseconds. Jobs with `numjobs > 1` write one log per
worker; these are summed into a single series per logical log name.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import NamedTuple

import numpy as np
import pandas as pd

from fioplot.errors import IOFailure, MissingLogGroup
from fioplot.raw.path_parser import parse_log_path
from fioplot.records.results import JobResult, RunTable
from fioplot.records.tables import KIB_PER_MIB, to_mbps

logger = logging.getLogger(__name__)

SMA_PERIOD = 16


class LogKind(str, Enum):
    """Type of a fio time-series log, named by its file suffix."""

    BW = "bw"
    IOPS = "iops"
    LAT = "lat"
    CLAT = "clat"
    SLAT = "slat"


class LogSample(NamedTuple):
    """One log line: time offset in ms, value and op type (0 read, 1 write, 2 trim)."""

    time_ms: int
    value: int
    op_type: int


def _to_int(raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        return 0


def parse_log_lines(lines: Iterable[str]) -> list[LogSample]:
    """Parse fio log lines into samples.

    Blank lines are skipped. Malformed or missing numeric fields read as 0
    since fio may leave a partial last line behind.
    """
    out: list[LogSample] = []
    for line in lines:
        if not line.strip():
            continue
        fields = line.split(",")
        fields += [""] * (3 - len(fields))
        out.append(LogSample(_to_int(fields[0]), _to_int(fields[1]), _to_int(fields[2])))
    return out


def read_log(path: str | Path) -> list[LogSample]:
    """Read one fio log file.

    Raises:
        IOFailure: If the file cannot be read.
    """
    p = Path(path)
    try:
        with p.open() as f:
            return parse_log_lines(f)
    except OSError as exc:
        raise IOFailure(f"Could not open log file {p}: {exc}", p) from exc


@dataclass(frozen=True)
class MergedSeries:
    """A log series summed across parallel workers.

    Attributes:
        name: Logical log name (e.g. `"write-64k_bw"`).
        samples: Merged samples, as long as the shortest contributor.
        sources: Files that contributed to the series.
    """

    name: str
    samples: tuple[LogSample, ...]
    sources: tuple[Path, ...] = ()

    @property
    def kind(self) -> LogKind | None:
        k = parse_log_path(self.name).kind
        return LogKind(k) if k else None

    def __len__(self) -> int:
        return len(self.samples)

    def to_dataframe(self) -> pd.DataFrame:
        """Samples as a DataFrame with columns `time_ms`, `value`, `op_type`."""
        return pd.DataFrame(list(self.samples), columns=list(LogSample._fields))

    def write(self, path: str | Path) -> Path:
        """Write the series in fio's log format with a zero block-size column.

        Raises:
            IOFailure: If the file cannot be written.
        """
        p = Path(path)
        try:
            with p.open("w") as f:
                for s in self.samples:
                    f.write(f"{s.time_ms}, {s.value}, {s.op_type}, 0\n")
        except OSError as exc:
            raise IOFailure(f"Could not write merged log {p}: {exc}", p) from exc
        return p


def merge_series(
    name: str,
    series: Sequence[Sequence[LogSample]],
    sources: Sequence[Path] = (),
) -> MergedSeries:
    """Sum parallel worker series index by index.

    The first series provides time offsets and op types. The result is
    truncated to the shortest series so no values are invented for workers
    that logged fewer samples. A single series passes through unchanged.

    Raises:
        ValueError: If `series` is empty.
    """
    if not series:
        raise ValueError(f"No series to merge for {name}")
    n = min(len(s) for s in series)
    base = series[0][:n]
    total = np.zeros(n, dtype=np.int64)
    for s in series:
        total += np.fromiter((x.value for x in s[:n]), dtype=np.int64, count=n)
    samples = tuple(
        LogSample(b.time_ms, int(v), b.op_type) for b, v in zip(base, total)
    )
    if len(series) > 1:
        logger.debug(
            "Merged %d series for %s into %d samples (longest %d)",
            len(series),
            name,
            n,
            max(len(s) for s in series),
        )
    return MergedSeries(name=name, samples=samples, sources=tuple(Path(p) for p in sources))


def group_log_files(paths: Iterable[str | Path]) -> dict[str, list[Path]]:
    """Group log files by logical name (file name up to the first `.`)."""
    groups: dict[str, list[Path]] = defaultdict(list)
    for p in sorted((Path(p) for p in paths), key=lambda p: p.name):
        groups[parse_log_path(p).group].append(p)
    return dict(groups)


def merge_log_files(name: str, paths: Sequence[Path]) -> MergedSeries:
    """Read and merge one group of worker logs."""
    return merge_series(name, [read_log(p) for p in paths], sources=paths)


def merge_log_directory(log_dir: str | Path) -> list[MergedSeries]:
    """Merge every log group in a directory, ordered by logical name."""
    d = Path(log_dir)
    try:
        files = [p for p in d.iterdir() if p.is_file() and p.suffix == ".log"]
    except OSError as exc:
        raise IOFailure(f"Could not read log directory {d}: {exc}", d) from exc
    groups = group_log_files(files)
    merged = [merge_log_files(name, groups[name]) for name in sorted(groups)]
    logger.info("Merged %d log files into %d series from %s", len(files), len(merged), d)
    return merged


def expected_log_names(job: JobResult) -> dict[str, LogKind]:
    """Logical log names a job writes, keyed by name.

    `write_lat_log` produces total, completion and submission latency logs.
    """
    out: dict[str, LogKind] = {}
    o = job.options
    if o.bw_log:
        out[f"{Path(o.bw_log).name}_bw"] = LogKind.BW
    if o.iops_log:
        out[f"{Path(o.iops_log).name}_iops"] = LogKind.IOPS
    if o.lat_log:
        prefix = Path(o.lat_log).name
        out[f"{prefix}_lat"] = LogKind.LAT
        out[f"{prefix}_clat"] = LogKind.CLAT
        out[f"{prefix}_slat"] = LogKind.SLAT
    return out


def match_log_series(run: RunTable, name: str) -> tuple[JobResult, LogKind]:
    """Find the job and log kind a merged series belongs to.

    Raises:
        MissingLogGroup: If no job in `run` declares a log with this name.
    """
    for job in run.jobs:
        kind = expected_log_names(job).get(name)
        if kind is not None:
            return job, kind
    raise MissingLogGroup(f"No job in test {run.run_label} declares log {name}")


@dataclass(frozen=True)
class JobLog:
    """A merged log series resolved to the job that wrote it."""

    job: JobResult
    kind: LogKind
    series: MergedSeries


def collect_job_logs(
    run: RunTable,
    merged: Sequence[MergedSeries],
    *,
    strict: bool = True,
) -> list[JobLog]:
    """Pair every log declared by the run's jobs with its merged series.

    Series that no job declares are logged and ignored.

    Raises:
        MissingLogGroup: If `strict` and a declared log has no series.
    """
    by_name = {m.name: m for m in merged}
    out: list[JobLog] = []
    claimed: set[str] = set()
    for job in run.jobs:
        for name, kind in expected_log_names(job).items():
            series = by_name.get(name)
            if series is None:
                msg = (
                    f"Job {job.job_name} in test {run.run_label} declares log {name} "
                    f"but no files were found"
                )
                if strict:
                    raise MissingLogGroup(msg)
                logger.warning(msg)
                continue
            claimed.add(name)
            out.append(JobLog(job=job, kind=kind, series=series))
    for name in sorted(set(by_name) - claimed):
        logger.warning("No information about log %s in test %s", name, run.run_label)
    return out


def series_points(series: MergedSeries, kind: LogKind) -> pd.DataFrame:
    """Chart-ready points: whole seconds on x, MB/s for bandwidth logs.

    Returns:
        DataFrame with columns `time_s`, `value` and `average` (a
        `SMA_PERIOD`-sample moving average of `value`).
    """
    df = series.to_dataframe()
    out = pd.DataFrame({"time_s": df["time_ms"] // 1000})
    if kind is LogKind.BW:
        out["value"] = (df["value"] / KIB_PER_MIB).map(to_mbps)
    else:
        out["value"] = df["value"].astype(float)
    out["average"] = out["value"].rolling(window=SMA_PERIOD, min_periods=1).mean()
    return out
