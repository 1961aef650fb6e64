"""Flat row tables projected from parsed runs, and their CSV export."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from fioplot.errors import IOFailure
from fioplot.records.results import P99_LABEL, RunTable

logger = logging.getLogger(__name__)

KIB_PER_MIB = 1024
NS_PER_MS = 1_000_000
# Calibration applied when MiB/s values are displayed as MB/s.
CORRECTION_FACTOR = 1.049

ROW_COLUMNS = [
    "job_name",
    "group_id",
    "pattern",
    "block_size",
    "io_depth",
    "jobs",
    "bw_mib_s",
    "bw_min_mib_s",
    "bw_max_mib_s",
    "iops_min",
    "iops_max",
    "lat_min_ms",
    "lat_max_ms",
    "lat_stddev_ms",
    "clat_p99_ms",
    "pattern_key",
]

CSV_HEADERS = {
    "job_name": "Job Name",
    "group_id": "Group ID",
    "pattern": "Pattern",
    "block_size": "Block Size",
    "io_depth": "IO Depth",
    "jobs": "Jobs",
    "bw_mib_s": "MB/s",
    "bw_min_mib_s": "BWMim (MB/s)",
    "bw_max_mib_s": "BWMax (MB/s)",
    "iops_min": "IOPS min",
    "iops_max": "IOPS max",
    "lat_min_ms": "Latency Min (ms)",
    "lat_max_ms": "Latency Max (ms)",
    "lat_stddev_ms": "Latency stddev (ms)",
    "clat_p99_ms": "cLatency p99 (ms)",
}

_BW_COLUMNS = ("bw_mib_s", "bw_min_mib_s", "bw_max_mib_s")


@dataclass(frozen=True)
class RowTable:
    """Projected rows of one run.

    Attributes:
        run_label: Label of the source run.
        source_path: Path of the source document.
        rows: One row per job with the columns in `ROW_COLUMNS`.
    """

    run_label: str
    source_path: str
    rows: pd.DataFrame

    @property
    def pattern_keys(self) -> set[str]:
        return set(self.rows["pattern_key"])

    def __len__(self) -> int:
        return len(self.rows)


def project_rows(run: RunTable) -> RowTable:
    """Flatten a run into one row per job using each job's selected direction.

    Bandwidth columns are MiB/s (KiB/s / 1024); latency columns are
    milliseconds. A missing p99 percentile yields 0.
    """
    records: list[dict[str, object]] = []
    for job in run.jobs:
        m = job.selected
        o = job.options
        records.append(
            {
                "job_name": job.job_name,
                "group_id": job.group_id,
                "pattern": o.rw,
                "block_size": o.bs,
                "io_depth": o.iodepth,
                "jobs": o.numjobs,
                "bw_mib_s": m.bw / KIB_PER_MIB,
                "bw_min_mib_s": m.bw_min / KIB_PER_MIB,
                "bw_max_mib_s": m.bw_max / KIB_PER_MIB,
                "iops_min": m.iops_min,
                "iops_max": m.iops_max,
                "lat_min_ms": m.lat.min / NS_PER_MS,
                "lat_max_ms": m.lat.max / NS_PER_MS,
                "lat_stddev_ms": m.lat.stddev / NS_PER_MS,
                "clat_p99_ms": m.clat.p(P99_LABEL) / NS_PER_MS,
                "pattern_key": job.pattern_key,
            }
        )
    rows = pd.DataFrame(records, columns=ROW_COLUMNS)
    return RowTable(run_label=run.run_label, source_path=run.source_path, rows=rows)


def round_half_away(x: float) -> float:
    """Round to the nearest integer, ties away from zero."""
    t = math.trunc(x)
    if abs(x - t) >= 0.5:
        return t + math.copysign(1.0, x)
    return float(t)


def to_mbps(mib_s: float) -> float:
    """MiB/s rounded to two decimals (ties away from zero), then scaled to MB/s."""
    return round_half_away(mib_s * 100) / 100 * CORRECTION_FACTOR


def to_report_frame(table: RowTable) -> pd.DataFrame:
    """Rows with human-readable headers and bandwidth in MB/s."""
    df = table.rows.drop(columns=["pattern_key"]).copy()
    for col in _BW_COLUMNS:
        df[col] = df[col].map(to_mbps)
    return df.rename(columns=CSV_HEADERS)


def write_csv_table(table: RowTable, path: str | Path) -> Path:
    """Write a run's rows as a CSV table.

    Raises:
        IOFailure: If the file cannot be written.
    """
    p = Path(path)
    try:
        to_report_frame(table).to_csv(p, index=False, float_format="%.2f")
    except OSError as exc:
        raise IOFailure(f"Could not create CSV file {p}: {exc}", p) from exc
    logger.debug("Wrote %d rows to %s", len(table), p)
    return p
