"""Normalized fio job records decoded from JSON result documents."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from fioplot.errors import IOFailure, MalformedInput
from fioplot.raw.document import decode_document

logger = logging.getLogger(__name__)

P99_LABEL = "99.000000"
READ_MODES = frozenset({"read", "randread"})


class Direction(str, Enum):
    """I/O direction of a metrics block in fio output."""

    READ = "read"
    WRITE = "write"
    TRIM = "trim"


def direction_for_mode(rw: str) -> Direction:
    """Direction whose metrics are authoritative for a job's `rw` mode."""
    return Direction.READ if rw in READ_MODES else Direction.WRITE


def _as_int(raw: Mapping[str, Any], key: str) -> int:
    v = raw.get(key)
    if v is None:
        return 0
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise MalformedInput(f"Field {key!r} must be a number, got {v!r}")
    return int(v)


def _as_float(raw: Mapping[str, Any], key: str) -> float:
    v = raw.get(key)
    if v is None:
        return 0.0
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise MalformedInput(f"Field {key!r} must be a number, got {v!r}")
    return float(v)


def _as_str(raw: Mapping[str, Any], key: str) -> str:
    v = raw.get(key)
    if v is None:
        return ""
    if isinstance(v, (dict, list)):
        raise MalformedInput(f"Field {key!r} must be a scalar, got {type(v).__name__}")
    return str(v)


def _as_object(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    v = raw.get(key)
    if v is None:
        return {}
    if not isinstance(v, dict):
        raise MalformedInput(f"Field {key!r} must be an object, got {type(v).__name__}")
    return v


@dataclass(frozen=True)
class LatencyStats:
    """Latency distribution in nanoseconds.

    Percentile labels are kept verbatim (e.g. `"99.000000"`) so lookups
    never depend on float formatting.
    """

    min: int = 0
    max: int = 0
    mean: float = 0.0
    stddev: float = 0.0
    percentile: Mapping[str, int] = field(default_factory=dict)

    def p(self, label: str) -> int:
        """Percentile value for an exact label, 0 when absent."""
        return self.percentile.get(label, 0)

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> LatencyStats:
        pct = _as_object(raw, "percentile")
        return cls(
            min=_as_int(raw, "min"),
            max=_as_int(raw, "max"),
            mean=_as_float(raw, "mean"),
            stddev=_as_float(raw, "stddev"),
            percentile={str(k): _as_int(pct, k) for k in pct},
        )


@dataclass(frozen=True)
class OperationMetrics:
    """Metrics for one I/O direction of a job.

    Attributes:
        bw: Average bandwidth in KiB/s.
        bw_min: Minimum sampled bandwidth in KiB/s.
        bw_max: Maximum sampled bandwidth in KiB/s.
        bw_mean: Mean sampled bandwidth in KiB/s.
        bw_dev: Standard deviation of sampled bandwidth.
        bw_samples: Number of bandwidth samples.
        iops: Average IOPS.
        iops_min: Minimum sampled IOPS.
        iops_max: Maximum sampled IOPS.
        iops_mean: Mean sampled IOPS.
        iops_stddev: Standard deviation of sampled IOPS.
        iops_samples: Number of IOPS samples.
        io_kbytes: Total KiB transferred.
        runtime: Direction runtime in milliseconds.
        total_ios: Number of completed I/Os.
        slat: Submission latency.
        clat: Completion latency.
        lat: Total latency.
    """

    bw: int = 0
    bw_min: int = 0
    bw_max: int = 0
    bw_mean: float = 0.0
    bw_dev: float = 0.0
    bw_samples: int = 0
    iops: float = 0.0
    iops_min: int = 0
    iops_max: int = 0
    iops_mean: float = 0.0
    iops_stddev: float = 0.0
    iops_samples: int = 0
    io_kbytes: int = 0
    runtime: int = 0
    total_ios: int = 0
    slat: LatencyStats = field(default_factory=LatencyStats)
    clat: LatencyStats = field(default_factory=LatencyStats)
    lat: LatencyStats = field(default_factory=LatencyStats)

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> OperationMetrics:
        return cls(
            bw=_as_int(raw, "bw"),
            bw_min=_as_int(raw, "bw_min"),
            bw_max=_as_int(raw, "bw_max"),
            bw_mean=_as_float(raw, "bw_mean"),
            bw_dev=_as_float(raw, "bw_dev"),
            bw_samples=_as_int(raw, "bw_samples"),
            iops=_as_float(raw, "iops"),
            iops_min=_as_int(raw, "iops_min"),
            iops_max=_as_int(raw, "iops_max"),
            iops_mean=_as_float(raw, "iops_mean"),
            iops_stddev=_as_float(raw, "iops_stddev"),
            iops_samples=_as_int(raw, "iops_samples"),
            io_kbytes=_as_int(raw, "io_kbytes"),
            runtime=_as_int(raw, "runtime"),
            total_ios=_as_int(raw, "total_ios"),
            slat=LatencyStats.from_json(_as_object(raw, "slat_ns")),
            clat=LatencyStats.from_json(_as_object(raw, "clat_ns")),
            lat=LatencyStats.from_json(_as_object(raw, "lat_ns")),
        )


@dataclass(frozen=True)
class JobOptions:
    """Subset of a job's `job options` block used for identity and log lookup."""

    rw: str = ""
    bs: str = ""
    iodepth: str = ""
    numjobs: str = ""
    bw_log: str = ""
    iops_log: str = ""
    lat_log: str = ""

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> JobOptions:
        return cls(
            rw=_as_str(raw, "rw"),
            bs=_as_str(raw, "bs"),
            iodepth=_as_str(raw, "iodepth"),
            numjobs=_as_str(raw, "numjobs"),
            bw_log=_as_str(raw, "write_bw_log"),
            iops_log=_as_str(raw, "write_iops_log"),
            lat_log=_as_str(raw, "write_lat_log"),
        )


@dataclass(frozen=True)
class JobResult:
    """A single fio job within a result document.

    Attributes:
        job_name: Job name from the fio job file.
        group_id: Reporting group id.
        options: Job options relevant to identity and logging.
        operations: Metrics keyed by direction.
        error: fio error code for the job (0 on success).
        job_runtime: Job runtime in milliseconds.
        usr_cpu: User CPU percentage.
        sys_cpu: System CPU percentage.
    """

    job_name: str
    group_id: int
    options: JobOptions
    operations: Mapping[Direction, OperationMetrics]
    error: int = 0
    job_runtime: int = 0
    usr_cpu: float = 0.0
    sys_cpu: float = 0.0

    @property
    def pattern_key(self) -> str:
        """Cross-run identity: access mode, block size, queue depth, worker count."""
        o = self.options
        return f"{o.rw}-{o.bs} d={o.iodepth} j={o.numjobs}"

    @property
    def direction(self) -> Direction:
        return direction_for_mode(self.options.rw)

    @property
    def selected(self) -> OperationMetrics:
        """Metrics of the direction selected by the job's `rw` mode."""
        return self.operations.get(self.direction, OperationMetrics())

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> JobResult:
        operations = {
            d: OperationMetrics.from_json(_as_object(raw, d.value)) for d in Direction
        }
        return cls(
            job_name=_as_str(raw, "jobname"),
            group_id=_as_int(raw, "groupid"),
            options=JobOptions.from_json(_as_object(raw, "job options")),
            operations=operations,
            error=_as_int(raw, "error"),
            job_runtime=_as_int(raw, "job_runtime"),
            usr_cpu=_as_float(raw, "usr_cpu"),
            sys_cpu=_as_float(raw, "sys_cpu"),
        )


@dataclass(frozen=True)
class RunTable:
    """One parsed result document.

    Attributes:
        run_label: Source file name without its extension.
        source_path: Path of the source document.
        jobs: Jobs in document order.
        fio_version: Value of `fio version`.
        timestamp: Unix timestamp of the run.
        time: Human-readable run time.
        global_options: The `global options` block as strings.
    """

    run_label: str
    source_path: str
    jobs: tuple[JobResult, ...]
    fio_version: str = ""
    timestamp: int = 0
    time: str = ""
    global_options: Mapping[str, str] = field(default_factory=dict)

    @property
    def pattern_keys(self) -> list[str]:
        return [j.pattern_key for j in self.jobs]

    def __len__(self) -> int:
        return len(self.jobs)


def run_label_for(source: str | Path) -> str:
    """Run label for a source path: base name with its extension removed."""
    return Path(source).stem


def parse_result_document(data: bytes, source: str | Path) -> RunTable:
    """Decode raw fio output bytes into a `RunTable`.

    Unknown fields are ignored and missing optional fields default to zero
    values. A document without jobs yields an empty `jobs` tuple.

    Args:
        data: Raw file contents, possibly wrapped in non-JSON noise.
        source: Path the bytes came from; determines the run label.

    Raises:
        MalformedInput: If no JSON object can be located or decoded, or if
            a field has the wrong JSON type.
    """
    doc = decode_document(data)
    raw_jobs = doc.get("jobs")
    if raw_jobs is None:
        raw_jobs = []
    if not isinstance(raw_jobs, list):
        raise MalformedInput(f"Field 'jobs' must be a list in {source}")

    jobs: list[JobResult] = []
    for i, raw in enumerate(raw_jobs):
        if not isinstance(raw, dict):
            raise MalformedInput(f"jobs[{i}] is not an object in {source}")
        jobs.append(JobResult.from_json(raw))

    global_raw = _as_object(doc, "global options")
    run = RunTable(
        run_label=run_label_for(source),
        source_path=str(source),
        jobs=tuple(jobs),
        fio_version=_as_str(doc, "fio version"),
        timestamp=_as_int(doc, "timestamp"),
        time=_as_str(doc, "time"),
        global_options={str(k): _as_str(global_raw, k) for k in global_raw},
    )
    logger.debug("Parsed %d jobs from %s", len(jobs), source)
    return run


def load_result_file(path: str | Path) -> RunTable:
    """Read and parse one result document from disk.

    Raises:
        IOFailure: If the file cannot be read.
        MalformedInput: If the contents cannot be decoded.
    """
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as exc:
        raise IOFailure(f"Could not read result file {p}: {exc}", p) from exc
    return parse_result_document(data, p)
