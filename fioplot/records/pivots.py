"""Cross-run pattern matching and per-metric pivots."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

import pandas as pd

from fioplot.errors import NoComparableData
from fioplot.records.tables import CORRECTION_FACTOR, RowTable, round_half_away

logger = logging.getLogger(__name__)


class MetricKind(str, Enum):
    """Metrics that can be compared across runs."""

    PERFORMANCE = "performance"
    IOPS_MIN = "iops_min"
    IOPS_MAX = "iops_max"
    BW_MIN = "bw_min"
    BW_MAX = "bw_max"
    LAT_MIN = "lat_min"
    LAT_MAX = "lat_max"
    LAT_STDDEV = "lat_stddev"
    LAT_P99 = "lat_p99"


@dataclass(frozen=True)
class MetricSpec:
    """How a metric kind is read from row tables and labeled.

    Attributes:
        column: Row-table column holding the source value.
        y_label: Axis label for charts.
        file_stem: Canonical file / sheet name stem.
        scaled: Whether the value is rounded and scaled to MB/s.
    """

    column: str
    y_label: str
    file_stem: str
    scaled: bool = False


METRIC_SPECS: dict[MetricKind, MetricSpec] = {
    MetricKind.PERFORMANCE: MetricSpec("bw_mib_s", "Mb/s", "Performance", scaled=True),
    MetricKind.IOPS_MIN: MetricSpec("iops_min", "IOPS min", "IOPS_min_value"),
    MetricKind.IOPS_MAX: MetricSpec("iops_max", "IOPS max", "IOPS_max_value"),
    MetricKind.BW_MIN: MetricSpec("bw_min_mib_s", "BW Min (MB/s)", "BW_min_value", scaled=True),
    MetricKind.BW_MAX: MetricSpec("bw_max_mib_s", "BW Max (MB/s)", "BW_max_value", scaled=True),
    MetricKind.LAT_MIN: MetricSpec("lat_min_ms", "Latency min (ms)", "Latency_min_value"),
    MetricKind.LAT_MAX: MetricSpec("lat_max_ms", "Latency max (ms)", "Latency_max_value"),
    MetricKind.LAT_STDDEV: MetricSpec("lat_stddev_ms", "Latency stddev (ms)", "Latency_stdev"),
    MetricKind.LAT_P99: MetricSpec("clat_p99_ms", "cLatency p99 (ms)", "Latency_p99"),
}


def metric_value(raw: float, kind: MetricKind) -> float:
    """Convert a row-table value into the charted value for `kind`."""
    if METRIC_SPECS[kind].scaled:
        return round_half_away(float(raw)) * CORRECTION_FACTOR
    return float(raw)


@dataclass(frozen=True)
class PivotedMetric:
    """Values of one metric for one pattern, one point per matching run row.

    Attributes:
        kind: Metric kind.
        pattern_key: Pattern the values belong to.
        points: `(run_label, value)` pairs in run load order.
        y_label: Axis label for the metric.
        file_stem: Canonical file / sheet name stem for the metric.
    """

    kind: MetricKind
    pattern_key: str
    points: tuple[tuple[str, float], ...]
    y_label: str
    file_stem: str

    @property
    def labels(self) -> list[str]:
        return [label for label, _ in self.points]

    @property
    def values(self) -> list[float]:
        return [v for _, v in self.points]


def common_patterns(tables: Sequence[RowTable]) -> set[str]:
    """Pattern keys present in every table of the batch.

    Raises:
        NoComparableData: If the batch is empty or no key is shared by all
            tables.
    """
    if not tables:
        raise NoComparableData("No runs to compare")
    counts: Counter[str] = Counter()
    for t in tables:
        counts.update(t.pattern_keys)
    out = {key for key, n in counts.items() if n == len(tables)}
    if not out:
        raise NoComparableData(
            f"No job pattern is common to all {len(tables)} runs: "
            f"{', '.join(t.run_label for t in tables)}"
        )
    logger.info(
        "Found %d common patterns across %d runs (%d distinct)",
        len(out),
        len(tables),
        len(counts),
    )
    return out


def build_pivot(
    patterns: Iterable[str],
    tables: Sequence[RowTable],
    kind: MetricKind | str,
) -> list[PivotedMetric]:
    """Build one `PivotedMetric` per pattern for a metric kind.

    Patterns are emitted in sorted order; within a pattern, points follow
    the order of `tables` and of rows within each table.

    Raises:
        ValueError: If `kind` is not a known metric kind.
    """
    kind = MetricKind(kind)
    spec = METRIC_SPECS[kind]
    out: list[PivotedMetric] = []
    for pattern in sorted(patterns):
        points: list[tuple[str, float]] = []
        for t in tables:
            matched = t.rows.loc[t.rows["pattern_key"] == pattern, spec.column]
            points.extend((t.run_label, metric_value(v, kind)) for v in matched)
        out.append(
            PivotedMetric(
                kind=kind,
                pattern_key=pattern,
                points=tuple(points),
                y_label=spec.y_label,
                file_stem=spec.file_stem,
            )
        )
    return out


def build_all_pivots(
    tables: Sequence[RowTable],
    kinds: Iterable[MetricKind | str] = tuple(MetricKind),
) -> dict[MetricKind, list[PivotedMetric]]:
    """Pivot every requested metric over the batch's common patterns."""
    patterns = common_patterns(tables)
    return {MetricKind(k): build_pivot(patterns, tables, k) for k in kinds}


def pivot_frame(pivots: Sequence[PivotedMetric]) -> pd.DataFrame:
    """Tabulate pivots: one row per pattern, one column per run label.

    A run contributing several rows to the same pattern gets numbered
    columns (`label`, `label (2)`, ...).
    """
    records: list[dict[str, float]] = []
    columns: list[str] = []
    for pm in pivots:
        seen: Counter[str] = Counter()
        rec: dict[str, float] = {}
        for label, value in pm.points:
            seen[label] += 1
            col = label if seen[label] == 1 else f"{label} ({seen[label]})"
            rec[col] = value
            if col not in columns:
                columns.append(col)
        records.append(rec)
    index = pd.Index([pm.pattern_key for pm in pivots], name="Pattern")
    return pd.DataFrame(records, index=index, columns=columns)
