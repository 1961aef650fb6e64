"""Bar and line chart rendering with matplotlib.

Figures are built with `matplotlib.figure.Figure` directly so rendering
never depends on the pyplot backend or global figure state.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from matplotlib.figure import Figure

from fioplot.records.pivots import PivotedMetric
from fioplot.records.results import RunTable
from fioplot.records.timelines import JobLog, LogKind, series_points

logger = logging.getLogger(__name__)

_LOG_Y_NAMES = {
    LogKind.BW: "MB/s",
    LogKind.IOPS: "IOPS",
    LogKind.LAT: "Nanoseconds",
    LogKind.CLAT: "Nanoseconds",
    LogKind.SLAT: "Nanoseconds",
}
_LOG_TITLES = {
    LogKind.BW: "Bandwidth",
    LogKind.IOPS: "IOPS",
    LogKind.LAT: "Total latency",
    LogKind.CLAT: "Completion latency",
    LogKind.SLAT: "Submission latency",
}


def _canvas_size(n_patterns: int) -> tuple[float, float]:
    if n_patterns > 100:
        return (110.0, 12.0)
    if n_patterns > 60:
        return (55.0, 12.0)
    if n_patterns > 22:
        return (30.0, 7.0)
    return (10.0, 7.0)


def _run_labels(pivots: Sequence[PivotedMetric]) -> list[str]:
    labels: list[str] = []
    for pm in pivots:
        for label in pm.labels:
            if label not in labels:
                labels.append(label)
    return labels


def _safe_name(name: str) -> str:
    return name.replace("/", "_").replace("\\", "_")


def render_bar_chart(
    pivots: Sequence[PivotedMetric],
    path: str | Path,
    *,
    description: str = "",
) -> Path:
    """Render one grouped bar chart covering every pattern of a metric.

    Each run label gets one bar per pattern; a label contributing several
    rows to a pattern is charted with its first value.

    Raises:
        ValueError: If `pivots` is empty.
    """
    if not pivots:
        raise ValueError("No pivots to chart")
    labels = _run_labels(pivots)
    x = np.arange(len(pivots))
    width = 0.8 / max(len(labels), 1)

    fig = Figure(figsize=_canvas_size(len(pivots)))
    ax = fig.subplots()
    for i, label in enumerate(labels):
        heights = []
        for pm in pivots:
            first = dict(reversed(pm.points))
            heights.append(first.get(label, np.nan))
        ax.bar(x + (i - (len(labels) - 1) / 2) * width, heights, width, label=label)

    ax.set_title(pivots[0].file_stem, fontsize=20)
    ax.set_ylabel(pivots[0].y_label)
    ax.set_xlabel(description, fontsize=10)
    ax.set_xticks(x)
    ax.set_xticklabels([pm.pattern_key for pm in pivots], rotation=55, ha="right")
    ax.grid(True, axis="y", alpha=0.4)
    ax.legend(loc="upper right")
    fig.tight_layout()

    p = Path(path)
    fig.savefig(p)
    logger.debug("Wrote bar chart %s", p)
    return p


def render_pattern_bar_charts(
    pivots: Sequence[PivotedMetric],
    out_dir: str | Path,
    *,
    description: str = "",
    img_format: str = "png",
) -> list[Path]:
    """Render one small bar chart per pattern into `out_dir/<file_stem>/`."""
    if not pivots:
        return []
    target = Path(out_dir) / pivots[0].file_stem
    target.mkdir(parents=True, exist_ok=True)
    out: list[Path] = []
    for pm in pivots:
        fig = Figure(figsize=(4.0, 7.0))
        ax = fig.subplots()
        for i, (label, value) in enumerate(pm.points):
            ax.bar(i, value, 0.8, label=label, color=f"C{i % 10}")
        ax.set_title(pm.file_stem)
        ax.set_ylabel(pm.y_label)
        ax.set_xlabel(description, fontsize=8)
        ax.set_xticks([])
        ax.grid(True, axis="y", alpha=0.4)
        ax.legend(loc="upper center", bbox_to_anchor=(0.5, -0.08), fontsize=8)
        fig.suptitle(pm.pattern_key, fontsize=9)
        fig.tight_layout()
        p = target / f"{_safe_name(pm.pattern_key)}.{img_format}"
        fig.savefig(p)
        out.append(p)
    logger.debug("Wrote %d pattern charts to %s", len(out), target)
    return out


@dataclass(frozen=True)
class LogChartInfo:
    """Text shown on a log line chart.

    Attributes:
        header: Chart title.
        y_name: Y-axis label.
        image_name: File name stem of the rendered image.
        lines: Footer lines, most important first.
    """

    header: str
    y_name: str
    image_name: str
    lines: tuple[str, ...]


def log_chart_info(run: RunTable, job_log: JobLog, description: str = "") -> LogChartInfo:
    """Describe a merged job log for charting."""
    job = job_log.job
    kind = job_log.kind
    m = job.selected
    if kind is LogKind.BW:
        prefix = job.options.bw_log
        stats = (
            f"bw (KiB/s):   min={m.bw_min},   max={m.bw_max},   avg={m.bw_mean:.2f},   "
            f"stdev={m.bw_dev:.2f},   samples={m.bw_samples}"
        )
    elif kind is LogKind.IOPS:
        prefix = job.options.iops_log
        stats = (
            f"IOPS:   min={m.iops_min},   max={m.iops_max},   avg={m.iops_mean:.2f},   "
            f"stdev={m.iops_stddev:.2f},   samples={m.iops_samples}"
        )
    else:
        prefix = job.options.lat_log
        lat = {LogKind.LAT: m.lat, LogKind.CLAT: m.clat, LogKind.SLAT: m.slat}[kind]
        stats = (
            f"{kind.value} (nsec):   min={lat.min},   max={lat.max},   "
            f"avg={lat.mean:.2f},   stdev={lat.stddev:.2f}"
        )

    o = job.options
    g = run.global_options
    return LogChartInfo(
        header=f"{_LOG_TITLES[kind]} for {job.job_name}  [test: {run.run_label}]",
        y_name=_LOG_Y_NAMES[kind],
        image_name=f"{kind.value}-{Path(prefix).name}",
        lines=(
            stats,
            f"job name: {job.job_name}   |   bs: {o.bs}   |   iodepth: {o.iodepth}   |   "
            f"num jobs: {o.numjobs}   |   rw: {o.rw}   |   group ID: {job.group_id}",
            f"Date: {run.time}   |   version: {run.fio_version}   |   "
            f"IO engine: {g.get('ioengine', '')}   |   "
            f"LogAvgMsec={g.get('log_avg_msec', '')}   |   size={g.get('size', '')}   |   "
            f"direct={g.get('direct', '')}",
            f"Description: {description}",
        ),
    )


def render_log_chart(
    job_log: JobLog,
    info: LogChartInfo,
    path: str | Path,
) -> Path:
    """Render a merged log series with its moving average."""
    pts = series_points(job_log.series, job_log.kind)
    fig = Figure(figsize=(19.2, 12.8))
    ax = fig.subplots()
    ax.plot(pts["time_s"], pts["value"], label=info.y_name, linewidth=1.0)
    ax.plot(pts["time_s"], pts["average"], label="Average", color="red", linewidth=1.5)
    ax.set_title(info.header, fontsize=24)
    ax.set_ylabel(info.y_name, fontsize=16)
    ax.set_xlabel("Time line in seconds", fontsize=16)
    ax.grid(True, alpha=0.4)
    ax.legend(loc="upper left", bbox_to_anchor=(0.0, -0.08))
    fig.subplots_adjust(bottom=0.25)
    for i, line in enumerate(info.lines):
        fig.text(0.22, 0.15 - i * 0.03, line, fontsize=14 if i < 2 else 12)

    p = Path(path)
    fig.savefig(p)
    logger.debug("Wrote log chart %s", p)
    return p
