"""End-to-end comparison report: CSV tables, workbook, bar and log charts.

Layout of a results directory:

    <name>/
        csv-tables/<label>.csv
        <name>.xlsx
        bar-charts/<file_stem>.<fmt>
        bar-charts/<file_stem>/<pattern>.<fmt>
        log-graphs/<label>-log-graphs/<kind>/<kind>-<prefix>.<fmt>
        merged-logs/<label>/<name>.log        (with keep_merged_logs)
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from fioplot.config import ReportConfig
from fioplot.errors import FioplotError, IOFailure, NoComparableData
from fioplot.raw.path_parser import find_log_dirs
from fioplot.records.pivots import MetricKind, PivotedMetric
from fioplot.records.runs import LoadFailure, RunTables
from fioplot.records.tables import write_csv_table
from fioplot.records.timelines import collect_job_logs, merge_log_directory
from fioplot.render.charts import (
    log_chart_info,
    render_bar_chart,
    render_log_chart,
    render_pattern_bar_charts,
)
from fioplot.render.workbook import write_workbook

logger = logging.getLogger(__name__)


@dataclass
class ReportResult:
    """Files produced by `build_report` and the problems met on the way.

    Attributes:
        out_dir: The results directory.
        runs: Runs the report was built from.
        csv_paths: One CSV table per run.
        workbook_path: The workbook, if it was written.
        chart_paths: Bar-chart images.
        log_chart_paths: Log line-chart images.
        errors: Rendering errors that were logged instead of raised.
    """

    out_dir: Path
    runs: RunTables
    csv_paths: list[Path] = field(default_factory=list)
    workbook_path: Path | None = None
    chart_paths: list[Path] = field(default_factory=list)
    log_chart_paths: list[Path] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def failures(self) -> tuple[LoadFailure, ...]:
        """Result documents skipped while loading."""
        return self.runs.failures


def make_results_dir(output_root: str | Path, name: str) -> Path:
    """Create `output_root/name`, appending `-1`, `-2`, ... if it exists.

    Raises:
        IOFailure: If the directory cannot be created.
    """
    root = Path(output_root)
    candidate = root / name
    n = 0
    while candidate.exists():
        n += 1
        candidate = root / f"{name}-{n}"
    try:
        candidate.mkdir(parents=True)
    except OSError as exc:
        raise IOFailure(
            f"Could not create results directory {candidate}: {exc}", candidate
        ) from exc
    if n:
        logger.warning("Results directory %s exists; using %s", root / name, candidate)
    return candidate


def ensure_dir(path: Path) -> Path:
    """Create `path` and any missing parents.

    Raises:
        IOFailure: If the directory cannot be created.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise IOFailure(f"Could not create directory {path}: {exc}", path) from exc
    return path


def _write_csv_tables(runs: RunTables, out_dir: Path) -> list[Path]:
    csv_dir = ensure_dir(out_dir / "csv-tables")
    return [write_csv_table(t, csv_dir / f"{t.run_label}.csv") for t in runs.row_tables()]


def _render_bar_charts(
    pivots_by_kind: dict[MetricKind, list[PivotedMetric]],
    config: ReportConfig,
    out_dir: Path,
    result: ReportResult,
) -> None:
    try:
        chart_dir = ensure_dir(out_dir / "bar-charts")
    except IOFailure as exc:
        logger.error("Failed to create bar chart directory", exc_info=True)
        result.errors.append(f"bar charts: {exc}")
        return
    for kind, pivots in pivots_by_kind.items():
        if not pivots:
            continue
        stem = pivots[0].file_stem
        try:
            result.chart_paths.append(
                render_bar_chart(
                    pivots,
                    chart_dir / f"{stem}.{config.img_format}",
                    description=config.description,
                )
            )
            result.chart_paths.extend(
                render_pattern_bar_charts(
                    pivots,
                    chart_dir,
                    description=config.description,
                    img_format=config.img_format,
                )
            )
        except (OSError, ValueError) as exc:
            logger.error("Failed to render %s bar charts", kind.value, exc_info=True)
            result.errors.append(f"bar chart {stem}: {exc}")


def _render_log_graphs(
    runs: RunTables,
    config: ReportConfig,
    out_dir: Path,
    result: ReportResult,
) -> None:
    by_label = {r.run_label: r for r in runs}
    log_dirs = find_log_dirs(config.catalog)
    if not log_dirs:
        logger.warning("No log directories found in %s", config.catalog)
    for label, log_dir in log_dirs.items():
        run = by_label.get(label)
        if run is None:
            logger.warning("Log directory %s has no matching result document", log_dir)
            continue
        try:
            merged = merge_log_directory(log_dir)
            if config.keep_merged_logs:
                keep_dir = ensure_dir(out_dir / "merged-logs" / label)
                for m in merged:
                    m.write(keep_dir / f"{m.name}.log")
            graph_dir = out_dir / "log-graphs" / f"{label}-log-graphs"
            for job_log in collect_job_logs(run, merged, strict=False):
                info = log_chart_info(run, job_log, config.description)
                kind_dir = ensure_dir(graph_dir / job_log.kind.value)
                result.log_chart_paths.append(
                    render_log_chart(
                        job_log, info, kind_dir / f"{info.image_name}.{config.img_format}"
                    )
                )
        except (FioplotError, OSError, ValueError) as exc:
            logger.error("Failed to render log graphs for %s", label, exc_info=True)
            result.errors.append(f"log graphs {label}: {exc}")


def build_report(config: ReportConfig) -> ReportResult:
    """Build a comparison report for every result document in the catalog.

    CSV tables are written before pattern matching, so they survive a
    batch without common patterns. Workbook and chart failures are logged
    and recorded on the result.

    Raises:
        NoComparableData: If no document parsed, or no pattern is common to
            all runs.
        IOFailure: If the results directory or a CSV table cannot be written.
    """
    out_dir = make_results_dir(config.output_root, config.name)
    try:
        runs = RunTables.from_directory(config.catalog)
    except (FileNotFoundError, FioplotError):
        shutil.rmtree(out_dir)
        raise
    if not runs:
        shutil.rmtree(out_dir)
        raise NoComparableData(f"No result documents could be parsed in {config.catalog}")

    result = ReportResult(out_dir=out_dir, runs=runs)
    result.csv_paths = _write_csv_tables(runs, out_dir)
    logger.info("Wrote %d CSV tables to %s", len(result.csv_paths), out_dir / "csv-tables")

    try:
        pivots_by_kind = runs.pivots(config.metrics)
    except NoComparableData:
        logger.error("Cannot compare runs %s", runs.labels, exc_info=True)
        raise

    try:
        result.workbook_path = write_workbook(pivots_by_kind, out_dir / f"{config.name}.xlsx")
    except (IOFailure, ValueError) as exc:
        logger.error("Failed to write workbook", exc_info=True)
        result.errors.append(f"workbook: {exc}")

    _render_bar_charts(pivots_by_kind, config, out_dir, result)
    if config.log_graphs:
        _render_log_graphs(runs, config, out_dir, result)

    logger.info(
        "Report %s: %d runs, %d charts, %d log charts, %d errors",
        out_dir,
        len(runs),
        len(result.chart_paths),
        len(result.log_chart_paths),
        len(result.errors),
    )
    return result
