"""Normalized fio result records, row tables, pivots and log series."""

from fioplot.records.pivots import MetricKind, PivotedMetric
from fioplot.records.results import JobResult, RunTable
from fioplot.records.runs import LoadFailure, RunTables
from fioplot.records.tables import RowTable
from fioplot.records.timelines import LogKind, MergedSeries

__all__ = [
    "JobResult",
    "LoadFailure",
    "LogKind",
    "MergedSeries",
    "MetricKind",
    "PivotedMetric",
    "RowTable",
    "RunTable",
    "RunTables",
]
