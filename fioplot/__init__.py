"""Compare fio benchmark results across runs."""

from fioplot.errors import (
    DuplicateRunLabel,
    FioplotError,
    IOFailure,
    MalformedInput,
    MissingLogGroup,
    NoComparableData,
)
from fioplot.records.pivots import MetricKind, PivotedMetric
from fioplot.records.results import RunTable
from fioplot.records.runs import LoadFailure, RunTables

__all__ = [
    "DuplicateRunLabel",
    "FioplotError",
    "IOFailure",
    "LoadFailure",
    "MalformedInput",
    "MetricKind",
    "MissingLogGroup",
    "NoComparableData",
    "PivotedMetric",
    "RunTable",
    "RunTables",
]

__version__ = "0.1.0"
