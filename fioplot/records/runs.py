"""Batches of parsed fio runs with a typed collection API."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from fioplot.errors import DuplicateRunLabel, FioplotError
from fioplot.raw.path_parser import iter_result_files
from fioplot.records.pivots import (
    MetricKind,
    PivotedMetric,
    build_all_pivots,
    build_pivot,
    common_patterns,
)
from fioplot.records.results import RunTable, load_result_file
from fioplot.records.tables import ROW_COLUMNS, RowTable, project_rows
from fioplot.sources import SourceLike, resolve_source_root

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadFailure:
    """A result document that could not be loaded.

    Attributes:
        path: Path of the document.
        error: The exception raised while loading it.
    """

    path: Path
    error: FioplotError

    def __str__(self) -> str:
        return f"{self.path}: {self.error}"


def _check_labels(runs: Sequence[RunTable]) -> None:
    seen: dict[str, str] = {}
    for r in runs:
        prev = seen.get(r.run_label)
        if prev is not None:
            raise DuplicateRunLabel(
                f"Run label {r.run_label!r} is used by both {prev} and {r.source_path}"
            )
        seen[r.run_label] = r.source_path


class RunTables:
    """Immutable batch of parsed runs, in load order.

    Loading is failure tolerant: documents that cannot be parsed are
    skipped and recorded in `failures`. Run labels must be unique.

    Example:

        runs = RunTables.from_directory("/path/to/catalog")
        for f in runs.failures:
            print("skipped", f)
        perf = runs.pivot("performance")
    """

    def __init__(
        self,
        runs: Sequence[RunTable],
        *,
        failures: Sequence[LoadFailure] = (),
    ) -> None:
        self._runs = tuple(runs)
        _check_labels(self._runs)
        self._failures = tuple(failures)
        self._cache: dict[str, Any] = {}

    def _derive(self, runs: Sequence[RunTable]) -> RunTables:
        return RunTables(runs, failures=self._failures)

    @classmethod
    def from_files(cls, paths: Iterable[str | Path]) -> RunTables:
        """Load runs from explicit result document paths, in the given order."""
        runs: list[RunTable] = []
        failures: list[LoadFailure] = []
        paths = [Path(p) for p in paths]
        for p in paths:
            try:
                runs.append(load_result_file(p))
            except FioplotError as exc:
                logger.warning("Failed to load %s", p, exc_info=True)
                failures.append(LoadFailure(path=p, error=exc))
        logger.info("Loaded %d runs (%d skipped)", len(runs), len(failures))
        return cls(runs, failures=failures)

    @classmethod
    def from_directory(cls, catalog: str | Path) -> RunTables:
        """Load every `*.json` document directly under `catalog`, sorted by name."""
        files = iter_result_files(catalog)
        logger.info("Found %d result files in %s", len(files), catalog)
        return cls.from_files(files)

    @classmethod
    def from_source(cls, source: SourceLike) -> RunTables:
        """Load runs from a local catalog or a `ResultsSource`."""
        return cls.from_directory(resolve_source_root(source))

    @property
    def failures(self) -> tuple[LoadFailure, ...]:
        """Documents skipped while loading this batch."""
        return self._failures

    @property
    def labels(self) -> list[str]:
        return [r.run_label for r in self._runs]

    def label(self, *labels: str) -> RunTables:
        """Keep runs whose label is one of `labels`, preserving load order."""
        wanted = set(labels)
        return self._derive([r for r in self._runs if r.run_label in wanted])

    def where(self, predicate: Callable[[RunTable], bool]) -> RunTables:
        """Filter runs by an arbitrary predicate."""
        return self._derive([r for r in self._runs if predicate(r)])

    def row_tables(self) -> list[RowTable]:
        """Projected row table of every run, in load order."""
        key = "_row_tables"
        if key not in self._cache:
            self._cache[key] = [project_rows(r) for r in self._runs]
        return self._cache[key]

    def common_patterns(self) -> set[str]:
        """Pattern keys present in every run.

        Raises:
            NoComparableData: If no pattern is shared by all runs.
        """
        key = "_common_patterns"
        if key not in self._cache:
            self._cache[key] = common_patterns(self.row_tables())
        return self._cache[key]

    def pivot(self, kind: MetricKind | str) -> list[PivotedMetric]:
        """Pivot one metric over the common patterns."""
        return build_pivot(self.common_patterns(), self.row_tables(), kind)

    def pivots(
        self,
        kinds: Iterable[MetricKind | str] = tuple(MetricKind),
    ) -> dict[MetricKind, list[PivotedMetric]]:
        """Pivot several metrics over the common patterns."""
        return build_all_pivots(self.row_tables(), kinds)

    def to_dataframe(self) -> pd.DataFrame:
        """All projected rows with a leading `run_label` column."""
        cols = ["run_label", *ROW_COLUMNS]
        frames = [t.rows.assign(run_label=t.run_label) for t in self.row_tables() if len(t)]
        if not frames:
            return pd.DataFrame(columns=cols)
        return pd.concat(frames, ignore_index=True)[cols]

    def __iter__(self) -> Iterator[RunTable]:
        return iter(self._runs)

    def __len__(self) -> int:
        return len(self._runs)

    def __getitem__(self, index: int) -> RunTable:
        return self._runs[index]

    def __bool__(self) -> bool:
        return len(self._runs) > 0

    def __add__(self, other: RunTables) -> RunTables:
        return RunTables(
            list(self._runs) + list(other._runs),
            failures=list(self._failures) + list(other._failures),
        )

    def __repr__(self) -> str:
        return f"RunTables({len(self._runs)} runs, {len(self._failures)} failures)"
