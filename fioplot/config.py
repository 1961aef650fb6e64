"""Report configuration loaded from YAML and command-line overrides."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from fioplot.records.pivots import MetricKind

logger = logging.getLogger(__name__)

IMG_FORMATS = ("png", "svg")


@dataclass(frozen=True)
class ReportConfig:
    """Options for building a comparison report.

    Attributes:
        name: Name of the results directory to create.
        catalog: Directory with `*.json` results and optional log directories.
        output_root: Directory in which the results directory is created.
        img_format: Image format for charts (`"png"` or `"svg"`).
        description: Free-form text shown on every chart.
        log_graphs: Whether to render line charts from time-series logs.
        keep_merged_logs: Keep merged logs under `merged-logs/` instead of
            discarding them after plotting.
        metrics: Metric kinds to pivot and chart.
    """

    name: str
    catalog: Path
    output_root: Path = Path(".")
    img_format: str = "png"
    description: str = "fioplot"
    log_graphs: bool = False
    keep_merged_logs: bool = False
    metrics: tuple[MetricKind, ...] = tuple(MetricKind)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Report name must not be empty")
        if self.img_format not in IMG_FORMATS:
            raise ValueError(
                f"Unsupported img_format={self.img_format!r}; expected one of {IMG_FORMATS}"
            )
        object.__setattr__(self, "catalog", Path(self.catalog))
        object.__setattr__(self, "output_root", Path(self.output_root))
        object.__setattr__(self, "metrics", tuple(MetricKind(m) for m in self.metrics))
        if not self.metrics:
            raise ValueError("At least one metric kind is required")

    @classmethod
    def from_mapping(cls, raw: dict[str, Any], **overrides: Any) -> ReportConfig:
        """Build a config from a mapping; `None` overrides are ignored.

        Raises:
            ValueError: On unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        merged = dict(raw)
        merged.update({k: v for k, v in overrides.items() if v is not None})
        unknown = sorted(set(merged) - known)
        if unknown:
            raise ValueError(f"Unknown report config keys: {unknown}")
        missing = [k for k in ("name", "catalog") if k not in merged]
        if missing:
            raise ValueError(f"Missing required report config keys: {missing}")
        return cls(**merged)

    @classmethod
    def from_yaml(cls, path: str | Path, **overrides: Any) -> ReportConfig:
        """Load a config file and apply overrides on top of it.

        Raises:
            ValueError: If the file is not a YAML mapping or has invalid values.
        """
        raw = yaml.safe_load(Path(path).read_text())
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid report config (not a mapping): {path}")
        logger.debug("Loaded report config from %s", path)
        return cls.from_mapping(raw, **overrides)
