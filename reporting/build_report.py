"""Build a comparison report from a catalog of fio JSON results.

The output directory holds one CSV table per run, a workbook with one
sheet per metric, bar charts for every metric and, with ``--loggraphs``,
line charts of the merged time-series logs.

Usage::

    python reporting/build_report.py \\
      --name nvme-vs-sata \\
      --catalog /path/to/results \\
      --format svg \\
      --description "4 disks, xfs" \\
      --loggraphs

Settings can also come from a YAML file (``--config``); flags given on
the command line take precedence.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

import yaml

from fioplot.config import IMG_FORMATS, ReportConfig
from fioplot.errors import FioplotError
from fioplot.report import build_report

logger = logging.getLogger(__name__)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compare fio results and render tables and charts"
    )
    parser.add_argument(
        "-n",
        "--name",
        type=str,
        default=None,
        help="Name of the results directory (required unless set in --config)",
    )
    parser.add_argument(
        "-c",
        "--catalog",
        type=str,
        default=None,
        help="Directory with fio JSON results and log directories (default: .)",
    )
    parser.add_argument(
        "-f",
        "--format",
        type=str,
        choices=IMG_FORMATS,
        default=None,
        dest="img_format",
        help="Chart image format (default: png)",
    )
    parser.add_argument(
        "-d",
        "--description",
        type=str,
        default=None,
        help="Text shown on every chart",
    )
    parser.add_argument(
        "-l",
        "--loggraphs",
        action="store_true",
        default=None,
        dest="log_graphs",
        help="Render line charts from bw/iops/lat logs",
    )
    parser.add_argument(
        "--out-root",
        type=str,
        default=None,
        dest="output_root",
        help="Directory in which the results directory is created (default: .)",
    )
    parser.add_argument(
        "--keep-merged-logs",
        action="store_true",
        default=None,
        help="Keep merged logs under merged-logs/ in the results directory",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML file with report settings",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    overrides = {
        "name": args.name,
        "catalog": args.catalog,
        "img_format": args.img_format,
        "description": args.description,
        "log_graphs": args.log_graphs,
        "output_root": args.output_root,
        "keep_merged_logs": args.keep_merged_logs,
    }
    try:
        if args.config:
            config = ReportConfig.from_yaml(args.config, **overrides)
        else:
            overrides["catalog"] = overrides["catalog"] or "."
            config = ReportConfig.from_mapping({}, **overrides)
    except (ValueError, OSError, yaml.YAMLError) as exc:
        logger.error("Invalid report settings: %s", exc)
        return 2

    try:
        result = build_report(config)
    except (FioplotError, FileNotFoundError) as exc:
        logger.error("Report failed: %s", exc)
        return 1

    for failure in result.failures:
        logger.warning("Skipped %s", failure)
    for err in result.errors:
        logger.warning("Rendering error: %s", err)
    logger.info("Done. Output directory: %s", result.out_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
