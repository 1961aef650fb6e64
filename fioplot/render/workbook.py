"""Excel workbook output: one sheet per metric plus native bar charts."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path

import pandas as pd
from openpyxl.chart import BarChart, Reference

from fioplot.errors import IOFailure
from fioplot.records.pivots import MetricKind, PivotedMetric, pivot_frame

logger = logging.getLogger(__name__)

CHART_SHEET = "Bars"
CHART_ROW_STRIDE = 20


def _add_bar_chart(ws_chart, ws_data, title: str, n_rows: int, n_cols: int, anchor: str) -> None:
    chart = BarChart()
    chart.type = "col"
    chart.title = title
    chart.legend.position = "l"
    chart.width = 30
    chart.height = 9
    data = Reference(ws_data, min_col=2, max_col=n_cols + 1, min_row=1, max_row=n_rows + 1)
    cats = Reference(ws_data, min_col=1, min_row=2, max_row=n_rows + 1)
    chart.add_data(data, titles_from_data=True)
    chart.set_categories(cats)
    ws_chart.add_chart(chart, anchor)


def write_workbook(
    pivots_by_kind: Mapping[MetricKind, Sequence[PivotedMetric]],
    path: str | Path,
) -> Path:
    """Write every metric pivot to a workbook.

    Each metric gets a sheet named after its file stem with a `Pattern`
    column followed by one column per run label. A `Bars` sheet holds one
    clustered column chart per metric sheet.

    Raises:
        IOFailure: If the workbook cannot be written.
    """
    p = Path(path)
    frames = {
        pivots[0].file_stem: pivot_frame(pivots)
        for pivots in pivots_by_kind.values()
        if pivots
    }
    try:
        with pd.ExcelWriter(p, engine="openpyxl") as writer:
            for sheet, df in frames.items():
                df.to_excel(writer, sheet_name=sheet)
            if frames:
                ws_chart = writer.book.create_sheet(CHART_SHEET)
                for i, (sheet, df) in enumerate(frames.items()):
                    anchor = ws_chart.cell(row=1 + i * CHART_ROW_STRIDE, column=1).coordinate
                    _add_bar_chart(
                        ws_chart, writer.sheets[sheet], sheet, len(df), len(df.columns), anchor
                    )
            else:
                pd.DataFrame({"message": ["No common patterns"]}).to_excel(
                    writer, index=False, sheet_name="summary"
                )
    except OSError as exc:
        raise IOFailure(f"Could not write workbook {p}: {exc}", p) from exc
    logger.info("Wrote workbook %s with %d metric sheets", p, len(frames))
    return p
