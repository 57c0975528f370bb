"""Exportación a Excel de entradas y series de métricas corporales."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, Side

_HEADER_MAP: dict[str, str] = {
    "id": "ID",
    "datetime": "Fecha / Hora",
    "value": "Valor",
    "display": "Valor (texto)",
    "source": "Origen",
    "is_estimated": "Estimado",
}

_COLUMN_WIDTHS: tuple[tuple[str, int], ...] = (
    ("ID", 18),
    ("Fecha / Hora", 18),
    ("Valor", 10),
    ("Valor (texto)", 14),
    ("Origen", 20),
    ("Estimado", 10),
)

_NUMBER_FORMATS: dict[str, str] = {
    "Fecha / Hora": "dd/mm/yyyy hh:mm",
    "Valor": "0.00",
}


@dataclass(frozen=True)
class ExcelLayout:
    """Sheet names of the metrics workbook."""

    entries_sheet: str = "Entradas"
    series_sheet: str = "Serie"


def _prepare(df: pd.DataFrame) -> pd.DataFrame:
    """Quita timezone de datetime y traduce cabeceras."""
    export_df = df.copy()
    if "datetime" in export_df.columns and not export_df.empty:
        export_df["datetime"] = (
            pd.to_datetime(export_df["datetime"], errors="coerce", utc=True)
            .dt.tz_localize(None)
        )
    if "is_estimated" in export_df.columns:
        export_df["is_estimated"] = export_df["is_estimated"].map(
            lambda v: "sí" if bool(v) else "no"
        )
    return export_df.rename(columns=_HEADER_MAP)


def write_metrics_xlsx(
    entries: pd.DataFrame,
    series: pd.DataFrame,
    out_path: Path,
    layout: ExcelLayout,
) -> None:
    """Write history entries and a chart series to a formatted workbook.

    Args:
        entries: Output of ``series.entries_to_frame``.
        series: Output of ``series.points_to_frame``.
        out_path: Output path for the XLSX file.
        layout: Sheet names.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)

    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        for df, sheet in (
            (entries, layout.entries_sheet),
            (series, layout.series_sheet),
        ):
            _prepare(df).to_excel(writer, index=False, sheet_name=sheet)
            _format_sheet(writer.book[sheet])


def _style_header_row(ws: Any) -> None:
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.alignment = center
        cell.border = border


def _style_body_rows(ws: Any) -> None:
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center")
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = center
            cell.border = border


def _format_sheet(ws: Any) -> None:
    """Apply borders, widths and number formats to a worksheet.

    Args:
        ws: openpyxl worksheet.
    """
    _style_header_row(ws)
    _style_body_rows(ws)
    col_index = {str(cell.value): idx + 1 for idx, cell in enumerate(ws[1])}
    for header, width in _COLUMN_WIDTHS:
        idx = col_index.get(header)
        if idx is not None:
            letter = ws.cell(row=1, column=idx).column_letter
            ws.column_dimensions[letter].width = width
    for row in ws.iter_rows(min_row=2):
        for header, fmt in _NUMBER_FORMATS.items():
            idx = col_index.get(header)
            if idx is not None:
                row[idx - 1].number_format = fmt
