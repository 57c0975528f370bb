from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import cast

from dateutil import tz
from openpyxl import load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from metricas_tool.excel_writer import ExcelLayout, write_metrics_xlsx
from metricas_tool.model import ChartPoint, MetricKind, Sample
from metricas_tool.series import entries_to_frame, history_entries, points_to_frame


def test_write_metrics_xlsx_sheets_and_formatting(tmp_path: Path) -> None:
    history = [
        Sample(id="a", date=datetime(2025, 12, 15, 8, 30, tzinfo=tz.UTC), weight=80.0),
        Sample(id="b", date=datetime(2025, 12, 16, 9, 45, tzinfo=tz.UTC), weight=79.5),
    ]
    entries = entries_to_frame(history_entries(history, MetricKind.WEIGHT))
    series = points_to_frame(
        [
            ChartPoint(date=history[0].date, value=80.0),
            ChartPoint(date=history[1].date, value=79.75, is_estimated=True),
        ]
    )
    out = tmp_path / "nested" / "out.xlsx"
    write_metrics_xlsx(entries, series, out, ExcelLayout())

    wb = load_workbook(out)
    assert wb.sheetnames == ["Entradas", "Serie"]

    ws = cast(Worksheet, wb["Entradas"])
    headers = [cell.value for cell in ws[1]]
    assert headers == ["ID", "Fecha / Hora", "Valor", "Valor (texto)", "Origen"]
    assert ws.cell(row=2, column=1).value == "b"
    assert ws.cell(row=2, column=4).value == "79.5 kg"
    assert ws.cell(row=2, column=2).value == datetime(2025, 12, 16, 9, 45)
    assert ws.cell(row=2, column=2).number_format == "dd/mm/yyyy hh:mm"
    assert ws.column_dimensions["A"].width == 18

    serie = cast(Worksheet, wb["Serie"])
    assert [cell.value for cell in serie[1]] == ["Fecha / Hora", "Valor", "Estimado"]
    assert serie.cell(row=3, column=3).value == "sí"
    assert serie.cell(row=2, column=2).number_format == "0.00"


def test_write_metrics_xlsx_empty_frames(tmp_path: Path) -> None:
    out = tmp_path / "empty.xlsx"
    write_metrics_xlsx(entries_to_frame([]), points_to_frame([]), out, ExcelLayout())
    wb = load_workbook(out)
    ws = cast(Worksheet, wb["Serie"])
    assert [cell.value for cell in ws[1]] == ["Fecha / Hora", "Valor", "Estimado"]
    assert ws.max_row == 1
