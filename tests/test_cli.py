"""Tests for CLI entrypoints."""

from __future__ import annotations

from pathlib import Path

import pytest
from openpyxl import load_workbook

from metricas_tool import cli
from metricas_tool.storage import SQLiteStore

_CSV = (
    "id,date,weight_kg,body_fat_percent,source\n"
    "a,2025-01-01,80.0,20.0,manual\n"
    "b,2025-01-11,78.0,,manual\n"
)


def _seed(tmp_path: Path) -> Path:
    db = tmp_path / "db.sqlite3"
    csv_path = tmp_path / "log.csv"
    csv_path.write_text(_CSV, encoding="utf-8")
    assert cli.main(["--db", str(db), "import", str(csv_path)]) == 0
    return db


def test_parse_args_custom_values() -> None:
    ns = cli.parse_args(["--db", "/tmp/x.sqlite3", "chart", "--metric", "ffmi", "--range", "1Y"])
    assert ns.db == "/tmp/x.sqlite3"
    assert ns.command == "chart"
    assert ns.metric == "ffmi"
    assert ns.time_range == "1Y"
    assert ns.trend is False


def test_parse_args_rejects_unknown_metric() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["estimate", "--metric", "bmi"])


def test_source_for_unknown_extension() -> None:
    with pytest.raises(ValueError, match="Unsupported file type"):
        cli.source_for(Path("data.xml"))


def test_import_and_estimate(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db = _seed(tmp_path)
    assert len(SQLiteStore(db).load_samples()) == 2

    assert cli.main(["--db", str(db), "estimate", "--date", "2025-01-06"]) == 0
    out = capsys.readouterr().out
    assert "weight 2025-01-06: 79.0 kg (interpolated, confianza medium)" in out


def test_estimate_without_data_prints_placeholder(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    db = tmp_path / "empty.sqlite3"
    assert cli.main(["--db", str(db), "estimate", "--metric", "ffmi"]) == 0
    assert cli.PLACEHOLDER in capsys.readouterr().out


def test_config_then_ffmi(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db = _seed(tmp_path)
    assert cli.main(["--db", str(db), "config", "--height", "180", "--height-unit", "cm"]) == 0
    assert "height: 180 cm" in capsys.readouterr().out

    assert cli.main(
        ["--db", str(db), "estimate", "--metric", "ffmi", "--date", "2025-01-01"]
    ) == 0
    out = capsys.readouterr().out
    assert "(medido)" in out
    assert "ffmi normalizado" in out


def test_chart_prints_points_and_stats(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    db = _seed(tmp_path)
    assert cli.main(["--db", str(db), "config", "--units", "imperial"]) == 0
    capsys.readouterr()
    assert cli.main(["--db", str(db), "chart", "--range", "All", "--trend"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("2025-01-01 00:00")
    assert lines[0].endswith("176.4 lb")
    assert lines[-1].startswith("avg ")


def test_export_writes_workbook(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db = _seed(tmp_path)
    out = tmp_path / "out" / "weight.xlsx"
    assert cli.main(["--db", str(db), "export", "--out", str(out)]) == 0
    assert "2 entradas, 2 puntos" in capsys.readouterr().out
    wb = load_workbook(out)
    assert wb.sheetnames == ["Entradas", "Serie"]


def test_import_propagates_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        cli.main(["--db", str(tmp_path / "db.sqlite3"), "import", str(tmp_path / "x.csv")])
