from __future__ import annotations

import json
from pathlib import Path

import pytest

from metricas_tool.model import SourceKind
from metricas_tool.sources.json_export import (
    JsonExportPaths,
    JsonExportSource,
    _extract_json_list,
    _item_to_sample,
)


def test_json_export_parses_list(tmp_path: Path) -> None:
    data = [
        {"id": "2", "date": "2025-01-10T08:00:00Z", "weight": 78.2, "source": "healthkit"},
        {"id": "1", "date": "2025-01-01", "weight": 80, "bodyFatPercent": 21.0},
        {"date": "2025-01-05", "body_fat_percent": "20.1"},
    ]
    p = tmp_path / "export.json"
    p.write_text(json.dumps(data), encoding="utf-8")

    samples = JsonExportSource(JsonExportPaths(path=p)).load_samples()

    assert samples[0].id == "1"
    assert samples[0].weight == 80.0
    assert samples[1].body_fat_percent == 20.1
    assert samples[1].id
    assert samples[2].source.kind is SourceKind.HEALTH_INTEGRATION


def test_extract_json_list_tolerates_leading_text() -> None:
    assert _extract_json_list('log line\n[{"a": 1}]') == [{"a": 1}]
    assert _extract_json_list('{"a": 1}') == {"a": 1}


def test_item_to_sample_skips_incomplete_items() -> None:
    assert _item_to_sample("nope") is None
    assert _item_to_sample({"weight": 80}) is None
    assert _item_to_sample({"date": "2025-01-01"}) is None
    assert _item_to_sample({"date": "xyz", "weight": 80}) is None


def test_load_samples_not_list_raises(tmp_path: Path) -> None:
    p = tmp_path / "obj.json"
    p.write_text('{"date": "2025-01-01"}', encoding="utf-8")
    with pytest.raises(ValueError, match="must be a list"):
        JsonExportSource(JsonExportPaths(path=p)).load_samples()


def test_load_samples_invalid_json_raises(tmp_path: Path) -> None:
    p = tmp_path / "bad.json"
    p.write_text("not json", encoding="utf-8")
    with pytest.raises(json.JSONDecodeError):
        JsonExportSource(JsonExportPaths(path=p)).load_samples()


def test_validate(tmp_path: Path) -> None:
    p = tmp_path / "export.json"
    p.write_text("[]", encoding="utf-8")
    JsonExportSource(JsonExportPaths(path=p)).validate()
    with pytest.raises(FileNotFoundError):
        JsonExportSource(JsonExportPaths(path=tmp_path / "missing.json")).validate()


def test_infinite_and_non_positive_weights_are_dropped(tmp_path: Path) -> None:
    p = tmp_path / "export.json"
    p.write_text(
        '[{"id": "a", "date": "2025-01-01", "weight": 80},'
        ' {"id": "b", "date": "2025-01-03", "weight": Infinity},'
        ' {"id": "c", "date": "2025-01-04", "weight": -Infinity, "bodyFatPercent": 20},'
        ' {"id": "d", "date": "2025-01-05", "weight": 0}]',
        encoding="utf-8",
    )
    samples = JsonExportSource(JsonExportPaths(path=p)).load_samples()
    assert [s.id for s in samples] == ["a", "c"]
    assert samples[1].weight is None
    assert samples[1].body_fat_percent == 20.0
