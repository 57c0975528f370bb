from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from dateutil import tz

from metricas_tool.model import (
    ChartPoint,
    MeasurementSystem,
    MetricKind,
    Sample,
    SampleSource,
    SourceKind,
)
from metricas_tool.series import (
    build_series,
    entries_to_frame,
    estimate_metric,
    format_value,
    history_entries,
    moving_average,
    points_to_frame,
    series_stats,
)

_START = datetime(2025, 3, 1, tzinfo=tz.UTC)


def _d(days: float) -> datetime:
    return _START + timedelta(days=days)


def _history() -> list[Sample]:
    return [
        Sample(id="a", date=_d(0), weight=80.0, body_fat_percent=20.0),
        Sample(id="b", date=_d(2), body_fat_percent=19.5),
        Sample(
            id="c",
            date=_d(4),
            weight=78.0,
            source=SampleSource(SourceKind.THIRD_PARTY, "withings"),
        ),
    ]


def _pts(values: list[float], flags: list[bool] | None = None) -> list[ChartPoint]:
    flags = flags or [False] * len(values)
    return [
        ChartPoint(date=_d(i), value=v, is_estimated=f)
        for i, (v, f) in enumerate(zip(values, flags))
    ]


def test_build_series_fills_gaps_with_estimates() -> None:
    points = build_series(_history(), MetricKind.WEIGHT)
    assert [p.date for p in points] == [_d(0), _d(2), _d(4)]
    assert [p.is_estimated for p in points] == [False, True, False]
    assert points[1].value == pytest.approx(79.0)


def test_build_series_converts_mass_to_pounds() -> None:
    points = build_series(
        _history(), MetricKind.WEIGHT, system=MeasurementSystem.IMPERIAL
    )
    assert points[0].value == pytest.approx(80.0 * 2.20462)


def test_build_series_body_fat_is_unitless() -> None:
    points = build_series(
        _history(), MetricKind.BODY_FAT, system=MeasurementSystem.IMPERIAL
    )
    assert [p.value for p in points] == [20.0, 19.5, 19.5]
    assert points[2].is_estimated


def test_build_series_ffmi_needs_height() -> None:
    assert build_series(_history(), MetricKind.FFMI) == []
    points = build_series(_history(), MetricKind.FFMI, height_inches=70.0)
    assert len(points) == 3
    assert not points[0].is_estimated


def test_build_series_on_subset_and_check_hook() -> None:
    history = _history()
    calls: list[int] = []
    points = build_series(
        history,
        MetricKind.WEIGHT,
        samples=history[1:],
        check=lambda: calls.append(1),
    )
    assert [p.date for p in points] == [_d(2), _d(4)]
    assert calls


def test_estimate_metric_dispatch() -> None:
    lean = estimate_metric(MetricKind.LEAN_MASS, _d(0), _history())
    assert lean is not None and lean.value == pytest.approx(64.0)
    assert estimate_metric(MetricKind.FFMI, _d(0), _history()) is None


def test_moving_average_trailing_window() -> None:
    out = moving_average(_pts([1.0, 2.0, 3.0, 4.0], [False, True, False, False]), 3)
    assert [p.value for p in out] == pytest.approx([1.0, 1.5, 2.0, 3.0])
    assert [p.is_estimated for p in out] == [False, True, True, True]


def test_moving_average_edge_cases() -> None:
    single = _pts([5.0])
    assert moving_average(single) == single
    with pytest.raises(ValueError, match="window"):
        moving_average(single, 0)


def test_series_stats() -> None:
    stats = series_stats(_pts([80.0, 78.0, 79.0]))
    assert stats is not None
    assert stats.average == pytest.approx(79.0)
    assert stats.delta == pytest.approx(-1.0)
    assert stats.percentage_change == pytest.approx(-1.25)
    assert (stats.minimum, stats.maximum) == (78.0, 80.0)
    assert series_stats(_pts([80.0])) is None
    zero = series_stats(_pts([0.0, 2.0]))
    assert zero is not None and zero.percentage_change == 0.0


def test_format_value() -> None:
    assert format_value(20.0, "%") == "20.0%"
    assert format_value(8.5, "kg/m²") == "8.50 kg/m²"
    assert format_value(80.0, "kg") == "80.0 kg"


def test_history_entries_newest_first_measured_only() -> None:
    entries = history_entries(_history(), MetricKind.WEIGHT)
    assert [e.id for e in entries] == ["c", "a"]
    assert entries[0].display == "78.0 kg"
    assert str(entries[0].source) == "third-party:withings"

    imperial = history_entries(
        _history(), MetricKind.WEIGHT, system=MeasurementSystem.IMPERIAL
    )
    assert imperial[1].display == "176.4 lb"


def test_history_entries_derived_metrics_need_both_fields() -> None:
    assert [e.id for e in history_entries(_history(), MetricKind.LEAN_MASS)] == ["a"]
    assert history_entries(_history(), MetricKind.FFMI) == []
    ffmi = history_entries(_history(), MetricKind.FFMI, height_inches=70.0)
    assert len(ffmi) == 1
    assert ffmi[0].display.endswith("kg/m²")


def test_frames() -> None:
    empty = points_to_frame([])
    assert list(empty.columns) == ["datetime", "value", "is_estimated"]
    assert empty.empty

    df = points_to_frame(_pts([1.0, 2.0]))
    assert list(df["value"]) == [1.0, 2.0]

    entries = entries_to_frame(history_entries(_history(), MetricKind.BODY_FAT))
    assert list(entries.columns) == ["id", "datetime", "value", "display", "source"]
    assert list(entries["id"]) == ["b", "a"]
    assert entries_to_frame([]).empty
