"""Series de gráfico por métrica: puntos, suavizado, estadísticas y entradas."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime

import pandas as pd

from metricas_tool.estimator import estimate
from metricas_tool.ffmi import estimate_ffmi, estimate_lean_mass, ffmi_value, lean_mass_kg
from metricas_tool.history import SortedHistory
from metricas_tool.model import (
    ChartPoint,
    EstimatedMetric,
    MeasurementSystem,
    MetricKind,
    Sample,
    SampleSource,
    to_display_value,
    unit_label,
)

DEFAULT_TREND_WINDOW = 7
_CHECK_EVERY = 256


@dataclass(frozen=True)
class SeriesStats:
    """Quick stats of a displayed series."""

    average: float
    delta: float
    percentage_change: float
    minimum: float
    maximum: float


@dataclass(frozen=True)
class MetricHistoryEntry:
    """One row of the per-metric history list."""

    id: str
    date: datetime
    value: float
    display: str
    source: SampleSource


def estimate_metric(
    metric: MetricKind,
    when: datetime | date | str,
    history: SortedHistory | Iterable[Sample],
    height_inches: float | None = None,
) -> EstimatedMetric | None:
    """Dispatch to the estimator or composer that produces ``metric``."""
    if metric is MetricKind.LEAN_MASS:
        return estimate_lean_mass(when, history)
    if metric is MetricKind.FFMI:
        return estimate_ffmi(when, history, height_inches)
    return estimate(metric, when, history)


def build_series(
    history: SortedHistory | Iterable[Sample],
    metric: MetricKind,
    *,
    height_inches: float | None = None,
    system: MeasurementSystem = MeasurementSystem.METRIC,
    samples: Sequence[Sample] | None = None,
    check: Callable[[], None] | None = None,
) -> list[ChartPoint]:
    """Raw chart series: one point per sample date, ascending.

    Each point is estimated against the whole history, so samples that lack
    the metric are filled by interpolation. Dates without any value are left
    out.

    Args:
        history: Full sample history.
        metric: Metric to chart.
        height_inches: Required for FFMI.
        system: Display unit system.
        samples: Subset of the history to chart (e.g. one time range);
            defaults to every sample.
        check: Called periodically; may raise to abort the computation.
    """
    snapshot = SortedHistory.of(history)
    targets = snapshot.samples if samples is None else samples
    points: list[ChartPoint] = []
    last_date: datetime | None = None
    for i, sample in enumerate(targets):
        if check is not None and i % _CHECK_EVERY == 0:
            check()
        if sample.date == last_date:
            continue
        result = estimate_metric(metric, sample.date, snapshot, height_inches)
        if result is None:
            continue
        points.append(
            ChartPoint(
                date=sample.date,
                value=to_display_value(metric, result.value, system),
                is_estimated=result.is_estimated,
            )
        )
        last_date = sample.date
    return points


def moving_average(
    points: Sequence[ChartPoint], window: int = DEFAULT_TREND_WINDOW
) -> list[ChartPoint]:
    """Trailing moving average; a point is estimated if any in its window is."""
    if window < 1:
        raise ValueError("window must be >= 1")
    if window == 1 or len(points) < 2:
        return list(points)
    values = pd.Series([p.value for p in points], dtype="float64")
    flags = pd.Series([p.is_estimated for p in points], dtype="float64")
    means = values.rolling(window, min_periods=1).mean()
    estimated = flags.rolling(window, min_periods=1).max()
    return [
        ChartPoint(date=p.date, value=float(avg), is_estimated=bool(flag))
        for p, avg, flag in zip(points, means, estimated)
    ]


def series_stats(points: Sequence[ChartPoint]) -> SeriesStats | None:
    """Average, change since start and range; None for fewer than two points."""
    if len(points) < 2:
        return None
    values = [p.value for p in points]
    first, last = values[0], values[-1]
    delta = last - first
    pct = 0.0 if abs(first) < 1e-12 else delta / first * 100
    return SeriesStats(
        average=sum(values) / len(values),
        delta=delta,
        percentage_change=pct,
        minimum=min(values),
        maximum=max(values),
    )


def format_value(value: float, unit: str) -> str:
    """Format a value the way the history list shows it."""
    if unit == "%":
        return f"{value:.1f}%"
    text = f"{value:.2f}" if value < 10 else f"{value:.1f}"
    return f"{text} {unit}"


def _measured_value(
    sample: Sample, metric: MetricKind, height_inches: float | None
) -> float | None:
    if metric in (MetricKind.WEIGHT, MetricKind.BODY_FAT):
        return sample.value_of(metric)
    if sample.weight is None or sample.body_fat_percent is None:
        return None
    if metric is MetricKind.LEAN_MASS:
        return lean_mass_kg(sample.weight, sample.body_fat_percent)
    if height_inches is None or height_inches <= 0:
        return None
    return ffmi_value(sample.weight, sample.body_fat_percent, height_inches)


def history_entries(
    history: SortedHistory | Iterable[Sample],
    metric: MetricKind,
    *,
    system: MeasurementSystem = MeasurementSystem.METRIC,
    height_inches: float | None = None,
) -> list[MetricHistoryEntry]:
    """Directly measured values of ``metric``, newest first."""
    snapshot = SortedHistory.of(history)
    unit = unit_label(metric, system)
    entries: list[MetricHistoryEntry] = []
    for sample in reversed(snapshot.samples):
        raw = _measured_value(sample, metric, height_inches)
        if raw is None:
            continue
        value = to_display_value(metric, raw, system)
        entries.append(
            MetricHistoryEntry(
                id=sample.id,
                date=sample.date,
                value=value,
                display=format_value(value, unit),
                source=sample.source,
            )
        )
    return entries


def points_to_frame(points: Sequence[ChartPoint]) -> pd.DataFrame:
    """Chart points as a DataFrame (datetime, value, is_estimated)."""
    df = pd.DataFrame(
        [
            {"datetime": p.date, "value": p.value, "is_estimated": p.is_estimated}
            for p in points
        ]
    )
    if df.empty:
        return pd.DataFrame(columns=["datetime", "value", "is_estimated"])
    return df


def entries_to_frame(entries: Sequence[MetricHistoryEntry]) -> pd.DataFrame:
    """History entries as a DataFrame, newest first."""
    columns = ["id", "datetime", "value", "display", "source"]
    rows = [
        {
            "id": e.id,
            "datetime": e.date,
            "value": e.value,
            "display": e.display,
            "source": str(e.source),
        }
        for e in entries
    ]
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows, columns=columns)
