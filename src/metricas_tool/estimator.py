"""Estimación de peso y % de grasa para fechas sin medición directa."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import cast

from metricas_tool.history import SortedHistory
from metricas_tool.model import (
    Confidence,
    EstimatedMetric,
    MetricKind,
    Sample,
    normalize_datetime,
)

HIGH_CONFIDENCE_MAX_GAP = timedelta(days=7)
MEDIUM_CONFIDENCE_MAX_GAP = timedelta(days=30)


def confidence_for_gap(gap: timedelta) -> Confidence:
    """Map the distance between two bracketing samples to a confidence level.

    Gaps up to 7 days are high, up to 30 days medium, anything longer low.
    """
    gap = abs(gap)
    if gap <= HIGH_CONFIDENCE_MAX_GAP:
        return Confidence.HIGH
    if gap <= MEDIUM_CONFIDENCE_MAX_GAP:
        return Confidence.MEDIUM
    return Confidence.LOW


def estimate(
    metric: MetricKind,
    when: datetime | date | str,
    history: SortedHistory | Iterable[Sample],
) -> EstimatedMetric | None:
    """Best-effort value of a recorded metric at ``when``.

    Args:
        metric: ``MetricKind.WEIGHT`` or ``MetricKind.BODY_FAT``.
        when: Target date; normalized to UTC.
        history: Samples in any order, or an already sorted snapshot.

    Returns:
        The measured value when a sample exists at ``when`` or elsewhere on
        its UTC calendar day (the closest one); a linear interpolation between
        the nearest samples on both sides; the nearest value held flat when
        only one side exists; ``None`` when the field was never recorded.
    """
    target = normalize_datetime(when)
    series = SortedHistory.of(history).field(metric)
    if not len(series):
        return None

    exact = series.index_of(target)
    if exact is None:
        exact = series.same_day(target)
    if exact is not None:
        return EstimatedMetric.measured(series.values[exact])

    left = series.before(target)
    right = series.after(target)

    if left is not None and right is not None:
        left_date, right_date = series.dates[left], series.dates[right]
        left_value, right_value = series.values[left], series.values[right]
        span = (right_date - left_date).total_seconds()
        progress = (target - left_date).total_seconds() / span
        value = left_value + (right_value - left_value) * progress
        return EstimatedMetric.interpolated(
            value, confidence_for_gap(right_date - left_date)
        )

    nearest = left if left is not None else cast(int, right)
    return EstimatedMetric.last_known(series.values[nearest])


def estimate_weight(
    when: datetime | date | str, history: SortedHistory | Iterable[Sample]
) -> EstimatedMetric | None:
    """Estimated weight in kilograms."""
    return estimate(MetricKind.WEIGHT, when, history)


def estimate_body_fat(
    when: datetime | date | str, history: SortedHistory | Iterable[Sample]
) -> EstimatedMetric | None:
    """Estimated body fat percentage."""
    return estimate(MetricKind.BODY_FAT, when, history)
