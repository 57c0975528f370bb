"""Masa magra e índice de masa libre de grasa (FFMI) a partir de estimaciones."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

from metricas_tool.estimator import estimate_body_fat, estimate_weight
from metricas_tool.history import SortedHistory
from metricas_tool.model import EstimatedMetric, Sample, weaker_confidence

CM_PER_INCH = 2.54
METERS_PER_INCH = 0.0254


def height_to_inches(height: float | None, unit: str | None = "in") -> float | None:
    """Convert a stored height to inches; None when missing or non-positive."""
    if height is None or height <= 0:
        return None
    if unit is not None and unit.strip().lower() == "cm":
        return height / CM_PER_INCH
    return height


def combine(
    first: EstimatedMetric, second: EstimatedMetric, value: float
) -> EstimatedMetric:
    """Derived value carrying the flags of both inputs and the weaker confidence."""
    return EstimatedMetric(
        value=value,
        is_interpolated=first.is_interpolated or second.is_interpolated,
        is_last_known=first.is_last_known or second.is_last_known,
        confidence=weaker_confidence(first.confidence, second.confidence),
    )


def lean_mass_kg(weight_kg: float, body_fat_percent: float) -> float:
    return weight_kg * (1 - body_fat_percent / 100)


def ffmi_value(weight_kg: float, body_fat_percent: float, height_inches: float) -> float:
    """FFMI = lean mass (kg) / height (m)²."""
    height_m = height_inches * METERS_PER_INCH
    return lean_mass_kg(weight_kg, body_fat_percent) / (height_m * height_m)


def normalized_ffmi(ffmi: float, height_m: float) -> float:
    """Height-adjusted FFMI, scaled to a 1.80 m reference."""
    return ffmi + 6.1 * (1.8 - height_m)


def estimate_lean_mass(
    when: datetime | date | str, history: SortedHistory | Iterable[Sample]
) -> EstimatedMetric | None:
    """Lean mass in kilograms from the weight and body fat estimates."""
    snapshot = SortedHistory.of(history)
    weight = estimate_weight(when, snapshot)
    body_fat = estimate_body_fat(when, snapshot)
    if weight is None or body_fat is None:
        return None
    return combine(weight, body_fat, lean_mass_kg(weight.value, body_fat.value))


def estimate_ffmi(
    when: datetime | date | str,
    history: SortedHistory | Iterable[Sample],
    height_inches: float | None,
) -> EstimatedMetric | None:
    """Fat-free mass index at ``when``.

    Args:
        when: Target date.
        history: Sample history.
        height_inches: Height in inches (see ``height_to_inches``).

    Returns:
        None if the height is unavailable or either the weight or the body fat
        estimate is missing.
    """
    if height_inches is None or height_inches <= 0:
        return None
    snapshot = SortedHistory.of(history)
    weight = estimate_weight(when, snapshot)
    body_fat = estimate_body_fat(when, snapshot)
    if weight is None or body_fat is None:
        return None
    return combine(
        weight, body_fat, ffmi_value(weight.value, body_fat.value, height_inches)
    )
