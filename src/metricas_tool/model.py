"""Modelos tipados para muestras corporales, estimaciones y puntos de gráfico."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from dateutil import parser as date_parser
from dateutil import tz

KG_TO_LB = 2.20462


class MetricKind(Enum):
    """Body metrics the engine can estimate."""

    WEIGHT = "weight"
    BODY_FAT = "body_fat"
    LEAN_MASS = "lean_mass"
    FFMI = "ffmi"

    @property
    def is_mass(self) -> bool:
        return self in (MetricKind.WEIGHT, MetricKind.LEAN_MASS)


class MeasurementSystem(Enum):
    """Display unit system; estimation always runs in kilograms."""

    METRIC = "metric"
    IMPERIAL = "imperial"


class SourceKind(Enum):
    MANUAL = "manual"
    HEALTH_INTEGRATION = "health-integration"
    THIRD_PARTY = "third-party"


@dataclass(frozen=True)
class SampleSource:
    """Where a sample came from. Informational only."""

    kind: SourceKind = SourceKind.MANUAL
    integration_id: str | None = None

    @classmethod
    def parse(cls, raw: object) -> SampleSource:
        """Parse ``manual``, ``health-integration`` or ``third-party[:id]``.

        Raises:
            ValueError: If the text is not a known source.
        """
        if raw is None:
            return cls()
        text = str(raw).strip().lower()
        if not text or text == "manual":
            return cls()
        if text in ("health-integration", "healthkit", "health"):
            return cls(SourceKind.HEALTH_INTEGRATION)
        prefix, _, ident = text.partition(":")
        if prefix in ("third-party", "integration"):
            return cls(SourceKind.THIRD_PARTY, ident.strip() or None)
        raise ValueError(f"Unknown sample source: {raw!r}")

    def __str__(self) -> str:
        if self.kind is SourceKind.THIRD_PARTY and self.integration_id:
            return f"{self.kind.value}:{self.integration_id}"
        return self.kind.value


@dataclass(frozen=True)
class Sample:
    """One recorded body-metric observation (weight in kg, body fat in %)."""

    id: str
    date: datetime
    weight: float | None = None
    body_fat_percent: float | None = None
    source: SampleSource = SampleSource()

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", normalize_datetime(self.date))
        if self.weight is not None and not (
            math.isfinite(self.weight) and self.weight > 0.0
        ):
            raise ValueError(f"weight must be a positive number: {self.weight}")
        if self.body_fat_percent is not None and not (
            0.0 <= self.body_fat_percent <= 100.0
        ):
            raise ValueError(
                f"body_fat_percent out of range 0-100: {self.body_fat_percent}"
            )

    def value_of(self, metric: MetricKind) -> float | None:
        """Directly recorded value for weight/body fat; None otherwise."""
        if metric is MetricKind.WEIGHT:
            return self.weight
        if metric is MetricKind.BODY_FAT:
            return self.body_fat_percent
        return None


class Confidence(Enum):
    """Trust in a value.

    ``NONE`` means no estimation was involved (direct measurement) and ranks
    above every interpolated level: none > high > medium > low.
    """

    NONE = "none"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank < other.rank


_CONFIDENCE_RANK: dict[Confidence, int] = {
    Confidence.LOW: 0,
    Confidence.MEDIUM: 1,
    Confidence.HIGH: 2,
    Confidence.NONE: 3,
}


def weaker_confidence(a: Confidence, b: Confidence) -> Confidence:
    """Return the more conservative of two confidence levels."""
    return min(a, b)


class EstimateKind(Enum):
    MEASURED = "measured"
    INTERPOLATED = "interpolated"
    LAST_KNOWN = "last_known"


@dataclass(frozen=True)
class EstimatedMetric:
    """Value for a date, tagged with how it was obtained.

    Absence of a value is represented by ``None`` at the call site, never by
    an instance of this class.
    """

    value: float
    is_interpolated: bool = False
    is_last_known: bool = False
    confidence: Confidence = Confidence.NONE

    @classmethod
    def measured(cls, value: float) -> EstimatedMetric:
        return cls(value=value)

    @classmethod
    def interpolated(cls, value: float, confidence: Confidence) -> EstimatedMetric:
        return cls(value=value, is_interpolated=True, confidence=confidence)

    @classmethod
    def last_known(cls, value: float) -> EstimatedMetric:
        return cls(value=value, is_last_known=True, confidence=Confidence.LOW)

    @property
    def kind(self) -> EstimateKind:
        # Un valor combinado puede ser ambas cosas; last-known es más débil.
        if self.is_last_known:
            return EstimateKind.LAST_KNOWN
        if self.is_interpolated:
            return EstimateKind.INTERPOLATED
        return EstimateKind.MEASURED

    @property
    def is_estimated(self) -> bool:
        return self.is_interpolated or self.is_last_known


@dataclass(frozen=True)
class ChartPoint:
    """Point of a series prepared for rendering."""

    date: datetime
    value: float
    is_estimated: bool = False

    @property
    def timestamp(self) -> float:
        return self.date.timestamp()


def normalize_datetime(value: datetime | date | str) -> datetime:
    """Return a timezone-aware UTC datetime.

    Naive datetimes and plain dates are interpreted as UTC; strings are parsed
    with dateutil.
    """
    if isinstance(value, str):
        value = date_parser.parse(value)
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        return value.replace(tzinfo=tz.UTC)
    return value.astimezone(tz.UTC)


def to_display_value(
    metric: MetricKind, value: float, system: MeasurementSystem
) -> float:
    """Convert a canonical value to the unit shown to the user."""
    if metric.is_mass and system is MeasurementSystem.IMPERIAL:
        return value * KG_TO_LB
    return value


def unit_label(metric: MetricKind, system: MeasurementSystem) -> str:
    if metric is MetricKind.BODY_FAT:
        return "%"
    if metric is MetricKind.FFMI:
        return "kg/m²"
    return "lb" if system is MeasurementSystem.IMPERIAL else "kg"
