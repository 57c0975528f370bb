"""Rangos de tiempo del gráfico y filtrado del historial por rango."""

from __future__ import annotations

from bisect import bisect_left
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta
from enum import Enum

from dateutil import tz

from metricas_tool.history import SortedHistory
from metricas_tool.model import ChartPoint, Sample, normalize_datetime


class TimeRange(Enum):
    """Selectable chart windows."""

    WEEK_1 = "1W"
    MONTH_1 = "1M"
    MONTH_3 = "3M"
    MONTH_6 = "6M"
    YEAR_1 = "1Y"
    ALL = "All"

    @property
    def days(self) -> int | None:
        """Length of the window in days; None for all-time."""
        return _RANGE_DAYS[self]

    @property
    def max_points(self) -> int:
        """Point budget of the downsampled series for this range."""
        return _RANGE_MAX_POINTS[self]

    def cutoff(self, now: datetime | date | str | None = None) -> datetime | None:
        """Earliest date kept by this range, or None when there is no cutoff."""
        if self.days is None:
            return None
        reference = datetime.now(tz.UTC) if now is None else normalize_datetime(now)
        return reference - timedelta(days=self.days)

    @classmethod
    def parse(cls, text: str) -> TimeRange:
        wanted = text.strip().lower()
        for item in cls:
            if item.value.lower() == wanted or item.name.lower() == wanted:
                return item
        raise ValueError(f"Unknown time range: {text!r}")


_RANGE_DAYS: dict[TimeRange, int | None] = {
    TimeRange.WEEK_1: 7,
    TimeRange.MONTH_1: 30,
    TimeRange.MONTH_3: 90,
    TimeRange.MONTH_6: 180,
    TimeRange.YEAR_1: 365,
    TimeRange.ALL: None,
}

_RANGE_MAX_POINTS: dict[TimeRange, int] = {
    TimeRange.WEEK_1: 140,
    TimeRange.MONTH_1: 180,
    TimeRange.MONTH_3: 210,
    TimeRange.MONTH_6: 240,
    TimeRange.YEAR_1: 260,
    TimeRange.ALL: 320,
}


def filter_history(
    history: SortedHistory | Iterable[Sample],
    time_range: TimeRange,
    now: datetime | date | str | None = None,
) -> list[Sample]:
    """Samples of ``history`` inside the range, ascending by date.

    Pass a ``SortedHistory`` to reuse a single sort across calls.
    """
    snapshot = SortedHistory.of(history)
    return list(snapshot.since(time_range.cutoff(now)))


def filter_points(
    points: Sequence[ChartPoint],
    time_range: TimeRange,
    now: datetime | date | str | None = None,
) -> list[ChartPoint]:
    """Points inside the range. ``points`` must already be ascending by date."""
    cutoff = time_range.cutoff(now)
    if cutoff is None:
        return list(points)
    start = bisect_left(points, cutoff, key=lambda p: p.date)
    return list(points[start:])
