"""Snapshot ordenado del historial de muestras."""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from metricas_tool.model import MetricKind, Sample


@dataclass(frozen=True)
class FieldSeries:
    """Ascending, date-unique values of one recorded field."""

    dates: tuple[datetime, ...]
    values: tuple[float, ...]
    # Posición de inserción de cada valor, para desempatar.
    orders: tuple[int, ...]

    def __len__(self) -> int:
        return len(self.dates)

    def index_of(self, when: datetime) -> int | None:
        """Index of a value recorded exactly at ``when``."""
        i = bisect_left(self.dates, when)
        if i < len(self.dates) and self.dates[i] == when:
            return i
        return None

    def same_day(self, when: datetime) -> int | None:
        """Index of the value on the UTC calendar day of ``when``.

        The value closest to ``when`` is chosen; on a tie the last inserted
        one wins.
        """
        start = when.replace(hour=0, minute=0, second=0, microsecond=0)
        lo = bisect_left(self.dates, start)
        hi = bisect_left(self.dates, start + timedelta(days=1))
        if lo == hi:
            return None
        return min(
            range(lo, hi),
            key=lambda i: (abs(self.dates[i] - when), -self.orders[i]),
        )

    def before(self, when: datetime) -> int | None:
        """Index of the nearest value strictly before ``when``."""
        i = bisect_left(self.dates, when)
        return i - 1 if i > 0 else None

    def after(self, when: datetime) -> int | None:
        """Index of the nearest value strictly after ``when``."""
        i = bisect_right(self.dates, when)
        return i if i < len(self.dates) else None


class SortedHistory:
    """Sample history sorted once by date and reused by every query.

    Samples are unique by id: a repeated id replaces the earlier sample and
    counts as the latest insertion. Samples sharing a timestamp keep their
    insertion order, and when several of them record the same field the last
    inserted value wins.
    """

    def __init__(self, samples: Iterable[Sample]) -> None:
        by_id: dict[str, Sample] = {}
        for sample in samples:
            by_id.pop(sample.id, None)
            by_id[sample.id] = sample
        self._order = {sample_id: i for i, sample_id in enumerate(by_id)}
        # sorted() es estable: a igual fecha conserva el orden de inserción.
        self._samples: tuple[Sample, ...] = tuple(
            sorted(by_id.values(), key=lambda s: s.date)
        )
        self._dates: tuple[datetime, ...] = tuple(s.date for s in self._samples)
        self._fields: dict[MetricKind, FieldSeries] = {}

    @classmethod
    def of(cls, history: SortedHistory | Iterable[Sample]) -> SortedHistory:
        if isinstance(history, SortedHistory):
            return history
        return cls(history)

    @property
    def samples(self) -> tuple[Sample, ...]:
        return self._samples

    @property
    def dates(self) -> tuple[datetime, ...]:
        return self._dates

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self):
        return iter(self._samples)

    def since(self, cutoff: datetime | None) -> Sequence[Sample]:
        """Samples with ``date >= cutoff`` (all of them when cutoff is None)."""
        if cutoff is None:
            return self._samples
        return self._samples[bisect_left(self._dates, cutoff) :]

    def field(self, metric: MetricKind) -> FieldSeries:
        """Per-field series for a recorded metric (weight or body fat)."""
        series = self._fields.get(metric)
        if series is None:
            series = self._build_field(metric)
            self._fields[metric] = series
        return series

    def _build_field(self, metric: MetricKind) -> FieldSeries:
        if metric not in (MetricKind.WEIGHT, MetricKind.BODY_FAT):
            raise ValueError(f"{metric.value} is not a recorded field")
        dates: list[datetime] = []
        values: list[float] = []
        orders: list[int] = []
        for sample in self._samples:
            value = sample.value_of(metric)
            if value is None:
                continue
            order = self._order[sample.id]
            if dates and dates[-1] == sample.date:
                values[-1] = value
                orders[-1] = order
                continue
            dates.append(sample.date)
            values.append(value)
            orders.append(order)
        return FieldSeries(
            dates=tuple(dates), values=tuple(values), orders=tuple(orders)
        )
