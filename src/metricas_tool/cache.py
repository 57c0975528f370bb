"""Caché de series de gráfico por métrica y rango.

Las series se recalculan cuando cambia la huella (fingerprint) del historial,
los parámetros de derivación (sistema de unidades, altura) o el día UTC del
corte de rango. Para historiales grandes el cálculo corre en segundo plano;
una nueva solicitud cancela la que está en curso y el resultado cancelado
nunca se publica.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from dateutil import tz

from metricas_tool.downsample import downsample
from metricas_tool.history import SortedHistory
from metricas_tool.model import ChartPoint, MeasurementSystem, MetricKind, Sample
from metricas_tool.ranges import TimeRange, filter_points
from metricas_tool.series import MetricHistoryEntry, build_series, history_entries

logger = logging.getLogger(__name__)

ASYNC_THRESHOLD = 500

# Marca "sin cambios" en configure(); None es un valor válido de altura.
_UNCHANGED: Any = object()


class ComputationCancelled(Exception):
    """Raised inside a background computation that was superseded."""


class CancellationToken:
    """Cooperative cancellation flag tied to a request generation."""

    def __init__(self, generation: int) -> None:
        self.generation = generation
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ComputationCancelled(f"generation {self.generation} cancelled")


@dataclass(frozen=True)
class SeriesFingerprint:
    """Cheap identity of a history: size plus first and last sample.

    Two histories with the same size and endpoints but different interior
    samples compare equal.
    """

    count: int
    first: tuple[object, ...] | None = None
    last: tuple[object, ...] | None = None

    @classmethod
    def of_samples(cls, samples: Sequence[Sample]) -> SeriesFingerprint:
        if not samples:
            return cls(count=0)
        first = min(samples, key=lambda s: s.date)
        last = max(samples, key=lambda s: s.date)
        return cls(count=len(samples), first=_identity(first), last=_identity(last))


def _identity(sample: Sample) -> tuple[object, ...]:
    return (sample.id, sample.date, sample.weight, sample.body_fat_percent)


@dataclass(frozen=True)
class RangeSeries:
    """Cached downsampled series.

    ``as_of`` is the UTC day the range cutoff was taken on; the entry expires
    when that day passes even if the history did not change.
    """

    points: tuple[ChartPoint, ...]
    fingerprint: SeriesFingerprint
    as_of: date

    def is_current(self, fingerprint: SeriesFingerprint, today: date) -> bool:
        return self.fingerprint == fingerprint and self.as_of == today


@dataclass(frozen=True)
class ChartState:
    """What the presentation layer should draw right now."""

    points: list[ChartPoint]
    is_loading: bool = False
    is_stale: bool = False


@dataclass
class _InFlight:
    token: CancellationToken
    fingerprint: SeriesFingerprint
    future: Future[bool]


class ChartCache:
    """Memoized per-metric, per-range chart series.

    Args:
        height_inches: Height used for FFMI series.
        system: Display unit system.
        executor: Executor for background work; a single-thread pool is
            created on first use when omitted.
        async_threshold: Histories larger than this are computed in the
            background.
        now: Clock used for range cutoffs.
    """

    def __init__(
        self,
        *,
        height_inches: float | None = None,
        system: MeasurementSystem = MeasurementSystem.METRIC,
        executor: Executor | None = None,
        async_threshold: int = ASYNC_THRESHOLD,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._height_inches = height_inches
        self._system = system
        self._executor = executor
        self._owns_executor = executor is None
        self._async_threshold = async_threshold
        self._now = now or (lambda: datetime.now(tz.UTC))

        self._lock = threading.Lock()
        self._history: tuple[Sample, ...] = ()
        self._fingerprint = SeriesFingerprint(count=0)
        self._series: dict[tuple[MetricKind, TimeRange], RangeSeries] = {}
        self._entries: dict[
            MetricKind, tuple[SeriesFingerprint, list[MetricHistoryEntry]]
        ] = {}
        self._inflight: dict[MetricKind, _InFlight] = {}
        self._generation = 0

    def __enter__(self) -> ChartCache:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    @property
    def fingerprint(self) -> SeriesFingerprint:
        return self._fingerprint

    def set_history(self, samples: Iterable[Sample]) -> bool:
        """Snapshot the sample history. Returns True if its fingerprint changed."""
        snapshot = tuple(samples)
        fingerprint = SeriesFingerprint.of_samples(snapshot)
        with self._lock:
            self._history = snapshot
            if fingerprint == self._fingerprint:
                return False
            logger.debug(
                "History fingerprint changed: %s -> %s", self._fingerprint, fingerprint
            )
            self._fingerprint = fingerprint
        return True

    def configure(
        self,
        *,
        system: MeasurementSystem | None = None,
        height_inches: float | None = _UNCHANGED,
    ) -> None:
        """Change derivation inputs; evicts every entry when something changed.

        Passing ``height_inches=None`` clears the height, so FFMI series become
        empty. Omitted arguments are left as they are.
        """
        new_system = self._system if system is None else system
        new_height = (
            self._height_inches if height_inches is _UNCHANGED else height_inches
        )
        if new_system is self._system and new_height == self._height_inches:
            return
        with self._lock:
            self._system = new_system
            self._height_inches = new_height
            self._series.clear()
            self._entries.clear()
            for inflight in self._inflight.values():
                inflight.token.cancel()
            self._inflight.clear()
        logger.info(
            "Chart cache cleared (system=%s, height_in=%s)",
            new_system.value,
            new_height,
        )

    def get(self, metric: MetricKind, time_range: TimeRange) -> list[ChartPoint]:
        """Downsampled series for ``(metric, time_range)``.

        While a background computation is running this returns the previous
        (possibly stale) series, or an empty list if there is none yet.
        """
        return self.series(metric, time_range).points

    def series(self, metric: MetricKind, time_range: TimeRange) -> ChartState:
        with self._lock:
            history = self._history
            fingerprint = self._fingerprint
            cached = self._series.get((metric, time_range))
        if cached is not None and cached.is_current(fingerprint, self._today()):
            return ChartState(points=list(cached.points))

        if len(history) <= self._async_threshold:
            self._cancel(metric)
            results = self._compute(metric, history, fingerprint, token=None)
            with self._lock:
                self._store(metric, results)
            return ChartState(points=list(results[time_range].points))

        self._schedule(metric, history, fingerprint)
        if cached is None:
            return ChartState(points=[], is_loading=True)
        return ChartState(points=list(cached.points), is_loading=True, is_stale=True)

    def refresh(self, metric: MetricKind) -> Future[bool]:
        """Recompute ``metric`` in the background, superseding any running job."""
        with self._lock:
            history = self._history
            fingerprint = self._fingerprint
        return self._schedule(metric, history, fingerprint, force=True)

    def is_loading(self, metric: MetricKind) -> bool:
        with self._lock:
            inflight = self._inflight.get(metric)
        return inflight is not None and not inflight.future.done()

    def entries(self, metric: MetricKind) -> list[MetricHistoryEntry]:
        """Formatted history entries of ``metric``, newest first."""
        with self._lock:
            history = self._history
            fingerprint = self._fingerprint
            cached = self._entries.get(metric)
        if cached is not None and cached[0] == fingerprint:
            return list(cached[1])
        entries = history_entries(
            history,
            metric,
            system=self._system,
            height_inches=self._height_inches,
        )
        with self._lock:
            if fingerprint == self._fingerprint:
                self._entries[metric] = (fingerprint, entries)
        return list(entries)

    def wait(self, timeout: float | None = None) -> None:
        """Block until every running background computation has finished."""
        with self._lock:
            futures = [inflight.future for inflight in self._inflight.values()]
        if futures:
            wait_futures(futures, timeout=timeout)

    def close(self) -> None:
        with self._lock:
            for inflight in self._inflight.values():
                inflight.token.cancel()
            self._inflight.clear()
        if self._owns_executor and isinstance(self._executor, ThreadPoolExecutor):
            self._executor.shutdown(wait=True)
            self._executor = None

    def _schedule(
        self,
        metric: MetricKind,
        history: tuple[Sample, ...],
        fingerprint: SeriesFingerprint,
        *,
        force: bool = False,
    ) -> Future[bool]:
        with self._lock:
            current = self._inflight.get(metric)
            if (
                not force
                and current is not None
                and current.fingerprint == fingerprint
                and not current.future.done()
            ):
                return current.future
            if current is not None:
                current.token.cancel()
                logger.debug(
                    "Cancelled %s computation (generation %d)",
                    metric.value,
                    current.token.generation,
                )
            self._generation += 1
            token = CancellationToken(self._generation)
            future = self._get_executor().submit(
                self._run, metric, history, fingerprint, token
            )
            self._inflight[metric] = _InFlight(token, fingerprint, future)
        logger.debug(
            "Scheduled %s computation over %d samples (generation %d)",
            metric.value,
            len(history),
            token.generation,
        )
        return future

    def _cancel(self, metric: MetricKind) -> None:
        with self._lock:
            inflight = self._inflight.pop(metric, None)
        if inflight is not None:
            inflight.token.cancel()

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="chart-cache"
            )
        return self._executor

    def _run(
        self,
        metric: MetricKind,
        history: tuple[Sample, ...],
        fingerprint: SeriesFingerprint,
        token: CancellationToken,
    ) -> bool:
        try:
            results = self._compute(metric, history, fingerprint, token)
        except ComputationCancelled:
            logger.debug(
                "%s computation generation %d stopped early",
                metric.value,
                token.generation,
            )
            return False
        except Exception:
            logger.exception("Chart computation for %s failed", metric.value)
            with self._lock:
                if self._is_current(metric, token):
                    del self._inflight[metric]
            return False

        with self._lock:
            if token.cancelled or not self._is_current(metric, token):
                logger.debug(
                    "Discarding superseded %s result (generation %d)",
                    metric.value,
                    token.generation,
                )
                return False
            self._store(metric, results)
            del self._inflight[metric]
        logger.debug("Published %s series (generation %d)", metric.value, token.generation)
        return True

    def _today(self) -> date:
        return _utc_day(self._now())

    def _is_current(self, metric: MetricKind, token: CancellationToken) -> bool:
        inflight = self._inflight.get(metric)
        return inflight is not None and inflight.token is token

    def _store(self, metric: MetricKind, results: dict[TimeRange, RangeSeries]) -> None:
        for time_range, series in results.items():
            self._series[(metric, time_range)] = series

    def _compute(
        self,
        metric: MetricKind,
        history: tuple[Sample, ...],
        fingerprint: SeriesFingerprint,
        token: CancellationToken | None,
    ) -> dict[TimeRange, RangeSeries]:
        check = token.raise_if_cancelled if token is not None else _no_check

        snapshot = SortedHistory(history)
        check()
        full = build_series(
            snapshot,
            metric,
            height_inches=self._height_inches,
            system=self._system,
            check=check,
        )
        check()
        now = self._now()
        as_of = _utc_day(now)
        results: dict[TimeRange, RangeSeries] = {}
        for time_range in TimeRange:
            ranged = filter_points(full, time_range, now)
            check()
            points = downsample(ranged, time_range.max_points)
            results[time_range] = RangeSeries(tuple(points), fingerprint, as_of)
        return results


def _no_check() -> None:
    return None


def _utc_day(when: datetime) -> date:
    return when.astimezone(tz.UTC).date()
