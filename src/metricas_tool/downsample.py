"""Reducción de series con Largest-Triangle-Three-Buckets (LTTB)."""

from __future__ import annotations

import math
from collections.abc import Sequence

from metricas_tool.model import ChartPoint


def downsample(points: Sequence[ChartPoint], target_count: int) -> list[ChartPoint]:
    """Reduce ``points`` to at most ``target_count`` visually representative points.

    The first and last points are always kept. The interior is split into
    ``target_count - 2`` buckets; from each bucket the point forming the
    largest triangle with the previously selected point and the average of the
    next bucket is kept. x is seconds since the epoch, y the value.

    Args:
        points: Series ascending by date.
        target_count: Maximum number of points in the result.

    Returns:
        The input unchanged (as a list) when it already fits or when
        ``target_count < 3``.
    """
    count = len(points)
    if count <= target_count or target_count < 3:
        return list(points)

    xs = [p.timestamp for p in points]
    ys = [p.value for p in points]
    bucket_size = (count - 2) / (target_count - 2)

    sampled: list[ChartPoint] = [points[0]]
    a = 0
    for bucket in range(target_count - 2):
        start = math.floor(bucket * bucket_size) + 1
        end = min(math.floor((bucket + 1) * bucket_size) + 1, count - 1)

        avg_start = math.floor((bucket + 1) * bucket_size) + 1
        avg_end = min(math.floor((bucket + 2) * bucket_size) + 1, count)
        cx, cy = _average(xs, ys, avg_start, avg_end)

        if start >= end:
            continue

        ax, ay = xs[a], ys[a]
        max_area = -1.0
        selected = start
        for i in range(start, end):
            area = abs(ax * (ys[i] - cy) + xs[i] * (cy - ay) + cx * (ay - ys[i])) / 2
            if area > max_area:
                max_area = area
                selected = i

        sampled.append(points[selected])
        a = selected

    sampled.append(points[-1])
    return sampled


def _average(
    xs: Sequence[float], ys: Sequence[float], start: int, end: int
) -> tuple[float, float]:
    """Mean (x, y) of ``[start, end)``, clamped to the series bounds."""
    last = len(xs) - 1
    start = min(max(start, 0), last)
    end = max(min(end, len(xs)), start + 1)
    n = end - start
    return sum(xs[start:end]) / n, sum(ys[start:end]) / n
