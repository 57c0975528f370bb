"""Lectura de exportaciones JSON de métricas corporales."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from metricas_tool.model import Sample, SampleSource, normalize_datetime
from metricas_tool.sources.base import (
    DataSource,
    SourcePaths,
    derived_sample_id,
    optional_float,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JsonExportPaths(SourcePaths):
    """Path of a JSON metrics export."""


class JsonExportSource(DataSource):
    """JSON export reader: a list of ``{id, date, weight, bodyFatPercent, source}``."""

    def load_samples(self) -> list[Sample]:
        """Parse the JSON export into samples.

        Raises:
            ValueError: If the JSON is not a list.
        """
        text = self._paths.path.read_text(encoding="utf-8")
        raw = _extract_json_list(text)
        if not isinstance(raw, list):
            raise ValueError("Metrics JSON must be a list")

        out: list[Sample] = []
        for item in raw:
            sample = _item_to_sample(item)
            if sample is not None:
                out.append(sample)
        out.sort(key=lambda s: s.date)
        logger.info("Loaded %d samples from %s", len(out), self._paths.path)
        return out


def _extract_json_list(text: str) -> Any:
    """Extract JSON array from text, tolerating leading non-JSON (e.g. log lines)."""
    start = text.find("[")
    if start >= 0:
        return json.loads(text[start:])
    return json.loads(text)


def _first_key(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None


def _item_to_sample(item: Any) -> Sample | None:
    """Convert one dict into a Sample; None if it has no date or no values."""
    if not isinstance(item, dict):
        return None
    raw_date = _first_key(item, "date", "datetime", "timestamp")
    weight = optional_float(_first_key(item, "weight", "weight_kg"))
    body_fat = optional_float(
        _first_key(item, "bodyFatPercent", "body_fat_percent", "bodyFatPercentage")
    )
    if raw_date is None or (weight is None and body_fat is None):
        return None
    try:
        when = normalize_datetime(str(raw_date))
        source = SampleSource.parse(item.get("source"))
        sample_id = str(item.get("id") or "").strip()
        return Sample(
            id=sample_id or derived_sample_id(when, weight, body_fat),
            date=when,
            weight=weight,
            body_fat_percent=body_fat,
            source=source,
        )
    except (ValueError, OverflowError) as exc:
        logger.warning("Skipping JSON item %r: %s", item, exc)
        return None
