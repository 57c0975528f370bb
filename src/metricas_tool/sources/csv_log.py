"""Lectura de registros corporales exportados como CSV."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import pandas as pd

from metricas_tool.model import Sample, SampleSource, normalize_datetime
from metricas_tool.sources.base import (
    DataSource,
    SourcePaths,
    derived_sample_id,
    optional_float,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CsvLogPaths(SourcePaths):
    """Path of a CSV body log."""

    # path: .../registro.csv


class CsvLogSource(DataSource):
    """CSV body log reader.

    Expected columns (case-insensitive, English or Spanish headers):
    id, date, weight_kg, body_fat_percent, source.
    """

    def load_samples(self) -> list[Sample]:
        """Load samples from the CSV file.

        Returns:
            Samples ascending by date. Rows without a date or without any
            value are skipped.

        Raises:
            ValueError: If there is no date column.
        """
        df = pd.read_csv(self._paths.path, dtype=str, keep_default_na=False)
        df = df.rename(columns={c: c.strip() for c in df.columns})
        cols = list(df.columns)

        date_col = _find_col(cols, [r"^date", r"^fecha", r"datetime"])
        if date_col is None:
            raise ValueError(f"No date column in {self._paths.path}")
        id_col = _find_col(cols, [r"^id$"])
        weight_col = _find_col(cols, [r"\bweight", r"\bpeso"])
        fat_col = _find_col(cols, [r"body.?fat", r"grasa", r"\bbf\b"])
        source_col = _find_col(cols, [r"^source", r"^origen"])

        out: list[Sample] = []
        for row in df.to_dict(orient="records"):
            sample = _row_to_sample(row, id_col, date_col, weight_col, fat_col, source_col)
            if sample is not None:
                out.append(sample)
        out.sort(key=lambda s: s.date)
        logger.info("Loaded %d samples from %s", len(out), self._paths.path)
        return out


def _find_col(columns: list[str], patterns: list[str]) -> str | None:
    for pat in patterns:
        rx = re.compile(pat, re.IGNORECASE)
        for c in columns:
            if rx.search(c):
                return c
    return None


def _row_to_sample(
    row: dict[str, object],
    id_col: str | None,
    date_col: str,
    weight_col: str | None,
    fat_col: str | None,
    source_col: str | None,
) -> Sample | None:
    raw_date = str(row.get(date_col) or "").strip()
    if not raw_date:
        return None
    weight = optional_float(row.get(weight_col)) if weight_col else None
    body_fat = optional_float(row.get(fat_col)) if fat_col else None
    if weight is None and body_fat is None:
        return None
    try:
        when = normalize_datetime(raw_date)
        source = SampleSource.parse(row.get(source_col) if source_col else None)
        sample_id = str(row.get(id_col) or "").strip() if id_col else ""
        return Sample(
            id=sample_id or derived_sample_id(when, weight, body_fat),
            date=when,
            weight=weight,
            body_fat_percent=body_fat,
            source=source,
        )
    except (ValueError, OverflowError) as exc:
        logger.warning("Skipping CSV row %r: %s", row, exc)
        return None
