"""Clases base para fuentes de muestras corporales."""

from __future__ import annotations

import json
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from hashlib import sha256
from pathlib import Path

from metricas_tool.model import Sample


@dataclass(frozen=True)
class SourcePaths:
    """Container for source files."""

    path: Path


class DataSource(ABC):
    """Abstract sample source (the Sample Store seen by the engine)."""

    def __init__(self, paths: SourcePaths) -> None:
        """Create a data source.

        Args:
            paths: Source paths configuration.
        """
        self._paths = paths

    def validate(self) -> None:
        """Validate that the source file exists.

        Raises:
            FileNotFoundError: If the file is missing.
        """
        if not self._paths.path.is_file():
            raise FileNotFoundError(str(self._paths.path))

    @abstractmethod
    def load_samples(self) -> list[Sample]:
        """Parse the source into samples, ascending by date.

        Raises:
            ValueError: If the file shape is invalid.
        """


def optional_float(value: object) -> float | None:
    """Coerce to float; empty, NaN, infinite or unparsable values become None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return None
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(out):
        return None
    return out


def derived_sample_id(*values: object) -> str:
    """Stable id for rows that come without one."""
    payload = json.dumps(values, ensure_ascii=True, default=str)
    return sha256(payload.encode("utf-8")).hexdigest()[:16]
