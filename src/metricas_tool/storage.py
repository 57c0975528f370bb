"""Persistencia SQLite para configuración y muestras corporales."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from metricas_tool.ffmi import height_to_inches
from metricas_tool.model import (
    MeasurementSystem,
    Sample,
    SampleSource,
    normalize_datetime,
)

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS samples (
    id TEXT PRIMARY KEY,
    date TEXT NOT NULL,
    weight_kg REAL,
    body_fat_percent REAL,
    source TEXT NOT NULL DEFAULT 'manual'
);

CREATE INDEX IF NOT EXISTS idx_samples_date ON samples(date);
"""


@dataclass(frozen=True)
class AppConfig:
    """Altura, unidades y carpeta de exportación guardadas."""

    height: float | None = None
    height_unit: str = "cm"
    measurement_system: MeasurementSystem = MeasurementSystem.METRIC
    export_dir: str = ""

    @property
    def height_inches(self) -> float | None:
        return height_to_inches(self.height, self.height_unit)


class SQLiteStore:
    """Repositorio SQLite de configuración y muestras."""

    def __init__(self, db_path: Path) -> None:
        """Open the database at ``db_path``, creating tables on first use."""
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()

    def load_config(self) -> AppConfig:
        """Devuelve la configuración guardada; claves ausentes usan defaults."""
        with self._connect() as conn:
            rows = conn.execute("SELECT key, value FROM app_config").fetchall()
        values = {row["key"]: row["value"] for row in rows}
        defaults = AppConfig()
        return AppConfig(
            height=_parse_height(values.get("height")),
            height_unit=values.get("height_unit") or defaults.height_unit,
            measurement_system=_parse_system(values.get("measurement_system")),
            export_dir=values.get("export_dir", defaults.export_dir),
        )

    def save_config(self, config: AppConfig) -> None:
        """Guarda la configuracion en tabla key/value."""
        payload = {
            "height": "" if config.height is None else repr(config.height),
            "height_unit": config.height_unit,
            "measurement_system": config.measurement_system.value,
            "export_dir": config.export_dir,
        }
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO app_config(key, value) VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                payload.items(),
            )
            conn.commit()

    def upsert_samples(self, samples: Iterable[Sample]) -> int:
        """Insert samples or update them by id. Returns the number written."""
        rows = [
            (
                s.id,
                s.date.isoformat(),
                s.weight,
                s.body_fat_percent,
                str(s.source),
            )
            for s in samples
        ]
        if not rows:
            return 0
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO samples(id, date, weight_kg, body_fat_percent, source)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    date=excluded.date,
                    weight_kg=excluded.weight_kg,
                    body_fat_percent=excluded.body_fat_percent,
                    source=excluded.source
                """,
                rows,
            )
            conn.commit()
        logger.info("Stored %d samples in %s", len(rows), self._db_path)
        return len(rows)

    def delete_sample(self, sample_id: str) -> bool:
        """Delete one sample. Returns False if the id did not exist."""
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM samples WHERE id = ?", (sample_id,))
            conn.commit()
        return cur.rowcount > 0

    def load_samples(self) -> list[Sample]:
        """All samples ascending by date."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, date, weight_kg, body_fat_percent, source
                FROM samples
                ORDER BY date, rowid
                """
            ).fetchall()
        return [
            Sample(
                id=row["id"],
                date=normalize_datetime(row["date"]),
                weight=row["weight_kg"],
                body_fat_percent=row["body_fat_percent"],
                source=SampleSource.parse(row["source"]),
            )
            for row in rows
        ]


def _parse_height(raw: str | None) -> float | None:
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _parse_system(raw: str | None) -> MeasurementSystem:
    try:
        return MeasurementSystem(raw)
    except ValueError:
        return MeasurementSystem.METRIC
