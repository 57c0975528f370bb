"""CLI para importar, estimar y graficar métricas corporales."""

from __future__ import annotations

import argparse
import logging
from datetime import datetime
from pathlib import Path

from dateutil import tz

from metricas_tool.cache import ChartCache
from metricas_tool.excel_writer import ExcelLayout, write_metrics_xlsx
from metricas_tool.ffmi import METERS_PER_INCH, normalized_ffmi
from metricas_tool.model import (
    ChartPoint,
    EstimatedMetric,
    MeasurementSystem,
    MetricKind,
    normalize_datetime,
    to_display_value,
    unit_label,
)
from metricas_tool.ranges import TimeRange
from metricas_tool.series import (
    entries_to_frame,
    estimate_metric,
    format_value,
    moving_average,
    points_to_frame,
    series_stats,
)
from metricas_tool.sources.base import DataSource
from metricas_tool.sources.csv_log import CsvLogPaths, CsvLogSource
from metricas_tool.sources.json_export import JsonExportPaths, JsonExportSource
from metricas_tool.storage import AppConfig, SQLiteStore

logger = logging.getLogger(__name__)

PLACEHOLDER = "—"
_METRICS = [m.value for m in MetricKind]
_RANGES = [r.value for r in TimeRange]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    parser = argparse.ArgumentParser(
        description="Estimación y series de peso, % de grasa y FFMI."
    )
    parser.add_argument(
        "--db",
        default=str(Path.home() / ".metricas_tool" / "metricas.sqlite3"),
        help="Base SQLite (default: ~/.metricas_tool/metricas.sqlite3).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log DEBUG.")
    sub = parser.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Importar muestras desde CSV o JSON.")
    imp.add_argument("file", help="Archivo .csv o .json.")

    cfg = sub.add_parser("config", help="Ver o cambiar la configuración.")
    cfg.add_argument("--height", type=float, help="Altura.")
    cfg.add_argument("--height-unit", choices=["cm", "in"], help="Unidad de altura.")
    cfg.add_argument(
        "--units", choices=[s.value for s in MeasurementSystem], help="Sistema."
    )
    cfg.add_argument("--export-dir", help="Directorio de exportación.")

    est = sub.add_parser("estimate", help="Estimar una métrica en una fecha.")
    est.add_argument("--metric", choices=_METRICS, default="weight")
    est.add_argument("--date", help="Fecha objetivo (default: ahora).")

    chart = sub.add_parser("chart", help="Serie reducida para un rango.")
    chart.add_argument("--metric", choices=_METRICS, default="weight")
    chart.add_argument("--range", choices=_RANGES, default="3M", dest="time_range")
    chart.add_argument("--trend", action="store_true", help="Media móvil de 7.")

    exp = sub.add_parser("export", help="Exportar entradas y serie a Excel.")
    exp.add_argument("--metric", choices=_METRICS, default="weight")
    exp.add_argument("--range", choices=_RANGES, default="All", dest="time_range")
    exp.add_argument("--out", help="Ruta .xlsx (default: export_dir configurado).")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the CLI.

    Returns:
        Exit code (0 on success).
    """
    ns = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    store = SQLiteStore(Path(ns.db).expanduser())

    if ns.command == "import":
        return _cmd_import(store, Path(ns.file).expanduser())
    if ns.command == "config":
        return _cmd_config(store, ns)
    if ns.command == "estimate":
        return _cmd_estimate(store, MetricKind(ns.metric), ns.date)
    if ns.command == "chart":
        return _cmd_chart(
            store, MetricKind(ns.metric), TimeRange(ns.time_range), ns.trend
        )
    return _cmd_export(store, MetricKind(ns.metric), TimeRange(ns.time_range), ns.out)


def source_for(path: Path) -> DataSource:
    """Pick the reader for a file by extension."""
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return CsvLogSource(CsvLogPaths(path=path))
    if suffix == ".json":
        return JsonExportSource(JsonExportPaths(path=path))
    raise ValueError(f"Unsupported file type: {path.name}")


def _cmd_import(store: SQLiteStore, path: Path) -> int:
    source = source_for(path)
    source.validate()
    samples = source.load_samples()
    written = store.upsert_samples(samples)
    print(f"OK: {written} muestras importadas desde {path}")
    return 0


def _cmd_config(store: SQLiteStore, ns: argparse.Namespace) -> int:
    current = store.load_config()
    updated = AppConfig(
        height=current.height if ns.height is None else ns.height,
        height_unit=ns.height_unit or current.height_unit,
        measurement_system=(
            MeasurementSystem(ns.units) if ns.units else current.measurement_system
        ),
        export_dir=current.export_dir if ns.export_dir is None else ns.export_dir,
    )
    if updated != current:
        store.save_config(updated)
    height = PLACEHOLDER if updated.height is None else f"{updated.height:g}"
    print(f"height: {height} {updated.height_unit}")
    print(f"units: {updated.measurement_system.value}")
    print(f"export_dir: {updated.export_dir or PLACEHOLDER}")
    return 0


def describe(
    metric: MetricKind, result: EstimatedMetric | None, system: MeasurementSystem
) -> str:
    """One-line human description of an estimate."""
    if result is None:
        return PLACEHOLDER
    value = to_display_value(metric, result.value, system)
    text = format_value(value, unit_label(metric, system))
    if not result.is_estimated:
        return f"{text} (medido)"
    return f"{text} ({result.kind.value}, confianza {result.confidence.value})"


def _cmd_estimate(store: SQLiteStore, metric: MetricKind, raw_date: str | None) -> int:
    config = store.load_config()
    when = normalize_datetime(raw_date) if raw_date else datetime.now(tz.UTC)
    result = estimate_metric(metric, when, store.load_samples(), config.height_inches)
    print(f"{metric.value} {when:%Y-%m-%d}: {describe(metric, result, config.measurement_system)}")
    if metric is MetricKind.FFMI and result is not None and config.height_inches:
        adjusted = normalized_ffmi(result.value, config.height_inches * METERS_PER_INCH)
        print(f"ffmi normalizado: {adjusted:.1f}")
    return 0


def _load_series(
    store: SQLiteStore, metric: MetricKind, time_range: TimeRange
) -> tuple[ChartCache, list[ChartPoint]]:
    config = store.load_config()
    cache = ChartCache(
        height_inches=config.height_inches, system=config.measurement_system
    )
    cache.set_history(store.load_samples())
    state = cache.series(metric, time_range)
    if state.is_loading:
        logger.info("Computing %s series in background...", metric.value)
        cache.wait()
        state = cache.series(metric, time_range)
    return cache, state.points


def _cmd_chart(
    store: SQLiteStore, metric: MetricKind, time_range: TimeRange, trend: bool
) -> int:
    cache, points = _load_series(store, metric, time_range)
    cache.close()
    if trend:
        points = moving_average(points)
    if not points:
        print(PLACEHOLDER)
        return 0
    unit = unit_label(metric, store.load_config().measurement_system)
    for p in points:
        mark = "*" if p.is_estimated else " "
        print(f"{p.date:%Y-%m-%d %H:%M} {mark} {format_value(p.value, unit)}")
    stats = series_stats(points)
    if stats is not None:
        print(
            f"avg {format_value(stats.average, unit)} | "
            f"Δ {stats.delta:+.2f} ({stats.percentage_change:+.1f}%) | "
            f"range {format_value(stats.minimum, unit)} – {format_value(stats.maximum, unit)}"
        )
    return 0


def _cmd_export(
    store: SQLiteStore, metric: MetricKind, time_range: TimeRange, out: str | None
) -> int:
    config = store.load_config()
    cache, points = _load_series(store, metric, time_range)
    entries = cache.entries(metric)
    cache.close()

    if out:
        out_path = Path(out).expanduser()
    else:
        out_dir = Path(config.export_dir or ".").expanduser()
        ts = datetime.now(tz=tz.UTC).strftime("%Y-%m-%d_%H-%M-%S")
        out_path = out_dir / f"metricas_{metric.value}_{ts}.xlsx"

    write_metrics_xlsx(
        entries_to_frame(entries), points_to_frame(points), out_path, ExcelLayout()
    )
    print(f"OK: {len(entries)} entradas, {len(points)} puntos")
    print(f"OK: Output: {out_path}")
    return 0
