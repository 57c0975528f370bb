"""Punto de entrada de ``python -m metricas_tool``."""

from __future__ import annotations

from metricas_tool.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
