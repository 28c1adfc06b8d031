"""Punto de entrada: python -m salud_diario."""

from __future__ import annotations

from salud_diario.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
