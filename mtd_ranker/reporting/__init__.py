"""
mtd_ranker.reporting — CSV/JSON export and terminal formatting.

Modules:
  export     — results CSV (instrument + sector blocks) and JSON helpers.
  formatters — ASCII tables for Typer CLI commands.
"""
