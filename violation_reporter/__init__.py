"""Violation Reporter package.

This package reads violation lines posted by a moderation bot in a Discord
log channel, stores them in MySQL, and reports weekly rule breaks. It
offers:

- A live bot that ingests the log channel and posts warnings and weekly
  reports (``violation_reporter.bot``)
- A CLI for schema setup, parser dry-runs and ad-hoc reports
  (``violation_reporter.ingest``)

Notes
-----
- See ``violation_reporter.parser`` for the log line parser.
- See ``violation_reporter.db`` for schema and persistence helpers.
- See ``violation_reporter.tracker`` for weekly counting and reports.
"""

__all__ = []
