from __future__ import annotations

"""Command-line entrypoints for the Violation Reporter.

This module implements three maintenance workflows:

1. Create the ``violations`` table in MySQL.
2. Dry-run the line parser over a local text file (or stdin) and print the
   records it would store.
3. Print the weekly report for the current week, or for the week
   containing a given date.

Usage
-----
The module is intended to be executed via ``python -m`` or through the
``violation-reporter`` console script.
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

from .config import load_config
from .db import StorageError, ViolationStore, get_conn, init_schema
from .logs import configure_logging
from .parser import parse_violations
from .report import format_report_text
from .tracker import ViolationTracker
from .week import get_timezone, now_in


def _read_source(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    p = Path(path)
    if not p.exists():
        print(f"File not found: {p}", file=sys.stderr)
        sys.exit(1)
    return p.read_text(encoding="utf-8", errors="ignore")


def cmd_init_db(args) -> None:
    """CLI command: create the database schema."""
    cfg = load_config()
    conn = get_conn(cfg.db)
    try:
        init_schema(conn)
    finally:
        conn.close()
    print(f"Schema ready in database {cfg.db.database}")


def cmd_parse(args) -> None:
    """CLI command: print the violations found in a file without storing them.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed arguments; must contain ``path``.
    """
    records = parse_violations(_read_source(args.path))
    for rec in records:
        print(f"{rec.guild_tag}\t{rec.user_id}\t{rec.name}")
    print(f"Found {len(records)} violation line(s)", file=sys.stderr)


def cmd_report(args) -> None:
    """CLI command: print a weekly report.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed arguments; may include ``--week-of``.
    """
    cfg = load_config()
    tz = get_timezone(cfg.report.timezone)
    if args.week_of:
        try:
            day = datetime.strptime(args.week_of, "%Y-%m-%d")
        except ValueError:
            print(f"Invalid date {args.week_of!r}, expected YYYY-MM-DD", file=sys.stderr)
            sys.exit(1)
        now = tz.localize(day) if hasattr(tz, "localize") else day.replace(tzinfo=tz)
    else:
        now = now_in(tz)

    conn = get_conn(cfg.db)
    try:
        init_schema(conn)
        report = ViolationTracker(ViolationStore(conn), tz).weekly_report(now)
    finally:
        conn.close()
    print(format_report_text(report))


def build_argparser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser with subcommands.
    """
    p = argparse.ArgumentParser(prog="violation-reporter", description="Track weekly rule breaks from moderation logs")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_init = sub.add_parser("init-db", help="Create the violations table")
    p_init.set_defaults(func=cmd_init_db)

    p_parse = sub.add_parser("parse", help="Show the violations found in a text file")
    p_parse.add_argument("path", help="Path to text file of log lines, or - for stdin")
    p_parse.set_defaults(func=cmd_parse)

    p_report = sub.add_parser("report", help="Print the weekly report")
    p_report.add_argument("--week-of", default=None, help="Any date (YYYY-MM-DD) in the week to report")
    p_report.set_defaults(func=cmd_report)

    return p


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint.

    Parameters
    ----------
    argv : list of str, optional
        Argument vector for parsing. If ``None``, defaults to
        ``sys.argv[1:]``.
    """
    p = build_argparser()
    args = p.parse_args(argv)
    cfg = load_config()
    configure_logging(cfg.log_level, cfg.log_file)
    try:
        args.func(args)
    except StorageError as e:
        print(f"Database error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
