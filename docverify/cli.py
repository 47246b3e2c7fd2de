#!/usr/bin/env python3
"""Verify the SQL examples of a PostgreSQL functions/procedures tutorial.

Usage:
  docverify docs/functions.md
  docverify docs/functions.md --format json --schema-file stubs/vignettes.sql
  docverify docs/functions.md --list

Exit codes:
  0 = every example succeeded or was skipped
  1 = at least one example failed
  2 = the run could not happen (parse error, DATABASE_URL missing, sandbox error)

Requirements:
  - DATABASE_URL must be set (except with --list) and allow CREATE DATABASE
  - SQLAlchemy + psycopg2-binary
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from docverify.errors import DocVerifyError, ParseError
from docverify.export import RENDERERS
from docverify.loader import DEFAULT_SQL_LANGS, load_document
from docverify.storage.postgres.config import DEFAULT_STATEMENT_TIMEOUT_MS, PostgresConfig
from docverify.verify import verify_document

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_ERROR = 2


def _default_timeout_ms() -> int:
    raw = os.getenv("DOCVERIFY_STATEMENT_TIMEOUT_MS")
    if not raw:
        return DEFAULT_STATEMENT_TIMEOUT_MS
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"DOCVERIFY_STATEMENT_TIMEOUT_MS must be an integer, got {raw!r}") from None


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the SQL examples of a markdown document against PostgreSQL.")
    parser.add_argument("path", type=Path, help="Markdown document to verify")
    parser.add_argument(
        "--format",
        choices=sorted(RENDERERS.keys()),
        default="text",
        help="Report format (default: text)",
    )
    parser.add_argument(
        "--schema-file",
        action="append",
        type=Path,
        default=[],
        help="Extra SQL applied after the bookshop schema, e.g. stub tables for vignettes (repeatable)",
    )
    parser.add_argument(
        "--statement-timeout-ms",
        type=int,
        default=None,
        help=f"Per-statement timeout (default: $DOCVERIFY_STATEMENT_TIMEOUT_MS or {DEFAULT_STATEMENT_TIMEOUT_MS})",
    )
    parser.add_argument(
        "--sql-lang",
        action="append",
        default=None,
        help="Fence language treated as SQL (repeatable; default: " + ", ".join(sorted(DEFAULT_SQL_LANGS)) + ")",
    )
    parser.add_argument(
        "--database-prefix",
        default="docverify",
        help="Name prefix of the throwaway database (default: docverify)",
    )
    parser.add_argument("--list", action="store_true", help="Only parse and list the classified examples")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def _list_examples(path: Path, langs: frozenset[str]) -> int:
    blocks = load_document(path.read_text(encoding="utf-8"), langs)
    for block in blocks:
        name = block.declared_name or "-"
        print(f"{block.id}  line {block.line:<5} {block.kind:<19} {name}")
    print(f"{len(blocks)} examples")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    langs = frozenset(lang.lower() for lang in args.sql_lang) if args.sql_lang else DEFAULT_SQL_LANGS

    if not args.path.is_file():
        print(f"error: {args.path} is not a readable file", file=sys.stderr)
        return EXIT_ERROR
    for schema_file in args.schema_file:
        if not schema_file.is_file():
            print(f"error: schema file {schema_file} is not a readable file", file=sys.stderr)
            return EXIT_ERROR

    try:
        if args.list:
            return _list_examples(args.path, langs)

        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            print("error: DATABASE_URL is not set", file=sys.stderr)
            return EXIT_ERROR

        try:
            timeout_ms = (
                args.statement_timeout_ms if args.statement_timeout_ms is not None else _default_timeout_ms()
            )
            # Do not echo the database_url or log it (contains credentials)
            config = PostgresConfig(
                database_url=database_url,
                statement_timeout_ms=timeout_ms,
                database_prefix=args.database_prefix,
            )
        except ValueError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return EXIT_ERROR

        report = verify_document(args.path, config=config, schema_files=args.schema_file, langs=langs)
    except ParseError as exc:
        print(f"parse-error: {args.path}: {exc}", file=sys.stderr)
        return EXIT_ERROR
    except (OSError, UnicodeDecodeError) as exc:
        print(f"error: cannot read {args.path}: {exc}", file=sys.stderr)
        return EXIT_ERROR
    except DocVerifyError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR

    sys.stdout.write(RENDERERS[args.format](report))
    return EXIT_FAILURES if report.has_failures else EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
