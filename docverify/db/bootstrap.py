"""Apply the bookshop schema (and optional stub schemas) to a sandbox database.

`schema.sql` holds the bookshop table exactly as the tutorial documents it.
Vignette examples reference tables the tutorial never defines (orders,
accounts, beds, ...); pass extra schema files with stub tables for those, or
let the executor skip the examples as not executable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Sequence

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from docverify.errors import SandboxError
from docverify.loader.classify import bare_name, normalize_name
from docverify.loader.statements import split_sql

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


class NameCatalog:
    """Set of relation or routine names known to exist (or to be created) in the sandbox."""

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._names: set[str] = set()
        for name in names:
            self.add(name)

    def add(self, name: str) -> None:
        self._names.add(normalize_name(name))

    def __contains__(self, name: str) -> bool:
        if name in self._names:
            return True
        if "." in name:
            return False
        # Unqualified references resolve through search_path; accept any schema.
        return any(bare_name(known) == name for known in self._names)

    def __len__(self) -> int:
        return len(self._names)

    def missing(self, names: Iterable[str]) -> tuple[str, ...]:
        return tuple(n for n in names if n not in self)


@dataclass(frozen=True)
class SandboxCatalog:
    """What the sandbox holds before any document statement runs."""

    relations: NameCatalog
    routines: NameCatalog


def apply_sql_file(engine: Any, path: Path) -> int:
    """Run every statement of a SQL file in one transaction. Returns the statement count."""
    statements = split_sql(path.read_text(encoding="utf-8"))
    with engine.begin() as conn:
        for stmt in statements:
            conn.exec_driver_sql(stmt, execution_options={"no_parameters": True})
    logger.debug("Applied %d statements from %s", len(statements), path.name)
    return len(statements)


def _quoted_catalog(rows: Iterable[tuple[str, str]]) -> NameCatalog:
    catalog = NameCatalog()
    for schema, name in rows:
        # Catalog names are already case-folded; quote them so normalization keeps them.
        catalog.add(f'"{schema}"."{name}"')
    return catalog


def known_relations(engine: Any) -> NameCatalog:
    stmt = text(
        """
        SELECT table_schema, table_name
        FROM information_schema.tables
        WHERE table_schema NOT IN ('pg_catalog', 'information_schema')
        ORDER BY table_schema, table_name
        """
    )
    with engine.begin() as conn:
        rows = conn.execute(stmt).fetchall()
    return _quoted_catalog(rows)


def known_routines(engine: Any) -> NameCatalog:
    """Functions and procedures the server already provides (pg_catalog, extensions, stub files)."""
    stmt = text(
        """
        SELECT DISTINCT n.nspname, p.proname
        FROM pg_catalog.pg_proc p
        JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
        WHERE n.nspname !~ '^pg_(toast|temp)'
        """
    )
    with engine.begin() as conn:
        rows = conn.execute(stmt).fetchall()
    return _quoted_catalog(rows)


def bootstrap(engine: Any, extra_schema_files: Sequence[Path] = ()) -> SandboxCatalog:
    """Create the bookshop schema plus any stub schemas; return what the sandbox then holds."""
    for path in (SCHEMA_PATH, *extra_schema_files):
        try:
            apply_sql_file(engine, path)
        except (OSError, UnicodeDecodeError) as exc:
            raise SandboxError(f"Schema file {path} is not readable: {exc}") from exc
        except DBAPIError as exc:
            raise SandboxError(f"Schema file {path.name} failed: {exc.orig}") from exc

    catalog = SandboxCatalog(relations=known_relations(engine), routines=known_routines(engine))
    logger.info(
        "Sandbox schema ready (%d relations, %d routines)",
        len(catalog.relations),
        len(catalog.routines),
    )
    return catalog
