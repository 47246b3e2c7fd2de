from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from docverify.storage.postgres.config import DEFAULT_STATEMENT_TIMEOUT_MS
from docverify.types import StatementOutcome

logger = logging.getLogger(__name__)

# Document SQL is sent verbatim: no bind-parameter parsing, no `%` interpolation
# (PL/pgSQL RAISE formats use `%` placeholders).
_VERBATIM = {"no_parameters": True}


def outcome_from_error(exc: DBAPIError) -> StatementOutcome:
    """Turn a driver error into an outcome carrying the database text verbatim."""
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    message = str(orig).strip() if orig is not None else str(exc)
    return StatementOutcome(ok=False, error_message=message, sqlstate=sqlstate)


def _set_statement_timeout(conn: Any, timeout_ms: int) -> None:
    # is_local=true: the setting ends with the surrounding transaction.
    conn.execute(
        text("SELECT set_config('statement_timeout', :ms, true)"),
        {"ms": str(int(timeout_ms))},
    )


class PostgresSession:
    """Statement session inside one open transaction; each statement gets a savepoint."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    def run(self, stmt: str) -> StatementOutcome:
        savepoint = self._conn.begin_nested()
        try:
            result = self._conn.exec_driver_sql(stmt, execution_options=_VERBATIM)
            if result.returns_rows:
                columns = tuple(result.keys())
                rows = tuple(tuple(row) for row in result.fetchall())
            else:
                columns, rows = (), None
            savepoint.commit()
        except DBAPIError as exc:
            savepoint.rollback()
            return outcome_from_error(exc)
        return StatementOutcome(ok=True, columns=columns, rows=rows)


class PostgresRunner:
    """Runs document statements against the sandbox engine."""

    def __init__(self, engine: Any, *, statement_timeout_ms: int = DEFAULT_STATEMENT_TIMEOUT_MS) -> None:
        self._engine = engine
        self._timeout_ms = statement_timeout_ms

    def run_setup(self, stmt: str) -> StatementOutcome:
        """Run a definition in its own transaction and commit it on success."""
        with self._engine.connect() as conn:
            trans = conn.begin()
            try:
                _set_statement_timeout(conn, self._timeout_ms)
                conn.exec_driver_sql(stmt, execution_options=_VERBATIM)
            except DBAPIError as exc:
                trans.rollback()
                return outcome_from_error(exc)
            trans.commit()
        return StatementOutcome(ok=True)

    @contextmanager
    def group(self) -> Iterator[PostgresSession]:
        """Open a transaction that is always rolled back on exit."""
        with self._engine.connect() as conn:
            trans = conn.begin()
            try:
                _set_statement_timeout(conn, self._timeout_ms)
                yield PostgresSession(conn)
            finally:
                trans.rollback()
                logger.debug("Rolled back example transaction")
