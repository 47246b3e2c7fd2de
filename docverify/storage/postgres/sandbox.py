from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError, DBAPIError

from docverify.errors import SandboxError
from docverify.storage.postgres.config import PostgresConfig

logger = logging.getLogger(__name__)

# Plain postgresql:// URLs would pick SQLAlchemy's default driver, which may not be installed.
_BARE_DRIVERNAMES = frozenset({"postgresql", "postgres"})


def engine_url(database_url: str) -> URL:
    """Parse DATABASE_URL, defaulting the driver to psycopg2."""
    url = make_url(database_url)
    if url.drivername in _BARE_DRIVERNAMES:
        url = url.set(drivername="postgresql+psycopg2")
    return url


class Sandbox:
    """Throwaway database for a single verification run.

    Usage::

        with Sandbox(config=config) as engine:
            ...

    The database is created on enter through an AUTOCOMMIT admin connection
    and dropped on exit, whether or not the body raised.
    """

    def __init__(self, *, config: PostgresConfig) -> None:
        self._config = config
        self._url: URL | None = None
        self._admin_engine: Any | None = None
        self._engine: Engine | None = None
        self.database_name: Optional[str] = None

    def _get_admin_engine(self) -> Any:
        if self._admin_engine is None:
            # Do not log the URL (it may contain secrets).
            self._admin_engine = create_engine(
                self._url,
                echo=False,
                pool_pre_ping=True,
                isolation_level="AUTOCOMMIT",
            )
        return self._admin_engine

    def __enter__(self) -> Engine:
        name = f"{self._config.database_prefix}_{uuid.uuid4().hex[:12]}"
        try:
            self._url = engine_url(self._config.database_url)
        except ArgumentError as exc:
            # The parser message echoes the URL, credentials included.
            raise SandboxError("DATABASE_URL is not a valid database URL") from exc
        admin = self._get_admin_engine()
        try:
            with admin.connect() as conn:
                conn.execute(text(f'CREATE DATABASE "{name}"'))
        except DBAPIError as exc:
            admin.dispose()
            self._admin_engine = None
            raise SandboxError(f"Unable to create sandbox database: {exc.orig}") from exc

        self.database_name = name
        logger.info("Created sandbox database %s", name)

        self._engine = create_engine(self._url.set(database=name), echo=False, pool_pre_ping=True)
        return self._engine

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close(raise_errors=exc_type is None)
        return False

    def close(self, *, raise_errors: bool = True) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

        name = self.database_name
        if name is None:
            return

        admin = self._get_admin_engine()
        try:
            with admin.connect() as conn:
                conn.execute(text(f'DROP DATABASE IF EXISTS "{name}" WITH (FORCE)'))
            logger.info("Dropped sandbox database %s", name)
        except DBAPIError as exc:
            logger.error("Failed to drop sandbox database %s: %s", name, exc.orig)
            if raise_errors:
                raise SandboxError(f"Unable to drop sandbox database {name}: {exc.orig}") from exc
        finally:
            self.database_name = None
            admin.dispose()
            self._admin_engine = None
