from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_STATEMENT_TIMEOUT_MS = 5000
_PREFIX_RE = re.compile(r"^[a-z_][a-z0-9_]{0,30}$")


@dataclass(frozen=True)
class PostgresConfig:
    """Connection configuration.

    `database_url` should come from environment (e.g. DATABASE_URL) and point
    at a role allowed to CREATE DATABASE. Do not log it.
    """

    database_url: str
    statement_timeout_ms: int = DEFAULT_STATEMENT_TIMEOUT_MS
    database_prefix: str = "docverify"

    def __post_init__(self) -> None:
        if self.statement_timeout_ms <= 0:
            raise ValueError("statement_timeout_ms must be positive")
        if not _PREFIX_RE.match(self.database_prefix):
            raise ValueError(f"invalid database prefix: {self.database_prefix!r}")
