from __future__ import annotations

from typing import ContextManager, Protocol

from docverify.types import StatementOutcome


class StatementSession(Protocol):
    def run(self, stmt: str) -> StatementOutcome:
        """Run one statement; a failure must leave the session usable."""


class StatementRunner(Protocol):
    def run_setup(self, stmt: str) -> StatementOutcome:
        """Run a definition in its own transaction and keep its effects."""

    def group(self) -> ContextManager[StatementSession]:
        """Open a session whose effects are discarded when it closes."""
