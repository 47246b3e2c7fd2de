"""Shared test fixtures for pytest.

Provides the tutorial fixture document, mock SQLAlchemy engines and a fake
statement runner used across multiple test files.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Mapping
from unittest.mock import MagicMock

import pytest

from docverify.types import StatementOutcome

FIXTURES = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def tutorial_path() -> Path:
    """The bookshop tutorial used as a realistic input document."""
    return FIXTURES / "bookshop_tutorial.md"


@pytest.fixture
def tutorial_text(tutorial_path: Path) -> str:
    return tutorial_path.read_text(encoding="utf-8")


@pytest.fixture
def mock_db_engine() -> MagicMock:
    """Mock SQLAlchemy engine supporting both `begin()` and `connect()` blocks."""
    mock_engine = MagicMock()
    mock_conn = MagicMock()
    mock_result = MagicMock()
    mock_result.returns_rows = False
    mock_result.fetchall.return_value = []
    mock_conn.execute.return_value = mock_result
    mock_conn.exec_driver_sql.return_value = mock_result
    mock_engine.begin.return_value.__enter__.return_value = mock_conn
    mock_engine.begin.return_value.__exit__.return_value = False
    mock_engine.connect.return_value.__enter__.return_value = mock_conn
    mock_engine.connect.return_value.__exit__.return_value = False
    return mock_engine


class FakeSession:
    def __init__(self, runner: "FakeRunner", group_id: int) -> None:
        self._runner = runner
        self._group_id = group_id

    def run(self, stmt: str) -> StatementOutcome:
        self._runner.calls.append(("group", self._group_id, stmt))
        return self._runner.outcome_for(stmt)


class FakeRunner:
    """In-memory StatementRunner.

    `outcomes` maps a substring of a statement to the outcome it should get;
    statements matching nothing succeed with no rows.
    """

    def __init__(self, outcomes: Mapping[str, StatementOutcome] | None = None) -> None:
        self.outcomes = dict(outcomes or {})
        self.calls: list[tuple] = []
        self.groups_opened = 0
        self.groups_closed = 0

    def outcome_for(self, stmt: str) -> StatementOutcome:
        for needle, outcome in self.outcomes.items():
            if needle in stmt:
                return outcome
        return StatementOutcome(ok=True)

    def run_setup(self, stmt: str) -> StatementOutcome:
        self.calls.append(("setup", stmt))
        return self.outcome_for(stmt)

    @contextmanager
    def group(self) -> Iterator[FakeSession]:
        self.groups_opened += 1
        try:
            yield FakeSession(self, self.groups_opened)
        finally:
            self.groups_closed += 1


@pytest.fixture
def fake_runner() -> type[FakeRunner]:
    return FakeRunner
