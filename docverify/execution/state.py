"""Per-example state machine: pending -> running -> {succeeded, failed, skipped}."""

from __future__ import annotations

from typing import Optional, Sequence

from docverify.errors import InvalidTransition
from docverify.types import (
    TERMINAL_STATUSES,
    ExampleBlock,
    ExampleStatus,
    ExecutionResult,
    StatementOutcome,
)

_ALLOWED: dict[str, frozenset[str]] = {
    "pending": frozenset({"running", "skipped"}),
    "running": frozenset({"succeeded", "failed", "skipped"}),
}


class ExampleTracker:
    def __init__(self, blocks: Sequence[ExampleBlock]) -> None:
        self._order = [block.id for block in blocks]
        self._status: dict[str, ExampleStatus] = {block.id: "pending" for block in blocks}
        self._results: dict[str, ExecutionResult] = {}

    def status(self, block: ExampleBlock) -> ExampleStatus:
        return self._status[block.id]

    def result(self, block: ExampleBlock) -> Optional[ExecutionResult]:
        return self._results.get(block.id)

    def _move(self, block: ExampleBlock, target: ExampleStatus) -> None:
        current = self._status[block.id]
        if target not in _ALLOWED.get(current, frozenset()):
            raise InvalidTransition(block.id, current, target)
        self._status[block.id] = target

    def start(self, block: ExampleBlock) -> None:
        self._move(block, "running")

    def succeed(self, block: ExampleBlock, outcome: StatementOutcome) -> None:
        self._move(block, "succeeded")
        self._results[block.id] = ExecutionResult(
            example_id=block.id,
            status="succeeded",
            columns=outcome.columns,
            output_rows=outcome.rows,
        )

    def fail(self, block: ExampleBlock, reason: str, message: Optional[str]) -> None:
        self._move(block, "failed")
        self._results[block.id] = ExecutionResult(
            example_id=block.id,
            status="failed",
            reason=reason,
            error_message=message,
        )

    def skip(self, block: ExampleBlock, reason: str, message: Optional[str] = None) -> None:
        self._move(block, "skipped")
        self._results[block.id] = ExecutionResult(
            example_id=block.id,
            status="skipped",
            reason=reason,
            error_message=message,
        )

    def results(self) -> tuple[ExecutionResult, ...]:
        unfinished = [bid for bid in self._order if self._status[bid] not in TERMINAL_STATUSES]
        if unfinished:
            raise InvalidTransition(unfinished[0], self._status[unfinished[0]], "reported")
        return tuple(self._results[bid] for bid in self._order)
