"""Run classified example blocks against a statement runner.

Order of work:

1. Setup phase: schema_def, function_def and procedure_def blocks in document
   order, each committed on its own.
2. Example phase: invocation and query blocks in document order. Blocks from
   the same fence share one transaction that is always rolled back, so an
   example and the query showing its effect see each other while nothing
   leaks into later fences or later runs. Document BEGIN/COMMIT/ROLLBACK
   statements are never sent; the executor owns the transaction.

Per-example problems (unresolved names, failed dependencies, missing
relations, database errors, timeouts) are recorded and the run continues.
"""

from __future__ import annotations

import itertools
import logging
from typing import Optional, Sequence

from docverify.db.bootstrap import NameCatalog
from docverify.execution.interfaces import StatementRunner
from docverify.execution.state import ExampleTracker
from docverify.loader.classify import created_relation, names_match
from docverify.types import (
    DEFINITION_KINDS,
    SETUP_KINDS,
    ExampleBlock,
    ExecutionResult,
    StatementOutcome,
)

logger = logging.getLogger(__name__)

QUERY_CANCELED = "57014"
# duplicate_schema, duplicate_table, duplicate_object
DUPLICATE_OBJECT_STATES = frozenset({"42P06", "42P07", "42710"})


class Executor:
    def __init__(
        self,
        runner: StatementRunner,
        *,
        catalog: NameCatalog,
        routines: Optional[NameCatalog] = None,
    ) -> None:
        self._runner = runner
        self._catalog = catalog
        # Routines the server provides before the document runs (pg_catalog, stub files).
        self._routines = routines if routines is not None else NameCatalog()

    def run(self, blocks: Sequence[ExampleBlock]) -> tuple[ExecutionResult, ...]:
        tracker = ExampleTracker(blocks)
        position = {block.id: idx for idx, block in enumerate(blocks)}
        definitions = [b for b in blocks if b.kind in DEFINITION_KINDS]

        for block in blocks:
            if block.kind == "schema_def":
                created = created_relation(block.raw_text)
                if created is not None:
                    self._catalog.add(created)

        setup = [b for b in blocks if b.kind in SETUP_KINDS]
        logger.info("Running %d definitions", len(setup))
        for block in setup:
            if self._precheck(block, tracker, definitions, position):
                self._run_setup(block, tracker)

        examples = [b for b in blocks if b.kind not in SETUP_KINDS]
        logger.info("Running %d examples", len(examples))
        for _, fence_blocks in itertools.groupby(examples, key=lambda b: b.fence):
            runnable = []
            for block in fence_blocks:
                if self._precheck(block, tracker, definitions, position):
                    runnable.append(block)
            if runnable:
                self._run_group(runnable, tracker)

        return tracker.results()

    def _precheck(
        self,
        block: ExampleBlock,
        tracker: ExampleTracker,
        definitions: Sequence[ExampleBlock],
        position: dict[str, int],
    ) -> bool:
        """Skip the block before execution if it cannot run; return True if it can."""
        if block.kind == "transaction_control":
            tracker.skip(block, "transaction_control", "each fence runs in a transaction that is rolled back")
            return False

        for name in block.called_names:
            definition = _latest_definition(name, definitions, position, position[block.id])
            if definition is None:
                if name in self._routines:
                    continue
                tracker.skip(block, "unresolved", f"no preceding definition of {name}")
                logger.warning("%s unresolved: %s is never defined before line %d", block.id, name, block.line)
                return False
            if tracker.status(definition) != "succeeded":
                dep = tracker.result(definition)
                detail = dep.status if dep.reason is None else f"{dep.status}: {dep.reason}"
                tracker.skip(
                    block,
                    "dependency_failed",
                    f"definition {definition.id} of {name} did not succeed ({detail})",
                )
                return False

        missing = self._catalog.missing(block.relations)
        if missing:
            tracker.skip(block, "not_executable", f"undefined relation(s): {', '.join(missing)}")
            logger.debug("%s skipped: undefined relations %s", block.id, missing)
            return False
        return True

    # ---- setup phase

    def _run_setup(self, block: ExampleBlock, tracker: ExampleTracker) -> None:
        tracker.start(block)
        outcome = self._runner.run_setup(block.raw_text)
        if outcome.ok:
            tracker.succeed(block, outcome)
        elif block.kind == "schema_def" and outcome.sqlstate in DUPLICATE_OBJECT_STATES:
            tracker.skip(block, "already_provisioned", outcome.error_message)
        else:
            self._record_failure(block, outcome, tracker)

    # ---- example phase

    def _run_group(self, blocks: Sequence[ExampleBlock], tracker: ExampleTracker) -> None:
        with self._runner.group() as session:
            for block in blocks:
                tracker.start(block)
                outcome = session.run(block.raw_text)
                if outcome.ok:
                    tracker.succeed(block, outcome)
                else:
                    self._record_failure(block, outcome, tracker)

    def _record_failure(self, block: ExampleBlock, outcome: StatementOutcome, tracker: ExampleTracker) -> None:
        reason = "timeout" if outcome.sqlstate == QUERY_CANCELED else "execution_error"
        tracker.fail(block, reason, outcome.error_message)
        logger.warning("%s (line %d) failed: %s", block.id, block.line, outcome.error_message)


def _latest_definition(
    name: str,
    definitions: Sequence[ExampleBlock],
    position: dict[str, int],
    before: int,
) -> Optional[ExampleBlock]:
    """Most recent definition of `name` that precedes position `before`."""
    found = None
    for block in definitions:
        if position[block.id] >= before:
            break
        if block.declared_name is not None and names_match(name, block.declared_name):
            found = block
    return found
