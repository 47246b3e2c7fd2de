"""Aggregate execution results into a run report."""

from __future__ import annotations

from typing import Sequence

from docverify.types import ExampleBlock, ExecutionResult, ReportEntry, RunReport

STATUS_ORDER = ("succeeded", "failed", "skipped")


def build_report(source: str, blocks: Sequence[ExampleBlock], results: Sequence[ExecutionResult]) -> RunReport:
    """Pair each block with its result, in document order, and count by status.

    Raises ValueError if a block has no result or a result has no block.
    """
    by_id = {result.example_id: result for result in results}
    missing = [block.id for block in blocks if block.id not in by_id]
    if missing:
        raise ValueError(f"no result for {', '.join(missing)}")
    if len(by_id) != len(blocks):
        known = {block.id for block in blocks}
        extra = sorted(set(by_id) - known)
        raise ValueError(f"results for unknown examples: {', '.join(extra)}")

    entries = tuple(ReportEntry(block=block, result=by_id[block.id]) for block in blocks)
    counts = {status: 0 for status in STATUS_ORDER}
    for entry in entries:
        counts[entry.result.status] = counts.get(entry.result.status, 0) + 1

    return RunReport(source=source, entries=entries, counts=counts)
