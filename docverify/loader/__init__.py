"""Spec loader: markdown document -> ordered, classified example blocks.

Pure parsing; nothing in this package touches a database.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from docverify.loader.classify import (
    classify_statement,
    extract_relations,
    names_match,
    normalize_name,
    routine_definition,
)
from docverify.loader.markdown import DEFAULT_SQL_LANGS, parse_fences, sql_fences
from docverify.loader.statements import iter_sql_statements, split_sql
from docverify.types import ExampleBlock, Fence

logger = logging.getLogger(__name__)


def load_document(text: str, langs: frozenset[str] = DEFAULT_SQL_LANGS) -> tuple[ExampleBlock, ...]:
    """Extract and classify every SQL statement of a document, in document order."""
    pending: List[tuple[Fence, int, str]] = []
    for fence in sql_fences(text, langs):
        for offset, stmt in iter_sql_statements(fence.content):
            pending.append((fence, offset, stmt))

    routines = set()
    for _, _, stmt in pending:
        definition = routine_definition(stmt)
        if definition is not None:
            routines.add(definition[1])

    blocks: List[ExampleBlock] = []
    for n, (fence, offset, stmt) in enumerate(pending, 1):
        kind, declared, called = classify_statement(stmt, routines)
        blocks.append(
            ExampleBlock(
                id=f"ex-{n:03d}",
                kind=kind,
                raw_text=stmt,
                declared_name=declared,
                line=fence.line + offset,
                fence=fence.index,
                called_names=called,
                relations=extract_relations(stmt),
            )
        )

    logger.debug("Loaded %d statements from %d SQL fences", len(blocks), len({b.fence for b in blocks}))
    return tuple(blocks)


def load_path(path: Path, langs: frozenset[str] = DEFAULT_SQL_LANGS) -> tuple[ExampleBlock, ...]:
    return load_document(path.read_text(encoding="utf-8"), langs)


__all__ = [
    "DEFAULT_SQL_LANGS",
    "classify_statement",
    "extract_relations",
    "iter_sql_statements",
    "load_document",
    "load_path",
    "names_match",
    "normalize_name",
    "parse_fences",
    "split_sql",
    "sql_fences",
]
