"""End-to-end verification of one document."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Sequence

from docverify.db.bootstrap import bootstrap
from docverify.execution.executor import Executor
from docverify.loader import DEFAULT_SQL_LANGS, load_document
from docverify.report import build_report
from docverify.storage.postgres.config import PostgresConfig
from docverify.storage.postgres.runner import PostgresRunner
from docverify.storage.postgres.sandbox import Sandbox
from docverify.types import RunReport

logger = logging.getLogger(__name__)


def verify_document(
    path: Path,
    *,
    config: PostgresConfig,
    schema_files: Sequence[Path] = (),
    langs: frozenset[str] = DEFAULT_SQL_LANGS,
) -> RunReport:
    """Parse, provision, execute and report.

    ParseError propagates before any database is created. The sandbox is
    dropped even if execution raises.
    """
    blocks = load_document(path.read_text(encoding="utf-8"), langs)
    logger.info("Loaded %d examples from %s", len(blocks), path.name)

    started = time.monotonic()
    with Sandbox(config=config) as engine:
        catalog = bootstrap(engine, schema_files)
        runner = PostgresRunner(engine, statement_timeout_ms=config.statement_timeout_ms)
        results = Executor(runner, catalog=catalog.relations, routines=catalog.routines).run(blocks)

    logger.info("Verified %d examples in %.2fs", len(results), time.monotonic() - started)
    return build_report(str(path), blocks, results)
