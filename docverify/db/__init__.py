"""Bookshop schema and sandbox bootstrap helpers."""

from .bootstrap import (
    SCHEMA_PATH,
    NameCatalog,
    SandboxCatalog,
    apply_sql_file,
    bootstrap,
    known_relations,
    known_routines,
)
