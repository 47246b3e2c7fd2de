from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Optional

ExampleKind = Literal[
    "function_def", "procedure_def", "invocation", "query", "schema_def", "transaction_control"
]
ExampleStatus = Literal["pending", "running", "succeeded", "failed", "skipped"]
SkipReason = Literal[
    "dependency_failed", "not_executable", "unresolved", "already_provisioned", "transaction_control"
]
FailureReason = Literal["execution_error", "timeout"]

DEFINITION_KINDS: frozenset[str] = frozenset({"function_def", "procedure_def"})
SETUP_KINDS: frozenset[str] = frozenset({"schema_def", "function_def", "procedure_def"})
TERMINAL_STATUSES: frozenset[str] = frozenset({"succeeded", "failed", "skipped"})


@dataclass(frozen=True)
class Fence:
    index: int
    line: int  # 1-based line of the first content line
    lang: str
    content: str


@dataclass(frozen=True)
class ExampleBlock:
    id: str
    kind: ExampleKind
    raw_text: str
    declared_name: Optional[str] = None
    line: int = 0
    fence: int = 0
    called_names: tuple[str, ...] = ()
    relations: tuple[str, ...] = ()


@dataclass(frozen=True)
class StatementOutcome:
    """What the database made of a single statement."""

    ok: bool
    columns: tuple[str, ...] = ()
    rows: Optional[tuple[tuple[Any, ...], ...]] = None
    error_message: Optional[str] = None
    sqlstate: Optional[str] = None


@dataclass(frozen=True)
class ExecutionResult:
    example_id: str
    status: ExampleStatus
    reason: Optional[str] = None
    columns: tuple[str, ...] = ()
    output_rows: Optional[tuple[tuple[Any, ...], ...]] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class ReportEntry:
    block: ExampleBlock
    result: ExecutionResult


@dataclass(frozen=True)
class RunReport:
    source: str
    entries: tuple[ReportEntry, ...]
    counts: Mapping[str, int] = field(default_factory=dict)

    @property
    def has_failures(self) -> bool:
        return self.counts.get("failed", 0) > 0
