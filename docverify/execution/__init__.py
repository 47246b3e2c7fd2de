"""Example execution: resolution, per-example state machine and transactions."""

from docverify.execution.executor import DUPLICATE_OBJECT_STATES, QUERY_CANCELED, Executor
from docverify.execution.interfaces import StatementRunner, StatementSession
from docverify.execution.state import ExampleTracker

__all__ = [
    "DUPLICATE_OBJECT_STATES",
    "QUERY_CANCELED",
    "ExampleTracker",
    "Executor",
    "StatementRunner",
    "StatementSession",
]
