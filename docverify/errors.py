from __future__ import annotations


class DocVerifyError(Exception):
    """Base exception for run-level errors."""


class ParseError(DocVerifyError):
    """The document (or a schema file) contains malformed SQL.

    Aborts the whole run: a document that cannot be split reliably cannot be
    trusted for anything downstream.
    """

    def __init__(self, message: str, line: int | None = None):
        super().__init__(message if line is None else f"line {line}: {message}")
        self.line = line


class SandboxError(DocVerifyError):
    """Provisioning or teardown of the ephemeral database failed."""


class InvalidTransition(DocVerifyError):
    """An example was moved through an illegal state transition."""

    def __init__(self, example_id: str, current: str, target: str):
        super().__init__(f"{example_id}: cannot move from {current} to {target}")
        self.example_id = example_id
        self.current = current
        self.target = target
