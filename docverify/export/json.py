"""JSON export of run reports."""

from __future__ import annotations

import json
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from docverify.types import RunReport


def to_json_value(value: Any) -> Any:
    """Convert a database value into something json.dumps accepts.

    Decimals become strings so `15.99` is not rendered as `15.9900000000000002`.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    return str(value)


def export_report_to_json(report: RunReport) -> str:
    """Export a run report to JSON format.

    No timestamps are included: two runs over the same document must produce
    identical output.

    Returns:
        JSON string with metadata, summary and one entry per example
    """
    examples = []
    for entry in report.entries:
        block, result = entry.block, entry.result
        examples.append(
            {
                "id": block.id,
                "line": block.line,
                "kind": block.kind,
                "name": block.declared_name,
                "status": result.status,
                "reason": result.reason,
                "error": result.error_message,
                "columns": list(result.columns),
                "rows": None if result.output_rows is None else to_json_value(result.output_rows),
            }
        )

    output = {
        "metadata": {
            "source": report.source,
            "example_count": len(report.entries),
        },
        "summary": dict(report.counts),
        "examples": examples,
    }

    return json.dumps(output, indent=2)
