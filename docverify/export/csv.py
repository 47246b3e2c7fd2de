"""CSV export of run reports."""

from __future__ import annotations

import csv
import io

from docverify.types import RunReport


def export_report_to_csv(report: RunReport) -> str:
    """Export a run report to CSV format, one row per example.

    Returns:
        CSV string with a metadata comment line and headers
    """
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")

    output.write(f"# Source: {report.source}\n")

    writer.writerow(["id", "line", "kind", "name", "status", "reason", "row_count", "error"])

    for entry in report.entries:
        block, result = entry.block, entry.result
        writer.writerow(
            [
                block.id,
                block.line,
                block.kind,
                block.declared_name or "",
                result.status,
                result.reason or "",
                "" if result.output_rows is None else len(result.output_rows),
                result.error_message or "",
            ]
        )

    return output.getvalue()
