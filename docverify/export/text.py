"""Human-readable report."""

from __future__ import annotations

from docverify.types import RunReport

_HEADERS = ("ID", "LINE", "KIND", "NAME", "STATUS", "REASON", "ROWS")


def export_report_to_text(report: RunReport) -> str:
    table = [_HEADERS]
    for entry in report.entries:
        block, result = entry.block, entry.result
        table.append(
            (
                block.id,
                str(block.line),
                block.kind,
                block.declared_name or "-",
                result.status,
                result.reason or "-",
                "-" if result.output_rows is None else str(len(result.output_rows)),
            )
        )

    widths = [max(len(row[col]) for row in table) for col in range(len(_HEADERS))]
    lines = [f"docverify report: {report.source}", ""]
    for row in table:
        lines.append("  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip())

    counts = report.counts
    lines.append("")
    lines.append(
        f"Summary: {len(report.entries)} examples, "
        f"{counts.get('succeeded', 0)} succeeded, "
        f"{counts.get('failed', 0)} failed, "
        f"{counts.get('skipped', 0)} skipped"
    )

    failed = [e for e in report.entries if e.result.status == "failed"]
    if failed:
        lines.append("")
        lines.append("Failures:")
        for entry in failed:
            name = f" {entry.block.declared_name}" if entry.block.declared_name else ""
            lines.append(f"  {entry.block.id} (line {entry.block.line}){name} [{entry.result.reason}]")
            for msg_line in (entry.result.error_message or "").splitlines():
                lines.append(f"    {msg_line}")

    skipped = [e for e in report.entries if e.result.status == "skipped"]
    if skipped:
        lines.append("")
        lines.append("Skipped:")
        for entry in skipped:
            detail = entry.result.error_message.splitlines()[0] if entry.result.error_message else ""
            lines.append(f"  {entry.block.id} (line {entry.block.line}) {entry.result.reason}: {detail}".rstrip())

    return "\n".join(lines) + "\n"
