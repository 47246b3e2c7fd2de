"""Report renderers."""

from docverify.export.csv import export_report_to_csv
from docverify.export.json import export_report_to_json, to_json_value
from docverify.export.text import export_report_to_text

RENDERERS = {
    "text": export_report_to_text,
    "json": export_report_to_json,
    "csv": export_report_to_csv,
}

__all__ = [
    "RENDERERS",
    "export_report_to_csv",
    "export_report_to_json",
    "export_report_to_text",
    "to_json_value",
]
