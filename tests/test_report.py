"""Tests for report aggregation and the text/JSON/CSV renderers."""

from __future__ import annotations

import csv
import io
import json
from datetime import date
from decimal import Decimal

import pytest

from docverify.export import RENDERERS, export_report_to_csv, export_report_to_json, export_report_to_text, to_json_value
from docverify.report import build_report
from docverify.types import ExampleBlock, ExecutionResult


@pytest.fixture
def sample_report():
    blocks = [
        ExampleBlock(id="ex-001", kind="procedure_def", raw_text="CREATE PROCEDURE insert_book() ...", declared_name="insert_book", line=20),
        ExampleBlock(id="ex-002", kind="invocation", raw_text="CALL insert_book()", declared_name="insert_book", line=35, fence=2),
        ExampleBlock(id="ex-003", kind="query", raw_text="SELECT * FROM bookshop.books", line=37, fence=2),
        ExampleBlock(id="ex-004", kind="invocation", raw_text="SELECT order_total(42)", declared_name="order_total", line=90, fence=5),
        ExampleBlock(id="ex-005", kind="invocation", raw_text="SELECT calculate_discount(100)", declared_name="calculate_discount", line=99, fence=6),
    ]
    # Deliberately out of order: the report follows document order.
    results = [
        ExecutionResult(example_id="ex-005", status="skipped", reason="unresolved", error_message="no preceding definition of calculate_discount"),
        ExecutionResult(example_id="ex-001", status="succeeded"),
        ExecutionResult(example_id="ex-003", status="succeeded", columns=("book_name", "price", "published_date"),
                        output_rows=(("The Alchemist", Decimal("15.99"), date(1988, 4, 14)),)),
        ExecutionResult(example_id="ex-002", status="succeeded"),
        ExecutionResult(example_id="ex-004", status="failed", reason="execution_error",
                        error_message='relation "orders" does not exist\nLINE 1: SELECT * FROM orders'),
    ]
    return build_report("docs/functions.md", blocks, results)


def test_build_report_orders_by_document_and_counts(sample_report):
    assert [e.block.id for e in sample_report.entries] == ["ex-001", "ex-002", "ex-003", "ex-004", "ex-005"]
    assert dict(sample_report.counts) == {"succeeded": 3, "failed": 1, "skipped": 1}
    assert sample_report.has_failures is True


def test_skipped_results_do_not_count_as_failures():
    blocks = [ExampleBlock(id="ex-001", kind="invocation", raw_text="SELECT x()", declared_name="x")]
    report = build_report("doc.md", blocks, [ExecutionResult(example_id="ex-001", status="skipped", reason="unresolved")])
    assert report.has_failures is False


def test_build_report_rejects_missing_results():
    blocks = [ExampleBlock(id="ex-001", kind="query", raw_text="SELECT 1")]
    with pytest.raises(ValueError, match="ex-001"):
        build_report("doc.md", blocks, [])


def test_text_report_lists_every_example_and_failure_text(sample_report):
    text = export_report_to_text(sample_report)

    assert text.startswith("docverify report: docs/functions.md\n")
    for example_id in ("ex-001", "ex-002", "ex-003", "ex-004", "ex-005"):
        assert example_id in text
    assert "Summary: 5 examples, 3 succeeded, 1 failed, 1 skipped" in text
    assert "ex-004 (line 90) order_total [execution_error]" in text
    assert '    relation "orders" does not exist' in text
    assert "    LINE 1: SELECT * FROM orders" in text
    assert "ex-005 (line 99) unresolved: no preceding definition of calculate_discount" in text


def test_json_report_is_machine_readable(sample_report):
    payload = json.loads(export_report_to_json(sample_report))

    assert payload["metadata"] == {"source": "docs/functions.md", "example_count": 5}
    assert payload["summary"] == {"succeeded": 3, "failed": 1, "skipped": 1}
    books = payload["examples"][2]
    assert books["columns"] == ["book_name", "price", "published_date"]
    assert books["rows"] == [["The Alchemist", "15.99", "1988-04-14"]]
    assert payload["examples"][0]["rows"] is None
    assert payload["examples"][3]["error"].startswith('relation "orders" does not exist')


def test_renderers_are_deterministic(sample_report):
    for render in RENDERERS.values():
        assert render(sample_report) == render(sample_report)


def test_csv_report_has_one_row_per_example(sample_report):
    content = export_report_to_csv(sample_report)
    lines = content.splitlines()

    assert lines[0] == "# Source: docs/functions.md"
    rows = list(csv.DictReader(io.StringIO("\n".join(lines[1:]))))
    assert len(rows) == 5
    assert rows[2]["row_count"] == "1"
    assert rows[0]["row_count"] == ""
    assert rows[3]["status"] == "failed"


def test_to_json_value_converts_database_types():
    assert to_json_value(Decimal("10.50")) == "10.50"
    assert to_json_value(date(2024, 1, 2)) == "2024-01-02"
    assert to_json_value((1, None, True)) == [1, None, True]
    assert to_json_value({"a": Decimal("1")}) == {"a": "1"}
