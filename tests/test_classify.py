"""Tests for statement classification, name normalization and relation extraction."""

from __future__ import annotations

import pytest

from docverify.loader.classify import (
    call_sites,
    classify_statement,
    extract_relations,
    names_match,
    normalize_name,
)


@pytest.mark.parametrize(
    "stmt,expected_kind,expected_name",
    [
        ("CREATE FUNCTION get_price(p_id int) RETURNS numeric AS $$ SELECT 1 $$ LANGUAGE sql", "function_def", "get_price"),
        ("create or replace function Bookshop.Get_Books() returns setof bookshop.books as $$ $$ language sql", "function_def", "bookshop.get_books"),
        ("CREATE OR REPLACE PROCEDURE insert_book(p_name varchar) LANGUAGE plpgsql AS $$ BEGIN END $$", "procedure_def", "insert_book"),
        ('CREATE PROCEDURE "Archive"() LANGUAGE sql AS $$ $$', "procedure_def", "Archive"),
        ("CALL insert_book('x', 'y', 1.0, '2020-01-01')", "invocation", "insert_book"),
        ("call bookshop.restock (5)", "invocation", "bookshop.restock"),
        ("SELECT * FROM select_all_books()", "invocation", "select_all_books"),
        ("SELECT * FROM bookshop.books", "query", None),
        ("SELECT count(*), max(price) FROM bookshop.books", "query", None),
        ("INSERT INTO bookshop.books (book_name) VALUES ('x')", "query", None),
        ("DROP FUNCTION IF EXISTS insert_book(varchar)", "query", None),
        ("CREATE SCHEMA bookshop", "schema_def", "bookshop"),
        ("CREATE TABLE IF NOT EXISTS bookshop.books (book_id serial primary key)", "schema_def", "bookshop.books"),
        ("CREATE UNIQUE INDEX idx_books_name ON bookshop.books (book_name)", "schema_def", "idx_books_name"),
        ("CREATE INDEX ON bookshop.books (author)", "schema_def", None),
        ("CREATE TRIGGER trg BEFORE INSERT ON bookshop.books FOR EACH ROW EXECUTE FUNCTION f()", "schema_def", "trg"),
        ("CREATE POLICY owner_only ON accounts USING (owner = current_user)", "schema_def", "owner_only"),
        ("CREATE RULE no_delete AS ON DELETE TO bookshop.books DO INSTEAD NOTHING", "schema_def", "no_delete"),
        ("ALTER TABLE orders ADD COLUMN note text", "schema_def", None),
        ("COMMENT ON TABLE bookshop.books IS 'Books for sale'", "schema_def", None),
        ("BEGIN", "transaction_control", None),
        ("START TRANSACTION ISOLATION LEVEL SERIALIZABLE", "transaction_control", None),
        ("COMMIT", "transaction_control", None),
        ("END", "transaction_control", None),
        ("ROLLBACK", "transaction_control", None),
    ],
)
def test_classify_statement(stmt: str, expected_kind: str, expected_name):
    kind, name, _ = classify_statement(stmt)
    assert kind == expected_kind
    assert name == expected_name


def test_select_prefers_documented_routine_as_declared_name():
    stmt = "SELECT format_money(book_total(b.book_id)) FROM bookshop.books b"
    kind, name, called = classify_statement(stmt, routines={"book_total"})

    assert kind == "invocation"
    assert name == "book_total"
    assert called == ("format_money", "book_total")


def test_call_collects_nested_non_builtin_calls():
    _, name, called = classify_statement("CALL log_sale(order_total(7), now())")
    assert name == "log_sale"
    assert called == ("log_sale", "order_total")


def test_call_sites_ignore_keywords_literals_and_builtins_are_reported():
    sites = call_sites("SELECT coalesce(x, 0) FROM t WHERE y IN (1, 2) AND EXISTS (SELECT 1) AND z = 'f(1)'")
    assert sites == ["coalesce"]


def test_normalize_name_folds_unquoted_and_keeps_quoted():
    assert normalize_name("BookShop.Books") == "bookshop.books"
    assert normalize_name('bookshop."Books"') == "bookshop.Books"
    assert normalize_name('"we""ird"') == 'we"ird'


@pytest.mark.parametrize(
    "reference,declared,expected",
    [
        ("insert_book", "insert_book", True),
        ("insert_book", "bookshop.insert_book", True),
        ("bookshop.insert_book", "insert_book", True),
        ("bookshop.insert_book", "other.insert_book", False),
        ("insert_books", "insert_book", False),
    ],
)
def test_names_match(reference: str, declared: str, expected: bool):
    assert names_match(reference, declared) is expected


def test_extract_relations_from_plpgsql_body():
    body = """
CREATE OR REPLACE PROCEDURE transfer(p_from int, p_to int, p_amount numeric)
LANGUAGE plpgsql AS $$
DECLARE
    v_balance numeric;
    v_row accounts%ROWTYPE;
BEGIN
    SELECT balance INTO v_balance FROM accounts WHERE account_id = p_from FOR UPDATE;
    UPDATE accounts SET balance = balance - p_amount WHERE account_id = p_from;
    INSERT INTO ledger (account_id, delta) VALUES (p_from, -p_amount)
        ON CONFLICT DO UPDATE SET delta = excluded.delta;
    DELETE FROM pending_transfers WHERE created < now() - interval '1 day';
    RAISE NOTICE 'moved % FROM %', p_amount, p_from;
END;
$$
"""
    assert extract_relations(body) == ("accounts", "ledger", "pending_transfers")


def test_extract_relations_skips_function_calls_ctes_and_extract():
    stmt = """
WITH recent AS (SELECT * FROM bookshop.books WHERE EXTRACT(YEAR FROM published_date) > 2000)
SELECT r.*, a.total
FROM recent r
JOIN author_totals() a ON a.author = r.author
WHERE r.price IS DISTINCT FROM r.book_id
"""
    assert extract_relations(stmt) == ("bookshop.books",)


def test_extract_relations_handles_setof_and_index_targets():
    assert extract_relations("CREATE FUNCTION f() RETURNS SETOF bookshop.books AS $$ $$ LANGUAGE sql") == (
        "bookshop.books",
    )
    assert extract_relations("CREATE INDEX idx ON orders (customer_id)") == ("orders",)
    assert extract_relations("CREATE FUNCTION g() RETURNS SETOF record AS $$ $$ LANGUAGE sql") == ()


# ========== DDL on existing relations ==========


@pytest.mark.parametrize(
    "stmt,relations,called",
    [
        (
            "CREATE TRIGGER trg AFTER UPDATE ON accounts FOR EACH ROW EXECUTE FUNCTION log_change()",
            ("accounts",),
            ("log_change",),
        ),
        (
            "CREATE OR REPLACE TRIGGER audit BEFORE INSERT OR UPDATE ON bookshop.books "
            "FOR EACH ROW EXECUTE PROCEDURE audit.log_book()",
            ("bookshop.books",),
            ("audit.log_book",),
        ),
        ("ALTER TABLE IF EXISTS orders ADD COLUMN note text", ("orders",), ()),
        (
            "ALTER TABLE orders ADD CONSTRAINT fk_customer FOREIGN KEY (customer_id) "
            "REFERENCES customers (customer_id) ON DELETE CASCADE ON UPDATE CASCADE",
            ("orders", "customers"),
            (),
        ),
        ("CREATE POLICY owner_only ON accounts USING (owner = current_user)", ("accounts",), ()),
        ("CREATE RULE no_delete AS ON DELETE TO bookshop.books DO INSTEAD NOTHING", ("bookshop.books",), ()),
        ("COMMENT ON COLUMN bookshop.books.price IS 'Price in EUR'", ("bookshop.books",), ()),
        ("COMMENT ON FUNCTION order_total(int) IS 'Sum of an order'", (), ("order_total",)),
    ],
)
def test_attached_ddl_reports_target_relation_and_routines(stmt: str, relations, called):
    kind, _, called_names = classify_statement(stmt)

    assert kind == "schema_def"
    assert called_names == called
    assert extract_relations(stmt) == relations


def test_call_sites_skip_cte_names_with_column_lists():
    stmt = """
WITH totals(author, n) AS (SELECT author, count(*) FROM bookshop.books GROUP BY author)
SELECT * FROM totals
"""
    assert call_sites(stmt) == ["count"]
    assert classify_statement(stmt)[0] == "query"


def test_grouping_constructs_are_not_calls():
    stmt = "SELECT author, sum(price) FROM bookshop.books GROUP BY ROLLUP (author), CUBE(book_name)"
    assert call_sites(stmt) == ["sum"]
    assert classify_statement(stmt)[0] == "query"


def test_extract_relations_ignores_multiword_setof_types():
    stmt = "CREATE FUNCTION ratios() RETURNS SETOF double precision LANGUAGE sql AS $$ SELECT 0.5::float8 $$"
    assert extract_relations(stmt) == ()
    stamps = "CREATE FUNCTION stamps() RETURNS SETOF timestamp with time zone LANGUAGE sql AS $$ SELECT now() $$"
    assert extract_relations(stamps) == ()


def test_extract_relations_ignores_cursors():
    body = """
CREATE FUNCTION first_title() RETURNS text LANGUAGE plpgsql AS $$
DECLARE
    cur CURSOR FOR SELECT book_name FROM bookshop.books ORDER BY book_id;
    other refcursor;
    v text;
BEGIN
    OPEN cur;
    FETCH NEXT FROM cur INTO v;
    MOVE FORWARD 2 IN other;
    FETCH FROM other INTO v;
    CLOSE cur;
    RETURN v;
END;
$$
"""
    assert extract_relations(body) == ("bookshop.books",)


def test_fetch_first_rows_keeps_following_relations():
    stmt = "SELECT * FROM bookshop.books ORDER BY price FETCH FIRST 3 ROWS ONLY"
    assert extract_relations(stmt) == ("bookshop.books",)
