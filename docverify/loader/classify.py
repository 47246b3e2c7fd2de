"""Statement classification and name/relation extraction.

Everything here is a heuristic over statement text; it never talks to a
database. Identifiers are normalized the way PostgreSQL folds them: unquoted
names are lowercased, quoted names are kept verbatim.
"""

from __future__ import annotations

import re
from typing import Collection, Iterable, Optional

from docverify.types import ExampleKind

_IDENT = r'(?:"(?:[^"]|"")+"|[A-Za-z_][A-Za-z0-9_$]*)'
_QNAME = rf"{_IDENT}(?:\s*\.\s*{_IDENT})?"

_ROUTINE_DEF_RE = re.compile(
    rf"^CREATE\s+(?:OR\s+REPLACE\s+)?(FUNCTION|PROCEDURE)\s+({_QNAME})\s*\(",
    re.IGNORECASE,
)
_CALL_RE = re.compile(rf"^CALL\s+({_QNAME})\s*\(", re.IGNORECASE)
_SCHEMA_DEF_RE = re.compile(
    r"^CREATE\s+(?:OR\s+REPLACE\s+)?(?:(?:GLOBAL|LOCAL)\s+)?(?:TEMP(?:ORARY)?\s+|UNLOGGED\s+)?"
    r"(SCHEMA|TABLE|TYPE|SEQUENCE|VIEW|MATERIALIZED\s+VIEW|(?:UNIQUE\s+)?INDEX|EXTENSION|DOMAIN)\b"
    rf"(?:\s+(?:CONCURRENTLY\s+)?(?:IF\s+NOT\s+EXISTS\s+)?({_QNAME}))?",
    re.IGNORECASE,
)
_SELECT_LIKE_RE = re.compile(r"^(?:SELECT|WITH|VALUES|TABLE)\b", re.IGNORECASE)
_TRANSACTION_CONTROL_RE = re.compile(
    r"^(?:BEGIN|START\s+TRANSACTION|COMMIT|END|ROLLBACK|ABORT|SAVEPOINT|RELEASE|PREPARE\s+TRANSACTION)\b",
    re.IGNORECASE,
)
# DDL on objects that must already exist. Named groups: `name` (the object
# created, if any), `rel` (the relation it attaches to), `routine` (a routine
# it depends on).
_ATTACHED_DDL_RES = (
    re.compile(
        rf"^CREATE\s+(?:OR\s+REPLACE\s+)?(?:CONSTRAINT\s+)?TRIGGER\s+(?P<name>{_IDENT})\s.*?\bON\s+(?P<rel>{_QNAME})",
        re.IGNORECASE | re.DOTALL,
    ),
    re.compile(rf"^CREATE\s+POLICY\s+(?P<name>{_IDENT})\s+ON\s+(?P<rel>{_QNAME})", re.IGNORECASE),
    re.compile(
        rf"^CREATE\s+(?:OR\s+REPLACE\s+)?RULE\s+(?P<name>{_IDENT})\s+AS\s+ON\s+\w+\s+TO\s+(?P<rel>{_QNAME})",
        re.IGNORECASE,
    ),
    re.compile(rf"^ALTER\s+TABLE\s+(?:IF\s+EXISTS\s+)?(?:ONLY\s+)?(?P<rel>{_QNAME})", re.IGNORECASE),
    re.compile(
        rf"^COMMENT\s+ON\s+(?:TABLE|VIEW|MATERIALIZED\s+VIEW|FOREIGN\s+TABLE)\s+(?P<rel>{_QNAME})",
        re.IGNORECASE,
    ),
    re.compile(
        rf"^COMMENT\s+ON\s+(?:TRIGGER|POLICY|RULE)\s+(?P<name>{_IDENT})\s+ON\s+(?P<rel>{_QNAME})",
        re.IGNORECASE,
    ),
    re.compile(rf"^COMMENT\s+ON\s+COLUMN\s+(?P<rel>{_QNAME})\s*\.\s*{_IDENT}", re.IGNORECASE),
    re.compile(rf"^COMMENT\s+ON\s+(?:FUNCTION|PROCEDURE|ROUTINE)\s+(?P<routine>{_QNAME})", re.IGNORECASE),
    re.compile(r"^COMMENT\s+ON\b", re.IGNORECASE),
)
_TRIGGER_FUNCTION_RE = re.compile(rf"\bEXECUTE\s+(?:FUNCTION|PROCEDURE)\s+({_QNAME})\s*\(", re.IGNORECASE)
_CALL_SITE_RE = re.compile(rf"(?<![\w$.\"])({_QNAME})\s*\(")
_RELATION_RE = re.compile(
    r"\b(FROM|JOIN|INSERT\s+INTO|UPDATE|DELETE\s+FROM|SETOF|REFERENCES|TRUNCATE(?:\s+TABLE)?)"
    rf"\s+(?:ONLY\s+)?({_QNAME})(\s*\()?",
    re.IGNORECASE,
)
_ROWTYPE_RE = re.compile(rf"({_QNAME})%ROWTYPE", re.IGNORECASE)
_INDEX_TARGET_RE = re.compile(rf"\bON\s+(?:ONLY\s+)?({_QNAME})", re.IGNORECASE)
_CTE_RE = re.compile(
    rf"(?:\bWITH\s+(?:RECURSIVE\s+)?|,\s*)({_IDENT})(?:\s*\([^()]*\))?\s+AS\s+(?:NOT\s+)?(?:MATERIALIZED\s+)?\(",
    re.IGNORECASE,
)
_STRING_RE = re.compile(r"[eE]?'(?:[^'\\]|''|\\.)*'")
_FROM_INSIDE_CALL_RE = re.compile(r"\b(?:EXTRACT|SUBSTRING|TRIM|OVERLAY|POSITION)\s*\([^()]*\)", re.IGNORECASE)
_DISTINCT_FROM_RE = re.compile(r"\bDISTINCT\s+FROM\b", re.IGNORECASE)
_REFERENTIAL_ACTION_RE = re.compile(r"\bON\s+(?:UPDATE|DELETE)\b", re.IGNORECASE)
_SETOF_MULTIWORD_TYPE_RE = re.compile(
    r"\bSETOF\s+(?:double\s+precision|character\s+varying|bit\s+varying"
    r"|(?:timestamp|time)\s+with(?:out)?\s+time\s+zone)\b",
    re.IGNORECASE,
)
_CURSOR_FETCH_RE = re.compile(
    r"\b(?:FETCH|MOVE)\s+"
    r"(?:(?:NEXT|PRIOR|FIRST|LAST|ALL|(?:FORWARD|BACKWARD)(?:\s+(?:ALL|\d+))?|(?:ABSOLUTE|RELATIVE)\s+[-+]?\d+|[-+]?\d+)\s+)?"
    rf"(?:FROM|IN)\s+{_IDENT}",
    re.IGNORECASE,
)
_CURSOR_DECL_RE = re.compile(rf"({_IDENT})\s+(?:(?:NO\s+)?SCROLL\s+)?(?:CURSOR|refcursor)\b", re.IGNORECASE)

SQL_KEYWORDS: frozenset[str] = frozenset(
    """
    all and any array as between by case cast check conflict constraint default distinct do else end except
    exists filter for from group having if ilike in intersect into is join lateral like limit nowait
    not null of offset on or order over partition primary query recursive references return returning
    row select set similar skip some table then union unique using values when where window with within
    cube grouping rollup sets
    """.split()
)

BUILTIN_FUNCTIONS: frozenset[str] = frozenset(
    """
    abs age array_agg array_length array_to_string avg bigint bool_and bool_or btrim cardinality ceil
    ceiling char char_length character clock_timestamp coalesce concat concat_ws count cume_dist
    current_setting currval date date_part date_trunc decimal dense_rank every exp extract first_value
    float floor format gen_random_uuid generate_series greatest initcap int integer interval
    json_agg json_array_elements json_build_object json_each jsonb_agg jsonb_array_elements
    jsonb_build_object jsonb_each jsonb_set lag last_value lead least left length ln log lower lpad
    ltrim make_date make_interval make_timestamp max md5 min mod mode nextval now ntile nullif numeric
    overlay percent_rank percentile_cont percentile_disc pg_sleep pg_typeof position power random rank
    regexp_match regexp_matches regexp_replace repeat replace reverse right round row_number
    row_to_json rpad rtrim set_config setval sign split_part sqrt statement_timestamp stddev
    string_agg string_to_array strpos substr substring sum time timestamp timestamptz to_char to_date
    to_json to_jsonb to_number to_timestamp trim trunc unnest upper varchar variance version
    width_bucket
    """.split()
)

TYPE_NAMES: frozenset[str] = frozenset(
    """
    bigint bool boolean bytea char character date double float4 float8 inet int int2 int4 int8 integer
    interval json jsonb money numeric real record refcursor smallint text time timestamp timestamptz
    trigger uuid varchar void
    """.split()
)


def normalize_identifier(part: str) -> str:
    part = part.strip()
    if len(part) >= 2 and part.startswith('"') and part.endswith('"'):
        return part[1:-1].replace('""', '"')
    return part.lower()


def normalize_name(name: str) -> str:
    """Normalize a possibly schema-qualified name, e.g. `Bookshop."Books"` -> `bookshop.Books`."""
    parts = re.findall(_IDENT, name)
    return ".".join(normalize_identifier(p) for p in parts)


def bare_name(name: str) -> str:
    return name.rsplit(".", 1)[-1]


def names_match(reference: str, declared: str) -> bool:
    """Qualified names match exactly; an unqualified side matches on the last component."""
    if reference == declared:
        return True
    if "." in reference and "." in declared:
        return False
    return bare_name(reference) == bare_name(declared)


def strip_literals(sql: str) -> str:
    return _STRING_RE.sub("''", sql)


def routine_definition(stmt: str) -> Optional[tuple[ExampleKind, str]]:
    m = _ROUTINE_DEF_RE.match(stmt.lstrip())
    if not m:
        return None
    kind: ExampleKind = "function_def" if m.group(1).upper() == "FUNCTION" else "procedure_def"
    return kind, normalize_name(m.group(2))


def call_sites(stmt: str) -> list[str]:
    """Return normalized names of everything invoked like a function, in order."""
    text = strip_literals(stmt)
    ctes = _cte_names(text)
    seen: list[str] = []
    for m in _CALL_SITE_RE.finditer(text):
        name = normalize_name(m.group(1))
        if name in SQL_KEYWORDS or name in ctes or name in seen:
            continue
        seen.append(name)
    return seen


def is_builtin(name: str) -> bool:
    return name.startswith("pg_catalog.") or name in BUILTIN_FUNCTIONS or name in TYPE_NAMES


def extract_relations(stmt: str) -> tuple[str, ...]:
    """Relations a statement (or routine body) reads or writes."""
    text = strip_literals(stmt)
    attached = _attached_ddl(text.lstrip())
    text = _FROM_INSIDE_CALL_RE.sub(" ", text)
    text = _DISTINCT_FROM_RE.sub(" ", text)
    text = _REFERENTIAL_ACTION_RE.sub(" ", text)
    text = _SETOF_MULTIWORD_TYPE_RE.sub(" ", text)
    text = _CURSOR_FETCH_RE.sub(" ", text)

    excluded = _cte_names(text) | {normalize_name(m.group(1)) for m in _CURSOR_DECL_RE.finditer(text)}
    found: list[str] = []

    def _add(name: str) -> None:
        if name in SQL_KEYWORDS or name in TYPE_NAMES or name in excluded or name in found:
            return
        found.append(name)

    if attached is not None and attached.groupdict().get("rel"):
        _add(normalize_name(attached.group("rel")))

    for m in _RELATION_RE.finditer(text):
        keyword = m.group(1).upper()
        has_paren = m.group(3) is not None
        if has_paren and keyword in ("FROM", "JOIN"):
            continue
        _add(normalize_name(m.group(2)))

    for m in _ROWTYPE_RE.finditer(text):
        _add(normalize_name(m.group(1)))

    if re.match(r"^CREATE\s+(?:UNIQUE\s+)?INDEX\b", text.lstrip(), re.IGNORECASE):
        m = _INDEX_TARGET_RE.search(text)
        if m:
            _add(normalize_name(m.group(1)))

    return tuple(found)


def _cte_names(text: str) -> set[str]:
    return {normalize_name(m.group(1)) for m in _CTE_RE.finditer(text)}


def _attached_ddl(head: str) -> Optional[re.Match[str]]:
    for pattern in _ATTACHED_DDL_RES:
        m = pattern.match(head)
        if m:
            return m
    return None


def created_relation(stmt: str) -> Optional[str]:
    """Name of the table, view, type or other object a CREATE statement adds, if any."""
    m = _SCHEMA_DEF_RE.match(stmt.lstrip())
    if not m or not m.group(2):
        return None
    name = normalize_name(m.group(2))
    return None if name == "on" else name


def is_transaction_control(stmt: str) -> bool:
    return _TRANSACTION_CONTROL_RE.match(stmt.lstrip()) is not None


def classify_statement(
    stmt: str,
    routines: Collection[str] = (),
) -> tuple[ExampleKind, Optional[str], tuple[str, ...]]:
    """Tag a statement with exactly one kind.

    Returns ``(kind, declared_name, called_names)``. ``routines`` holds the
    routine names the document defines; it decides which call site becomes
    the declared name of an invocation.
    """
    head = stmt.lstrip()

    definition = routine_definition(head)
    if definition is not None:
        kind, name = definition
        return kind, name, ()

    m = _CALL_RE.match(head)
    if m:
        target = normalize_name(m.group(1))
        extra = [c for c in call_sites(head[m.end():]) if not is_builtin(c)]
        return "invocation", target, tuple([target] + [c for c in extra if c != target])

    if _SCHEMA_DEF_RE.match(head):
        return "schema_def", created_relation(head), ()

    m = _attached_ddl(head)
    if m:
        groups = m.groupdict()
        name = normalize_name(groups["name"]) if groups.get("name") else None
        called = [normalize_name(r.group(1)) for r in _TRIGGER_FUNCTION_RE.finditer(head)]
        if groups.get("routine"):
            called.append(normalize_name(groups["routine"]))
        return "schema_def", name, tuple(called)

    if is_transaction_control(head):
        return "transaction_control", None, ()

    if _SELECT_LIKE_RE.match(head):
        called = tuple(c for c in call_sites(head) if not is_builtin(c))
        if called:
            declared = _first_documented(called, routines) or called[0]
            return "invocation", declared, called

    return "query", None, ()


def _first_documented(called: Iterable[str], routines: Collection[str]) -> Optional[str]:
    for name in called:
        if any(names_match(name, r) for r in routines):
            return name
    return None
