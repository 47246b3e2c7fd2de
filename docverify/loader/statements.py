"""Split SQL text into executable statements."""

from __future__ import annotations

import re
from typing import Iterable, List

from docverify.errors import ParseError

_DOLLAR_TAG = re.compile(r"\$([A-Za-z_][A-Za-z_0-9]*)?\$")


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def iter_sql_statements(sql: str) -> Iterable[tuple[int, str]]:
    """Split a SQL script into executable statements.

    Yields ``(line_offset, statement)`` where ``line_offset`` is the 0-based line
    of the statement's first character within ``sql``.

    Supports:
    - `--` line comments and nested `/* */` block comments (dropped)
    - quoted strings (single quotes with `''`, E'' strings with backslashes)
    - quoted identifiers (double quotes)
    - dollar-quoted bodies (`$$ ... $$` and `$tag$ ... $tag$`)
    - psql meta-command lines such as `\\df` between statements (dropped)
    """

    buf: list[str] = []
    start: int | None = None
    line = 0
    quote_line = 0
    in_single = False
    backslash_escapes = False
    in_double = False
    i = 0
    n = len(sql)

    while i < n:
        ch = sql[i]

        if in_single:
            buf.append(ch)
            if backslash_escapes and ch == "\\" and i + 1 < n:
                buf.append(sql[i + 1])
                line += sql[i + 1] == "\n"
                i += 2
                continue
            if ch == "'":
                if i + 1 < n and sql[i + 1] == "'":
                    buf.append("'")
                    i += 2
                    continue
                in_single = False
            elif ch == "\n":
                line += 1
            i += 1
            continue

        if in_double:
            buf.append(ch)
            if ch == '"':
                if i + 1 < n and sql[i + 1] == '"':
                    buf.append('"')
                    i += 2
                    continue
                in_double = False
            elif ch == "\n":
                line += 1
            i += 1
            continue

        if ch == "\\" and start is None:
            while i < n and sql[i] not in ("\n", "\r"):
                i += 1
            continue

        if ch == "-" and i + 1 < n and sql[i + 1] == "-":
            while i < n and sql[i] not in ("\n", "\r"):
                i += 1
            continue

        if ch == "/" and i + 1 < n and sql[i + 1] == "*":
            depth = 1
            j = i + 2
            while j < n and depth:
                if sql.startswith("/*", j):
                    depth += 1
                    j += 2
                elif sql.startswith("*/", j):
                    depth -= 1
                    j += 2
                else:
                    j += 1
            if depth:
                raise ParseError("unterminated block comment", line=line + 1)
            line += sql.count("\n", i, j)
            buf.append(" ")
            i = j
            continue

        if ch == "$" and (i == 0 or not _is_ident_char(sql[i - 1])):
            m = _DOLLAR_TAG.match(sql, i)
            if m:
                tag = m.group(0)
                end = sql.find(tag, m.end())
                if end == -1:
                    raise ParseError(f"unterminated dollar-quoted body {tag}", line=line + 1)
                if start is None:
                    start = line
                body = sql[i : end + len(tag)]
                buf.append(body)
                line += body.count("\n")
                i = end + len(tag)
                continue

        if ch == "'":
            if start is None:
                start = line
            prev = sql[i - 1] if i > 0 else ""
            before = sql[i - 2] if i > 1 else ""
            backslash_escapes = prev in ("e", "E") and not _is_ident_char(before)
            in_single = True
            quote_line = line
            buf.append(ch)
            i += 1
            continue

        if ch == '"':
            if start is None:
                start = line
            in_double = True
            quote_line = line
            buf.append(ch)
            i += 1
            continue

        if ch == ";":
            stmt = "".join(buf).strip()
            buf = []
            if stmt:
                yield (start or 0, stmt)
            start = None
            i += 1
            continue

        if ch == "\n":
            line += 1
        elif start is None and not ch.isspace():
            start = line

        buf.append(ch)
        i += 1

    if in_single:
        raise ParseError("unterminated string literal", line=quote_line + 1)
    if in_double:
        raise ParseError("unterminated quoted identifier", line=quote_line + 1)

    tail = "".join(buf).strip()
    if tail:
        yield (start or 0, tail)


def split_sql(sql: str) -> List[str]:
    return [stmt for _, stmt in iter_sql_statements(sql)]
