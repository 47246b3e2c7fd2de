"""Fenced code region extraction for markdown documents."""

from __future__ import annotations

from typing import List

from docverify.errors import ParseError
from docverify.types import Fence

DEFAULT_SQL_LANGS: frozenset[str] = frozenset({"sql", "postgresql", "postgres", "pgsql", "plpgsql", "psql"})


def _fence_marker(line: str) -> str | None:
    stripped = line.lstrip()
    # Indentation of four or more spaces is an indented code block, not a fence.
    if len(line) - len(stripped) > 3:
        return None
    for ch in ("`", "~"):
        if stripped.startswith(ch * 3):
            run = len(stripped) - len(stripped.lstrip(ch))
            return ch * run
    return None


def parse_fences(text: str) -> List[Fence]:
    """Extract every fenced code region from a markdown document.

    The closing fence must use the same character and be at least as long as
    the opening one. An unterminated fence raises ParseError.
    """
    fences: List[Fence] = []
    lines = text.splitlines()
    opener: str | None = None
    lang = ""
    start_line = 0
    open_line = 0
    content_lines: List[str] = []

    for idx, line in enumerate(lines, 1):
        marker = _fence_marker(line)
        if opener is None:
            if marker is None:
                continue
            opener = marker
            info = line.strip()[len(marker):].strip()
            lang = info.split()[0].lower() if info else ""
            if lang.startswith("{") and lang.endswith("}"):
                lang = lang.strip("{}.")
            open_line = idx
            start_line = idx + 1
            content_lines = []
        elif (
            marker is not None
            and marker[0] == opener[0]
            and len(marker) >= len(opener)
            and not line.strip()[len(marker):].strip()
        ):
            fences.append(
                Fence(
                    index=len(fences),
                    line=start_line,
                    lang=lang,
                    content="\n".join(content_lines),
                )
            )
            opener = None
        else:
            content_lines.append(line)

    if opener is not None:
        raise ParseError("unterminated code fence", line=open_line)

    return fences


def sql_fences(text: str, langs: frozenset[str] = DEFAULT_SQL_LANGS) -> List[Fence]:
    return [fence for fence in parse_fences(text) if fence.lang in langs]
