"""Typst escaping helpers for markup text, string literals and raw fences"""

import re
from enum import Enum


class EscapeContext(str, Enum):
    text       = "text"
    table_cell = "table_cell"
    raw        = "raw"


MARKUP_SPECIALS = frozenset("\\#[]{}*_$`<@~/")
CONTEXT_SPECIALS: dict[EscapeContext, frozenset] = {
    EscapeContext.text:       MARKUP_SPECIALS,
    EscapeContext.table_cell: MARKUP_SPECIALS | {","},
    EscapeContext.raw:        frozenset(),
}

# heading, list, enum and term markers only mean something at the start of a line
LINE_START_RE = re.compile(r"^(=+|[-+])(?=\s|$)")
ENUM_START_RE = re.compile(r"^(\d+)\.(?=\s|$)")
STRING_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def escape_text(text: str, context: EscapeContext = EscapeContext.text) -> str:
    """Backslash-escape every character that Typst markup would interpret in context."""
    specials = CONTEXT_SPECIALS[context]
    if not specials:
        return text
    return "".join(f"\\{ch}" if ch in specials else ch for ch in text)


def escape_line_start(markup: str) -> str:
    """Escape a leading block marker (`= `, `- `, `+ `, `1. `) in already-escaped markup."""
    markup = LINE_START_RE.sub(r"\\\1", markup, count=1)
    return ENUM_START_RE.sub(r"\1\\.", markup, count=1)


def escape_string(value: str) -> str:
    """Escape value for use inside a Typst double-quoted string."""
    return "".join(STRING_ESCAPES.get(ch, ch) for ch in value)


def string_literal(value: str) -> str:
    return f'"{escape_string(value)}"'


def longest_run(text: str, ch: str) -> int:
    """Length of the longest consecutive run of ch in text."""
    runs = re.findall(f"{re.escape(ch)}+", text)
    return max((len(r) for r in runs), default=0)


def backtick_fence(text: str, minimum: int = 3) -> str:
    """A backtick fence longer than any backtick run inside text."""
    return "`" * max(minimum, longest_run(text, "`") + 1)
