"""Local markdown-it plugins: [toc] markers, ^sup^ / ~sub~, dangling footnote refs"""

import re

from markdown_it import MarkdownIt
from markdown_it.rules_block import StateBlock
from markdown_it.rules_inline import StateInline


TOC_MARKER = "[toc]"
FOOTNOTE_REF_RE = re.compile(r"\[\^([^\]\s]+)\]")
UNESCAPE_RE = re.compile(r"\\([ \\!\"#$%&'()*+,./:;<=>?@\[\]^_`{|}~-])")
WHITESPACE_RE = re.compile(r"(^|[^\\])(\\\\)*\s")


def _toc_marker(state: StateBlock, start_line: int, end_line: int, silent: bool) -> bool:
    """A line holding only `[toc]` (any case) becomes a `toc_marker` token."""
    if state.sCount[start_line] - state.blkIndent >= 4:
        return False
    pos = state.bMarks[start_line] + state.tShift[start_line]
    line = state.src[pos:state.eMarks[start_line]].strip()
    if line.lower() != TOC_MARKER:
        return False
    if silent:
        return True
    token = state.push("toc_marker", "", 0)
    token.map = [start_line, start_line + 1]
    token.markup = line
    state.line = start_line + 1
    return True


def toc_plugin(md: MarkdownIt) -> None:
    md.block.ruler.before("reference", "toc_marker", _toc_marker, {"alt": ["paragraph"]})


def _script_rule(marker: str, name: str):
    """Build an inline rule for `^x^` / `~x~` (no unescaped whitespace inside)."""

    def rule(state: StateInline, silent: bool) -> bool:
        start, maximum = state.pos, state.posMax
        if state.src[start] != marker or silent:
            return False
        if start + 2 >= maximum:
            return False
        # `^[..]` is an inline footnote, `~~` is strikethrough
        if state.src[start + 1] in ("[", marker):
            return False

        state.pos = start + 1
        found = False
        while state.pos < maximum:
            if state.src[state.pos] == marker:
                found = True
                break
            state.md.inline.skipToken(state)
        if not found or start + 1 == state.pos:
            state.pos = start
            return False

        content = state.src[start + 1:state.pos]
        if WHITESPACE_RE.search(content):
            state.pos = start
            return False

        state.posMax = state.pos
        state.pos = start + 1
        token = state.push(f"{name}_open", name, 1)
        token.markup = marker
        token = state.push("text", "", 0)
        token.content = UNESCAPE_RE.sub(r"\1", content)
        token = state.push(f"{name}_close", name, -1)
        token.markup = marker
        state.pos = state.posMax + 1
        state.posMax = maximum
        return True

    return rule


def scripts_plugin(md: MarkdownIt) -> None:
    md.inline.ruler.after("emphasis", "sup", _script_rule("^", "sup"))
    md.inline.ruler.after("emphasis", "sub", _script_rule("~", "sub"))


def _defined_labels(state: StateInline) -> dict:
    return state.env.get("footnotes", {}).get("refs", {})


def _dangling_footnote(state: StateInline, silent: bool) -> bool:
    """Turn `[^label]` with no matching definition into a `footnote_dangling` token."""
    if not state.src.startswith("[^", state.pos):
        return False
    m = FOOTNOTE_REF_RE.match(state.src, state.pos, state.posMax)
    if not m:
        return False
    label = m.group(1)
    refs = _defined_labels(state)
    if f":{label}" in refs or label in refs:
        return False
    if not silent:
        token = state.push("footnote_dangling", "", 0)
        token.content = m.group(0)
        token.meta = {"label": label}
    state.pos = m.end()
    return True


def dangling_footnote_plugin(md: MarkdownIt) -> None:
    """Must run after mdit_py_plugins' footnote_plugin registered `footnote_ref`."""
    md.inline.ruler.after("footnote_ref", "footnote_dangling", _dangling_footnote)
