"""Syntax-tree to Typst markup conversion"""

import re
from dataclasses import dataclass, field
from typing import Optional

from markdown_it.tree import SyntaxTreeNode

from mdxport.core.errors import (
    DanglingFootnoteReference, MathError, MathTranslation, SourceSpan, UnsupportedConstruct,
)
from mdxport.core.math import MathTranslator, latex_to_typst
from mdxport.core.models import ConvertedDocument, ResolvedMetadata
from mdxport.core.utils.escape import (
    EscapeContext, backtick_fence, escape_line_start, escape_text, string_literal,
)


TOC_DIRECTIVE = "#outline() <mdxport-toc>"
THEMATIC_BREAK = "#line(length: 100%, stroke: 0.5pt)"
UNCHECKED_BOX, CHECKED_BOX = "☐", "☑"
INDENT = "  "

INLINE_FUNCTIONS = {
    'em':     'emph',
    'strong': 'strong',
    's':      'strike',
    'sup':    'super',
    'sub':    'sub',
}
ALERTS = {
    'NOTE':      'Note',
    'TIP':       'Tip',
    'IMPORTANT': 'Important',
    'WARNING':   'Warning',
    'CAUTION':   'Caution',
}
ALERT_RE = re.compile(r"^\[!([A-Za-z]+)\]\s*$")
ALIGN_RE = re.compile(r"text-align:\s*(left|center|right)")
LABEL_RE = re.compile(r"^[\w\-.:]+$")
# placeholder for the first reference to footnote N until its definition is rendered
SLOT_RE = re.compile(r"\x00(\d+)\x00")
# ignored wherever they appear
SKIPPED = {'html_block', 'html_inline', 'footnote_anchor'}


def _slot(number: int) -> str:
    return f"\x00{number}\x00"


def _indent_tail(text: str, prefix: str = INDENT) -> str:
    """Indent every line after the first; blank lines stay blank."""
    first, *rest = text.split("\n")
    return "\n".join([first] + [prefix + line if line else line for line in rest])


def _escape_lines(markup: str) -> str:
    """Escape leading block markers on every line; a `[..]` body also starts a line."""
    return "\n".join(escape_line_start(line) for line in markup.split("\n"))


def _plain_text(nodes: list[SyntaxTreeNode]) -> str:
    """Unformatted text of an inline run, as used for image alt text."""
    parts = []
    for node in nodes:
        if node.type in ('text', 'code_inline'):
            parts.append(node.content)
        elif node.type in ('softbreak', 'hardbreak'):
            parts.append(" ")
        else:
            parts.append(_plain_text(node.children))
    return "".join(parts)


def _heading_level(node: SyntaxTreeNode) -> int:
    return int(node.tag[1:]) if node.tag[1:].isdigit() else 1


def _cell_align(cell: SyntaxTreeNode) -> str:
    m = ALIGN_RE.search(str(cell.attrGet('style') or ''))
    return m.group(1) if m else 'auto'


def _is_loose(list_node: SyntaxTreeNode) -> bool:
    """markdown-it hides the paragraphs of tight lists."""
    return any(
        child.type == 'paragraph' and not child.hidden
        for item in list_node.children
        for child in item.children
    )


def _task_state(item: SyntaxTreeNode) -> Optional[bool]:
    """True / False for a checked / unchecked task item, None for plain items."""
    if 'task-list-item' not in str(item.attrGet('class') or ''):
        return None
    for child in item.children:
        if child.type != 'paragraph':
            continue
        for inline in child.children:
            for node in inline.children:
                if node.type == 'html_inline' and 'checkbox' in node.content:
                    return 'checked="checked"' in node.content
        break
    return False


@dataclass
class ConversionState:
    """Mutable bookkeeping for one document walk."""
    definitions:  dict[int, SyntaxTreeNode] = field(default_factory=dict)
    numbers:      dict[int, int] = field(default_factory=dict)
    order:        list[int] = field(default_factory=list)
    rendered:     dict[int, str] = field(default_factory=dict)
    toc_consumed: bool = False
    context:      EscapeContext = EscapeContext.text
    span:         Optional[SourceSpan] = None


class NodeConverter:
    """Depth-first walk over a markdown-it syntax tree producing Typst markup."""

    def __init__(self, translate_math: MathTranslator = latex_to_typst):
        self.translate_math = translate_math
        self.state = ConversionState()

    # --- entry point ---

    def convert(self, tree: SyntaxTreeNode, metadata: ResolvedMetadata) -> ConvertedDocument:
        self.state = ConversionState()
        blocks = []
        for child in tree.children:
            if child.type == 'footnote_block':
                self._collect_definitions(child)
        for child in tree.children:
            if child.type != 'footnote_block':
                blocks.append(self.block(child))
        body = self._resolve_footnotes("\n\n".join(b for b in blocks if b))

        if self.state.toc_consumed and not metadata.toc:
            metadata = metadata.model_copy(update={'toc': True})
        return ConvertedDocument(body=body, metadata=metadata)

    # --- footnotes ---

    def _collect_definitions(self, block: SyntaxTreeNode) -> None:
        for node in block.children:
            if node.type == 'footnote':
                self.state.definitions[node.meta['id']] = node

    def _footnote_ref(self, node: SyntaxTreeNode) -> str:
        fid = node.meta['id']
        if fid not in self.state.definitions:
            raise DanglingFootnoteReference(str(node.meta.get('label') or fid + 1), self.state.span)
        if fid in self.state.numbers:
            return f"#footnote(<fn-{self.state.numbers[fid]}>)"
        number = len(self.state.order) + 1
        self.state.numbers[fid] = number
        self.state.order.append(fid)
        return _slot(number)

    def _resolve_footnotes(self, body: str) -> str:
        """Render definitions in first-reference order, then fill the first-reference slots."""
        i = 0
        # definitions may reference footnotes of their own, which extends the order
        while i < len(self.state.order):
            fid = self.state.order[i]
            node = self.state.definitions[fid]
            self.state.rendered[i + 1] = self.blocks(node.children)
            i += 1

        def expand(text: str) -> str:
            return SLOT_RE.sub(
                lambda m: f"#footnote[{expand(self.state.rendered[int(m[1])])}] <fn-{m[1]}>",
                text,
            )

        return expand(body)

    # --- blocks ---

    def blocks(self, nodes: list[SyntaxTreeNode], sep: str = "\n\n") -> str:
        return sep.join(b for b in (self.block(n) for n in nodes) if b)

    def block(self, node: SyntaxTreeNode) -> str:
        if node.map:
            self.state.span = SourceSpan.from_map(node.map)
        if node.type in SKIPPED:
            return ""
        handler = getattr(self, f"_block_{node.type}", None)
        if handler is None:
            raise UnsupportedConstruct(node.type, SourceSpan.from_map(node.map) or self.state.span)
        return handler(node)

    def _block_paragraph(self, node: SyntaxTreeNode) -> str:
        text = "".join(self.inline(child) for child in node.children if child.type == 'inline')
        return _escape_lines(text)

    def _block_heading(self, node: SyntaxTreeNode) -> str:
        text = "".join(self.inline(child) for child in node.children)
        return f"{'=' * _heading_level(node)} {text}".rstrip()

    def _block_hr(self, node: SyntaxTreeNode) -> str:
        return THEMATIC_BREAK

    def _block_toc_marker(self, node: SyntaxTreeNode) -> str:
        if self.state.toc_consumed:
            return ""
        self.state.toc_consumed = True
        return TOC_DIRECTIVE

    def _block_fence(self, node: SyntaxTreeNode) -> str:
        code = node.content.rstrip("\n")
        lang = node.info.strip().split(maxsplit=1)[0] if node.info.strip() else ""
        fence = backtick_fence(code)
        return f"{fence}{lang}\n{code}\n{fence}"

    _block_code_block = _block_fence

    def _block_math_block(self, node: SyntaxTreeNode) -> str:
        return f"$ {self._math(node.content, True)} $"

    def _block_math_block_label(self, node: SyntaxTreeNode) -> str:
        math = self._block_math_block(node)
        label = node.info.strip()
        return f"{math} <{label}>" if LABEL_RE.match(label) else math

    def _block_blockquote(self, node: SyntaxTreeNode) -> str:
        children = list(node.children)
        title = self._alert_title(children[0]) if children else None
        parts = []
        if title is not None:
            kind, rest = title
            parts.append(f"#strong[{ALERTS[kind]}]")
            if rest:
                parts.append(rest)
            children = children[1:]
        body = self.blocks(children)
        if body:
            parts.append(body)
        if node.children and not parts:
            return ""
        return "#quote(block: true)[\n" + "\n\n".join(parts) + "\n]"

    def _alert_title(self, first: SyntaxTreeNode) -> Optional[tuple[str, str]]:
        """Detect a `[!KIND]` first line; return (KIND, rest of the paragraph)."""
        if first.type != 'paragraph' or not first.children:
            return None
        inline = first.children[0].children
        head = []
        for i, node in enumerate(inline):
            if node.type in ('softbreak', 'hardbreak'):
                break
            if node.type != 'text':
                return None
            head.append(node.content)
        else:
            i = len(inline)
        m = ALERT_RE.match("".join(head))
        if not m or m.group(1).upper() not in ALERTS:
            return None
        rest = self.inline_nodes(inline[i + 1:])
        return m.group(1).upper(), _escape_lines(rest)

    def _block_bullet_list(self, node: SyntaxTreeNode) -> str:
        return self._list(node, lambda i: "-")

    def _block_ordered_list(self, node: SyntaxTreeNode) -> str:
        start = int(node.attrGet('start') or 1)
        return self._list(node, lambda i: f"{start + i}.")

    def _list(self, node: SyntaxTreeNode, marker) -> str:
        loose = _is_loose(node)
        sep = "\n\n" if loose else "\n"
        items = []
        for i, item in enumerate(node.children):
            content = self.blocks(item.children, sep)
            task = _task_state(item)
            if task is None and item.children and not content:
                continue
            if task is not None:
                box = CHECKED_BOX if task else UNCHECKED_BOX
                content = f"{box} {content.lstrip()}"
            items.append(f"{marker(i)} {_indent_tail(content)}".rstrip())
        return sep.join(items)

    def _block_dl(self, node: SyntaxTreeNode) -> str:
        """Typst term list: one `/ term: details` entry per dt and its dd siblings."""
        entries = []
        term, details = None, []
        for child in node.children:
            if child.type == 'dt':
                if term is not None:
                    entries.append((term, details))
                term, details = "".join(self.inline(c) for c in child.children), []
            elif child.type == 'dd':
                details.append(self.blocks(child.children))
        if term is not None:
            entries.append((term, details))
        lines = []
        for t, d in entries:
            details = _indent_tail("\n".join(d))
            lines.append(f"/ {t}: {details}".rstrip())
        return "\n".join(lines)

    def _block_table(self, node: SyntaxTreeNode) -> str:
        head = [c for c in node.children if c.type == 'thead']
        body = [c for c in node.children if c.type == 'tbody']
        header = head[0].children[0].children if head and head[0].children else []
        columns = len(header)
        aligns = [_cell_align(c) for c in header]
        rows = [
            self._row(row.children, columns)
            for section in body
            for row in section.children
        ]
        align = ", ".join(aligns) + ("," if columns == 1 else "")
        lines = [
            "#table(",
            f"{INDENT}columns: {columns},",
            f"{INDENT}align: ({align}),",
            f"{INDENT}table.header({', '.join(self._row(header, columns))}),",
        ]
        lines += [f"{INDENT}{', '.join(cells)}," for cells in rows]
        lines.append(")")
        return "\n".join(lines)

    def _row(self, cells: list[SyntaxTreeNode], columns: int) -> list[str]:
        """Render one row as `[..]` cells, padded or truncated to columns."""
        outer, self.state.context = self.state.context, EscapeContext.table_cell
        try:
            rendered = [
                "[" + _escape_lines("".join(self.inline(c) for c in cell.children)) + "]"
                for cell in cells[:columns]
            ]
        finally:
            self.state.context = outer
        return rendered + ["[]"] * (columns - len(rendered))

    # --- inline ---

    def inline(self, node: SyntaxTreeNode) -> str:
        if node.type == 'inline':
            return self.inline_nodes(node.children)
        return self.inline_nodes([node])

    def inline_nodes(self, nodes: list[SyntaxTreeNode]) -> str:
        """Render a run of inline siblings, escaping call continuations after `#f(..)[..]`."""
        parts = []
        after_call = False
        for node in nodes:
            text = self._inline_node(node)
            if not text:
                continue
            if after_call and node.type == 'text' and text[0] in "(.":
                text = "\\" + text
            parts.append(text)
            after_call = text.startswith("#") and text[-1] in ")]"
        return "".join(parts)

    def _inline_node(self, node: SyntaxTreeNode) -> str:
        kind = node.type
        if kind in SKIPPED:
            return ""
        if kind == 'text':
            return escape_text(node.content, self.state.context)
        if kind == 'softbreak':
            return " "
        if kind == 'hardbreak':
            return "\\\n"
        if kind in INLINE_FUNCTIONS:
            return f"#{INLINE_FUNCTIONS[kind]}[{_escape_lines(self.inline_nodes(node.children))}]"
        if kind == 'code_inline':
            code = node.content
            return f"#raw({string_literal(code)})" if "`" in code else f"`{code}`"
        if kind == 'link':
            href = str(node.attrGet('href') or '')
            return f"#link({string_literal(href)})[{_escape_lines(self.inline_nodes(node.children))}]"
        if kind == 'image':
            src = str(node.attrGet('src') or '')
            alt = _plain_text(node.children).strip()
            if alt:
                return f"#image({string_literal(src)}, alt: {string_literal(alt)})"
            return f"#image({string_literal(src)})"
        if kind == 'math_inline':
            return f"${self._math(node.content, False)}$"
        if kind == 'math_inline_double':
            return f"$ {self._math(node.content, True)} $"
        if kind == 'footnote_ref':
            return self._footnote_ref(node)
        if kind == 'footnote_dangling':
            raise DanglingFootnoteReference(node.meta['label'], self.state.span)
        raise UnsupportedConstruct(kind, self.state.span)

    def _math(self, latex: str, is_block: bool) -> str:
        try:
            return self.translate_math(latex.strip(), is_block).strip()
        except MathError as e:
            raise MathTranslation(latex, e, self.state.span) from e


def convert(
    tree: SyntaxTreeNode,
    metadata: ResolvedMetadata,
    translate_math: MathTranslator = latex_to_typst,
    ) -> ConvertedDocument:
    """Convert a parsed markdown body into Typst markup; raises ConvertError."""
    return NodeConverter(translate_math).convert(tree, metadata)
