"""Markdown source reading and markdown-it tree construction"""

from pathlib import Path

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode
from mdit_py_plugins.deflist import deflist_plugin
from mdit_py_plugins.dollarmath import dollarmath_plugin
from mdit_py_plugins.footnote import footnote_plugin
from mdit_py_plugins.tasklists import tasklists_plugin

from mdxport.core.syntax import dangling_footnote_plugin, scripts_plugin, toc_plugin


def make_parser(preset: str = 'gfm-like') -> MarkdownIt:
    """Build a MarkdownIt instance with GFM extras, math, footnotes and local plugins."""
    md = MarkdownIt(preset, options_update={"linkify": False})
    md.enable(["table", "strikethrough"])
    return (
        md.use(footnote_plugin)
          .use(dangling_footnote_plugin)
          .use(tasklists_plugin)
          .use(dollarmath_plugin, allow_digits=False)
          .use(deflist_plugin)
          .use(scripts_plugin)
          .use(toc_plugin)
    )


def parse_markdown(body: str, preset: str = 'gfm-like') -> SyntaxTreeNode:
    """Parse a frontmatter-free markdown body into a syntax tree."""
    tokens = make_parser(preset).parse(body, {})
    return SyntaxTreeNode(tokens)


def read_source(path: Path) -> str:
    """Read a markdown file as UTF-8 text."""
    return path.read_text(encoding='utf-8')
