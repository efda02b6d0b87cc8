"""Template selection and composition of the final Typst source"""

import re
from dataclasses import dataclass
from enum import Enum
from importlib import resources
from pathlib import Path
from typing import Union

from mdxport.core.models import ConvertedDocument, ResolvedMetadata
from mdxport.core.utils.escape import string_literal


ARTICLE_DEF_RE = re.compile(r"#let\s+article\s*\(")


class Style(str, Enum):
    modern_tech       = "modern-tech"
    classic_editorial = "classic-editorial"

    @classmethod
    def parse(cls, name: str) -> "Style":
        """Look up a built-in style by its CLI name; unknown names raise ValueError."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            known = ", ".join(s.value for s in cls)
            raise ValueError(f"Unknown style {name!r} (available: {known})") from None

    @property
    def filename(self) -> str:
        return self.value.replace("-", "_") + ".typ"

    def source(self) -> str:
        return (resources.files("mdxport") / "templates" / self.filename).read_text(encoding="utf-8")


@dataclass(frozen=True)
class CustomTemplate:
    """User-supplied Typst source that defines the same `article` function as the built-ins."""
    source: str

    @classmethod
    def from_path(cls, path: Path) -> "CustomTemplate":
        source = path.read_text(encoding="utf-8")
        if not ARTICLE_DEF_RE.search(source):
            raise ValueError(f"Template {path} does not define `#let article(...)`")
        return cls(source)


Template = Union[Style, CustomTemplate]


def template_source(template: Template) -> str:
    return template.source() if isinstance(template, Style) else template.source


def article_call(metadata: ResolvedMetadata) -> str:
    """The opening `#article(..)[` line for metadata."""
    title = metadata.title.strip() if metadata.title else ""
    authors = ", ".join(string_literal(a) for a in metadata.authors)
    if len(metadata.authors) == 1:
        authors += ","
    args = ", ".join([
        f"title: {string_literal(title) if title else 'none'}",
        f"authors: ({authors})",
        f"lang: {string_literal(metadata.lang)}",
        f"toc: {'true' if metadata.toc else 'false'}",
    ])
    return f"#article({args})["


def compose(converted: ConvertedDocument, template: Template = Style.modern_tech) -> str:
    """Template source, a blank line, then the body wrapped in an `article` call."""
    source = template_source(template).rstrip("\n")
    return f"{source}\n\n{article_call(converted.metadata)}\n{converted.body}\n]\n"
