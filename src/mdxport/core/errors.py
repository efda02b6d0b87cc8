"""Exception taxonomy for the frontmatter, convert, compile and watch stages"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SourceSpan:
    """1-based, inclusive line range in the markdown body."""
    start_line: int
    end_line:   int

    @classmethod
    def from_map(cls, line_map: Optional[list[int]]) -> Optional["SourceSpan"]:
        """Build a span from a markdown-it token map ([begin, end) zero-based), if any."""
        if not line_map:
            return None
        begin, end = line_map
        return cls(begin + 1, max(begin + 1, end))

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"line {self.start_line}"
        return f"lines {self.start_line}-{self.end_line}"


class MdxportError(Exception):
    """Base class for every error raised by the conversion pipeline."""


# --- frontmatter ---

class FrontmatterError(MdxportError):
    """The leading metadata block could not be turned into metadata."""


class Malformed(FrontmatterError):
    """The block is unterminated, not YAML, or fails the schema."""


class ConflictingAuthors(FrontmatterError):
    """Both `author` and `authors` were given."""

    def __init__(self):
        super().__init__("frontmatter may set either 'author' or 'authors', not both")


class UnknownKey(FrontmatterError):
    """Strict mode only: the block contains keys outside the schema."""

    def __init__(self, keys: list[str]):
        self.keys = keys
        super().__init__(f"unknown frontmatter key(s): {', '.join(keys)}")


# --- math ---

class MathError(MdxportError):
    """The LaTeX math translator rejected its input."""


# --- convert ---

class ConvertError(MdxportError):
    """Terminal failure while turning the document tree into markup."""

    def __init__(self, message: str, span: Optional[SourceSpan] = None):
        self.span = span
        super().__init__(f"{message} ({span})" if span else message)


class MathTranslation(ConvertError):
    def __init__(self, latex: str, cause: MathError, span: Optional[SourceSpan] = None):
        self.latex = latex
        self.cause = cause
        super().__init__(f"math translation failed for {latex!r}: {cause}", span)


class DanglingFootnoteReference(ConvertError):
    def __init__(self, label: str, span: Optional[SourceSpan] = None):
        self.label = label
        super().__init__(f"footnote reference [^{label}] has no definition", span)


class UnsupportedConstruct(ConvertError):
    def __init__(self, node_type: str, span: Optional[SourceSpan] = None):
        self.node_type = node_type
        super().__init__(f"unsupported markdown construct: {node_type}", span)


# --- compile ---

@dataclass(frozen=True)
class Diagnostic:
    """A single compiler message, with the source line when Typst reports one."""
    message: str
    line:    Optional[int] = None

    def __str__(self) -> str:
        return f"{self.message} (line {self.line})" if self.line else self.message


class CompileError(MdxportError):
    """The external compiler failed; diagnostics are surfaced verbatim."""

    def __init__(self, message: str, diagnostics: list[Diagnostic] = None):
        self.diagnostics = diagnostics or []
        detail = "\n".join(str(d) for d in self.diagnostics)
        super().__init__(f"{message}\n{detail}" if detail else message)


# --- watch ---

class WatchError(MdxportError):
    """Filesystem observation failed (e.g. the watched path was removed)."""
