"""Frontmatter splitting, validation and metadata resolution"""

from typing import Any, Optional

import yaml
from pydantic import ValidationError

from mdxport.core.errors import ConflictingAuthors, Malformed, UnknownKey
from mdxport.core.models import FrontMatter, MetadataOverrides, ResolvedMetadata


DELIMITER = "---"
BOM = "\ufeff"
CJK_THRESHOLD = 0.15
CJK_LANG = "zh"
DEFAULT_LANG = "en"
CJK_RANGES = ((0x4E00, 0x9FFF), (0x3400, 0x4DBF))


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Return (frontmatter_dict, body) with the leading YAML block removed.

    The block must open on the very first line; without an opening `---` the
    whole text is body. An opening line with no closing line is Malformed.
    """
    text = text.lstrip(BOM)
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != DELIMITER:
        return {}, text

    for i in range(1, len(lines)):
        if lines[i].rstrip() == DELIMITER:
            block, body = "".join(lines[1:i]), "".join(lines[i + 1:])
            break
    else:
        raise Malformed("frontmatter must have opening and closing ---")

    if not block.strip():
        return {}, body
    try:
        fm = yaml.safe_load(block)
    except yaml.YAMLError as e:
        raise Malformed(f"Invalid YAML frontmatter: {e}") from e
    if fm is None:
        return {}, body
    if not isinstance(fm, dict):
        raise Malformed(f"Invalid YAML frontmatter: expected a mapping, got {type(fm).__name__}")
    return {str(k): v for k, v in fm.items()}, body


def parse_frontmatter(data: dict[str, Any], strict: bool = False) -> FrontMatter:
    """Validate a raw frontmatter mapping against the FrontMatter schema."""
    try:
        fm = FrontMatter.model_validate(data)
    except ValidationError as e:
        raise Malformed(f"Invalid frontmatter: {e}") from e
    if fm.author is not None and fm.authors is not None:
        raise ConflictingAuthors()
    if strict and fm.unknown_keys:
        raise UnknownKey(fm.unknown_keys)
    return fm


def _non_empty(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _resolve_authors(fm: FrontMatter, overrides: MetadataOverrides) -> list[str]:
    """Override list wins; else deduplicated `authors`; else the `author` scalar."""
    for candidates in (overrides.authors, fm.authors):
        names = [n for n in (_non_empty(a) for a in candidates or []) if n]
        if names:
            return list(dict.fromkeys(names))
    author = _non_empty(fm.author)
    return [author] if author else []


def cjk_ratio(text: str) -> float:
    """Share of non-whitespace code points that fall in the CJK ideograph blocks."""
    total = cjk = 0
    for ch in text:
        if ch.isspace():
            continue
        total += 1
        code = ord(ch)
        if any(lo <= code <= hi for lo, hi in CJK_RANGES):
            cjk += 1
    return cjk / total if total else 0.0


def detect_lang(text: str, threshold: float = CJK_THRESHOLD) -> str:
    """Return the CJK tag when the CJK ratio strictly exceeds threshold, else the default."""
    return CJK_LANG if cjk_ratio(text) > threshold else DEFAULT_LANG


def resolve(
    raw_source: str,
    overrides: MetadataOverrides = None,
    *,
    strict: bool = False,
    cjk_threshold: float = CJK_THRESHOLD,
    ) -> tuple[ResolvedMetadata, str]:
    """Split raw_source and merge overrides > frontmatter > detection > defaults."""
    overrides = overrides or MetadataOverrides()
    data, body = split_frontmatter(raw_source)
    fm = parse_frontmatter(data, strict)

    lang = (
        _non_empty(overrides.lang)
        or _non_empty(fm.lang)
        or detect_lang(body, cjk_threshold)
    )
    toc = next((v for v in (overrides.toc, fm.toc) if v is not None), False)
    metadata = ResolvedMetadata(
        title=_non_empty(overrides.title) or _non_empty(fm.title),
        authors=_resolve_authors(fm, overrides),
        lang=lang,
        toc=toc,
    )
    return metadata, body
