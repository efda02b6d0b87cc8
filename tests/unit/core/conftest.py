"""Shared fixtures for core unit tests"""

import pytest

from mdxport.core.convert import convert
from mdxport.core.models import ResolvedMetadata
from mdxport.core.parse import parse_markdown


def _echo_math(latex: str, is_block: bool) -> str:
    return f"M({latex})"


@pytest.fixture(name="to_typst")
def to_typst_fixture():
    """Convert a markdown body to Typst markup with default metadata and a stub math translator."""

    def run(markdown: str, metadata: ResolvedMetadata = None, translate_math=_echo_math):
        tree = parse_markdown(markdown)
        return convert(tree, metadata or ResolvedMetadata(), translate_math)

    return run
