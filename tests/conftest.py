"""Root test configuration: environment isolation and shared fixtures"""

import os
from pathlib import Path

import pytest


FIXTURES_DIR = Path(__file__).parent / "fixtures"
FAKE_PDF = b"%PDF-1.7 fake"


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch):
    """Drop MDXPORT_* variables so the developer's environment cannot leak into tests."""
    for name in list(os.environ):
        if name.startswith("MDXPORT_"):
            monkeypatch.delenv(name)


@pytest.fixture(name="basic_md")
def basic_md_fixture() -> Path:
    return FIXTURES_DIR / "basic.md"


class FakeCompiler:
    """Stands in for TypstCompiler: records every call and returns fixed bytes."""

    def __init__(self, data: bytes = FAKE_PDF):
        self.data = data
        self.calls: list[tuple[str, Path]] = []

    def __call__(self, source: str, root: Path = None) -> bytes:
        self.calls.append((source, root))
        return self.data

    @property
    def last_source(self) -> str:
        return self.calls[-1][0]


@pytest.fixture(name="fake_compiler")
def fake_compiler_fixture() -> FakeCompiler:
    return FakeCompiler()
