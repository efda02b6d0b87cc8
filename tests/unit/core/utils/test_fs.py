"""Unit tests for core/utils/fs.py"""

from pathlib import Path

import pytest

from mdxport.core.utils.fs import atomic_write, default_output, resolve_output


def test_atomic_write_creates_parents_and_leaves_no_temp(tmp_path):
    dest = tmp_path / "out" / "doc.pdf"
    atomic_write(dest, b"data")
    assert dest.read_bytes() == b"data"
    assert [p.name for p in dest.parent.iterdir()] == ["doc.pdf"]


def test_atomic_write_replaces_existing(tmp_path):
    dest = tmp_path / "doc.pdf"
    dest.write_bytes(b"old")
    atomic_write(dest, b"new")
    assert dest.read_bytes() == b"new"


def test_atomic_write_cleans_up_on_failure(tmp_path, monkeypatch):
    dest = tmp_path / "doc.pdf"

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("mdxport.core.utils.fs.os.replace", broken_replace)
    with pytest.raises(OSError, match="disk full"):
        atomic_write(dest, b"data")
    assert list(tmp_path.iterdir()) == []


def test_default_output():
    assert default_output(Path("notes/a.md")) == Path("notes/a.pdf")


def test_resolve_output_explicit_file():
    assert resolve_output(Path("a.md"), Path("book.pdf")) == Path("book.pdf")


def test_resolve_output_directory_for_multiple_inputs():
    assert resolve_output(Path("docs/a.md"), Path("dist"), multiple=True) == Path("dist/a.pdf")


def test_resolve_output_existing_directory(tmp_path):
    assert resolve_output(Path("docs/a.md"), tmp_path) == tmp_path / "a.pdf"
