"""Integration tests for the convert and templates commands"""

import pytest
from typer.testing import CliRunner

from mdxport.cli.cli import app


runner = CliRunner()


@pytest.fixture(autouse=True)
def patch_compiler(monkeypatch, fake_compiler):
    """Route every CLI compilation through the fake compiler."""
    monkeypatch.setattr("mdxport.cli.commands.compiler_from_settings", lambda settings: fake_compiler)


@pytest.fixture(name="workdir")
def workdir_fixture(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "hello.md").write_text("---\ntitle: Hello\n---\n# Hello\n\nWorld\n")
    return tmp_path


def test_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "convert" in result.output


def test_convert_writes_pdf_next_to_input(workdir, fake_compiler):
    result = runner.invoke(app, ["convert", "hello.md"])
    assert result.exit_code == 0, result.output
    assert (workdir / "hello.pdf").read_bytes() == fake_compiler.data
    assert "hello.pdf" in result.output
    assert "Converted 1 file(s)" in result.output


def test_convert_quiet(workdir):
    result = runner.invoke(app, ["convert", "hello.md", "--quiet"])
    assert result.exit_code == 0
    assert result.output == ""


def test_convert_metadata_options(workdir, fake_compiler):
    result = runner.invoke(app, [
        "convert", "hello.md", "-o", "out.pdf",
        "--title", "Custom", "-a", "Ada", "--author", "Alan", "--lang", "de", "--toc",
    ])
    assert result.exit_code == 0, result.output
    assert (workdir / "out.pdf").exists()
    assert '#article(title: "Custom", authors: ("Ada", "Alan"), lang: "de", toc: true)[' in fake_compiler.last_source


def test_convert_style_option(workdir, fake_compiler):
    result = runner.invoke(app, ["convert", "hello.md", "--style", "classic-editorial"])
    assert result.exit_code == 0, result.output
    assert fake_compiler.last_source.startswith("// classic-editorial")


def test_convert_custom_template(workdir, fake_compiler):
    (workdir / "mine.typ").write_text("// mine\n#let article(title: none, authors: (), lang: \"en\", toc: false, body) = body\n")
    result = runner.invoke(app, ["convert", "hello.md", "--template", "mine.typ"])
    assert result.exit_code == 0, result.output
    assert fake_compiler.last_source.startswith("// mine")


def test_convert_unknown_style_fails(workdir):
    result = runner.invoke(app, ["convert", "hello.md", "--style", "fancy"])
    assert result.exit_code == 1
    assert "Error: Unknown style 'fancy'" in result.output


def test_convert_missing_input_fails(workdir):
    result = runner.invoke(app, ["convert", "nope.md"])
    assert result.exit_code == 1
    assert "Error: Input not found: nope.md" in result.output


def test_convert_multiple_inputs_into_directory(workdir):
    (workdir / "second.md").write_text("Second\n")
    result = runner.invoke(app, ["convert", "hello.md", "second.md", "-o", "dist"])
    assert result.exit_code == 0, result.output
    assert sorted(p.name for p in (workdir / "dist").iterdir()) == ["hello.pdf", "second.pdf"]


def test_convert_multiple_inputs_reject_file_output(workdir):
    (workdir / "second.md").write_text("Second\n")
    result = runner.invoke(app, ["convert", "hello.md", "second.md", "-o", "book.pdf"])
    assert result.exit_code == 1
    assert "must be a directory" in result.output


def test_convert_conversion_error_fails(workdir):
    (workdir / "bad.md").write_text("Dangling[^x]\n")
    result = runner.invoke(app, ["convert", "bad.md"])
    assert result.exit_code == 1
    assert "Error: footnote reference [^x] has no definition" in result.output
    assert not (workdir / "bad.pdf").exists()


def test_convert_strict_frontmatter(workdir):
    (workdir / "extra.md").write_text("---\ndraft: true\n---\nBody\n")
    assert runner.invoke(app, ["convert", "extra.md"]).exit_code == 0
    result = runner.invoke(app, ["convert", "extra.md", "--strict"])
    assert result.exit_code == 1
    assert "unknown frontmatter key(s): draft" in result.output


def test_convert_stdin_to_stdout(workdir, fake_compiler):
    result = runner.invoke(app, ["convert"], input="# From stdin\n")
    assert result.exit_code == 0, result.output
    assert result.stdout_bytes == fake_compiler.data
    assert "= From stdin" in fake_compiler.last_source


def test_convert_stdin_to_file(workdir, fake_compiler):
    result = runner.invoke(app, ["convert", "-o", "piped.pdf"], input="text\n")
    assert result.exit_code == 0, result.output
    assert (workdir / "piped.pdf").read_bytes() == fake_compiler.data
    assert sorted(p.name for p in workdir.iterdir()) == ["hello.md", "piped.pdf"]


def test_convert_stdin_unwritable_output_fails(workdir):
    result = runner.invoke(app, ["convert", "-o", "hello.md/out.pdf"], input="text\n")
    assert result.exit_code == 1
    assert "Error: Cannot write hello.md/out.pdf" in result.output
    assert sorted(p.name for p in workdir.iterdir()) == ["hello.md"]


def test_convert_file_to_stdout(workdir, fake_compiler):
    result = runner.invoke(app, ["convert", "hello.md", "-o", "-"])
    assert result.exit_code == 0, result.output
    assert result.stdout_bytes == fake_compiler.data
    assert not (workdir / "hello.pdf").exists()


def test_watch_requires_input_files(workdir):
    result = runner.invoke(app, ["convert", "--watch"], input="")
    assert result.exit_code == 1
    assert "--watch needs at least one input file" in result.output


def test_config_file_style(workdir, fake_compiler):
    (workdir / "mdxport.yaml").write_text("style: classic-editorial\n")
    result = runner.invoke(app, ["convert", "hello.md"])
    assert result.exit_code == 0, result.output
    assert fake_compiler.last_source.startswith("// classic-editorial")


def test_templates_lists_styles():
    result = runner.invoke(app, ["templates"])
    assert result.exit_code == 0
    assert result.output.split() == ["modern-tech", "classic-editorial"]
