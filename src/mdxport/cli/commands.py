"""CLI command implementations"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from mdxport.config import Settings, load_config
from mdxport.core.errors import MdxportError
from mdxport.core.models import MetadataOverrides
from mdxport.core.pipeline import (
    BuildOptions, build_file, build_pdf, compiler_from_settings, options_from_settings, run_convert,
)
from mdxport.core.template import Style
from mdxport.core.utils.fs import atomic_write, resolve_output
from mdxport.core.watch import WatchSupervisor


STDOUT = "-"


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        return load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _write_stdout(data: bytes) -> None:
    stream = typer.get_binary_stream("stdout")
    stream.write(data)
    stream.flush()


def _convert_stdin(output: Optional[str], options: BuildOptions, compiler) -> None:
    """Read markdown from stdin; write to --output, or stdout when it is absent or '-'."""
    raw = typer.get_text_stream("stdin").read()
    try:
        data = build_pdf(raw, options, compiler, Path.cwd())
    except MdxportError as e:
        _fail(str(e))
    if output in (None, STDOUT):
        _write_stdout(data)
    else:
        try:
            atomic_write(Path(output), data)
        except OSError as e:
            _fail(f"Cannot write {output}", e)


def _watch(inputs: list[Path], output: Optional[Path], options: BuildOptions, compiler,
           debounce_ms: int, quiet: bool) -> None:
    """Build every input once, then rebuild on change until interrupted."""

    def on_built(source: Path, dest: Path) -> None:
        if not quiet:
            typer.echo(f"  {source} -> {dest}")

    def on_error(source: Path, error: Exception) -> None:
        typer.echo(f"Error: {source}: {error}", err=True)

    supervisor = WatchSupervisor(
        lambda path: build_file(path, options, compiler),
        debounce_ms=debounce_ms, on_error=on_error, on_built=on_built,
    )
    multiple = len(inputs) > 1
    try:
        for path in inputs:
            supervisor.watch(path, resolve_output(path, output, multiple))
            supervisor.notify(path)
        if not quiet:
            typer.echo("Watching for changes (Ctrl+C to stop)")
        while not supervisor.wait(0.5):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        supervisor.stop()


def convert_cmd(
    inputs: Annotated[Optional[list[Path]], typer.Argument(help="Markdown files (reads stdin when omitted)")] = None,
    output: Annotated[Optional[str], typer.Option("--output", "-o", help="Output PDF, directory, or '-' for stdout")] = None,
    style: Annotated[Optional[str], typer.Option("--style", "-s", help="Built-in template style")] = None,
    template: Annotated[Optional[Path], typer.Option("--template", help="Custom Typst template file")] = None,
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="Document title")] = None,
    author: Annotated[Optional[list[str]], typer.Option("--author", "-a", help="Author (repeatable)")] = None,
    lang: Annotated[Optional[str], typer.Option("--lang", help="Document language, e.g. en or zh")] = None,
    toc: Annotated[Optional[bool], typer.Option("--toc/--no-toc", help="Force the table of contents on or off")] = None,
    strict: Annotated[bool, typer.Option("--strict", help="Reject unknown frontmatter keys")] = False,
    watch: Annotated[bool, typer.Option("--watch", "-w", help="Rebuild whenever an input changes")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    quiet: Annotated[bool, typer.Option("--quiet", help="Only print errors")] = False,
    ):
    """Convert Markdown files (or stdin) to PDF."""
    _setup_logging(verbose)
    settings = _settings(overrides={
        "style": style,
        "template": str(template) if template else None,
        "strict_frontmatter": strict or None,
    })
    overrides = MetadataOverrides(title=title, authors=author or None, lang=lang, toc=toc)
    try:
        options = options_from_settings(settings, overrides)
    except (ValueError, OSError) as e:
        _fail(str(e))
    compiler = compiler_from_settings(settings)

    if not inputs:
        if watch:
            _fail("--watch needs at least one input file")
        _convert_stdin(output, options, compiler)
        return

    missing = [str(p) for p in inputs if not p.is_file()]
    if missing:
        _fail(f"Input not found: {', '.join(missing)}")

    if output == STDOUT:
        if watch or len(inputs) > 1:
            _fail("Writing to stdout needs exactly one input and no --watch")
        try:
            _write_stdout(build_file(inputs[0], options, compiler))
        except MdxportError as e:
            _fail(str(e))
        return

    out_path = Path(output) if output else None
    if len(inputs) > 1 and out_path is not None and out_path.suffix:
        _fail(f"--output must be a directory when converting {len(inputs)} files")

    if watch:
        _watch(inputs, out_path, options, compiler, settings.debounce_ms, quiet)
        return

    try:
        results = run_convert(inputs, out_path, options, compiler)
    except (MdxportError, ValueError, OSError) as e:
        _fail(str(e))
    if not quiet:
        for src, dest in results:
            typer.echo(f"  {src} -> {dest}")
        typer.echo(f"Converted {len(results)} file(s)")


def templates_cmd():
    """List the built-in template styles."""
    for style in Style:
        typer.echo(style.value)
