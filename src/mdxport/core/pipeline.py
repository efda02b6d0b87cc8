"""Pipeline step functions: resolve -> parse -> convert -> compose -> compile"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from mdxport.config import Settings
from mdxport.core.compile import Compiler, TypstCompiler
from mdxport.core.convert import convert
from mdxport.core.frontmatter import CJK_THRESHOLD, resolve
from mdxport.core.models import MetadataOverrides
from mdxport.core.parse import parse_markdown, read_source
from mdxport.core.template import CustomTemplate, Style, Template, compose
from mdxport.core.utils.fs import atomic_write, resolve_output


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildOptions:
    """Everything a single conversion needs besides the markdown itself."""
    overrides:     MetadataOverrides = field(default_factory=MetadataOverrides)
    template:      Template = Style.modern_tech
    parser_config: str = 'gfm-like'
    strict:        bool = False
    cjk_threshold: float = CJK_THRESHOLD


def options_from_settings(settings: Settings, overrides: MetadataOverrides = None) -> BuildOptions:
    """Pick the custom template when configured, else the named built-in style."""
    if settings.template:
        template = CustomTemplate.from_path(Path(settings.template))
    else:
        template = Style.parse(settings.style)
    return BuildOptions(
        overrides=overrides or MetadataOverrides(),
        template=template,
        parser_config=settings.parser_config,
        strict=settings.strict_frontmatter,
        cjk_threshold=settings.cjk_threshold,
    )


def compiler_from_settings(settings: Settings) -> TypstCompiler:
    return TypstCompiler(settings.typst_bin, settings.font_paths)


def build_source(raw_source: str, options: BuildOptions = BuildOptions()) -> str:
    """Markdown text (with optional frontmatter) to a complete Typst document."""
    metadata, body = resolve(
        raw_source, options.overrides,
        strict=options.strict, cjk_threshold=options.cjk_threshold,
    )
    logger.debug("metadata: %s", metadata)
    tree = parse_markdown(body, options.parser_config)
    converted = convert(tree, metadata)
    return compose(converted, options.template)


def build_pdf(
    raw_source: str,
    options: BuildOptions,
    compiler: Compiler,
    root: Optional[Path] = None,
    ) -> bytes:
    """Markdown text to PDF bytes; root anchors relative image paths."""
    return compiler(build_source(raw_source, options), root)


def markdown_to_pdf(
    raw_source: str,
    options: BuildOptions = BuildOptions(),
    compiler: Optional[Compiler] = None,
    root: Optional[Path] = None,
    ) -> bytes:
    """One-call API: markdown text to PDF bytes, compiled by the `typst` CLI unless a compiler is given."""
    return build_pdf(raw_source, options, compiler or TypstCompiler(), root)


def build_file(path: Path, options: BuildOptions, compiler: Compiler) -> bytes:
    """Read and build one markdown file, resolving assets beside it."""
    logger.info("building %s", path)
    return build_pdf(read_source(path), options, compiler, path.parent)


def run_convert(
    inputs: list[Path],
    output: Optional[Path],
    options: BuildOptions,
    compiler: Compiler,
    ) -> list[tuple[Path, Path]]:
    """Convert each input to its destination. Returns (source, destination) pairs.

    Stops at the first failure; files already written stay written.
    """
    multiple = len(inputs) > 1
    if multiple and output is not None and output.suffix:
        raise ValueError(f"--output must be a directory when converting {len(inputs)} files")
    results = []
    for path in inputs:
        dest = resolve_output(path, output, multiple)
        atomic_write(dest, build_file(path, options, compiler))
        logger.info("wrote %s", dest)
        results.append((path, dest))
    return results
