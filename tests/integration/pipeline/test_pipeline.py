"""Integration tests for the resolve -> parse -> convert -> compose pipeline.

Each test runs the canonical document below through one or more stages and
asserts stable expected values. Read this file top-to-bottom as a reference
for what each stage produces with default settings.

Canonical document (pipeline-test.md)
--------------------------------------
    ---
    title: Pipeline Test
    author: Ada
    ---

    # Introduction

    An *introductory* paragraph.[^1]

    ## Details

    - one
    - two

    [^1]: A note.

Metadata after resolve:
    title="Pipeline Test", authors=["Ada"], lang="en", toc=False

Body after convert:
    = Introduction
    An #emph[introductory] paragraph.#footnote[A note.] <fn-1>
    == Details
    - one / - two (tight list)
"""

import threading

from mdxport.core.convert import convert
from mdxport.core.frontmatter import resolve
from mdxport.core.parse import parse_markdown
from mdxport.core.pipeline import BuildOptions, build_file, build_source
from mdxport.core.template import CustomTemplate
from mdxport.core.watch import WatchSupervisor


CANONICAL_MD = """\
---
title: Pipeline Test
author: Ada
---

# Introduction

An *introductory* paragraph.[^1]

## Details

- one
- two

[^1]: A note.
"""

EXPECTED_BODY = (
    "= Introduction\n"
    "\n"
    "An #emph[introductory] paragraph.#footnote[A note.] <fn-1>\n"
    "\n"
    "== Details\n"
    "\n"
    "- one\n"
    "- two"
)

BARE_TEMPLATE = CustomTemplate("// bare\n")


def test_resolve_stage():
    metadata, body = resolve(CANONICAL_MD)
    assert metadata.model_dump() == {
        "title": "Pipeline Test", "authors": ["Ada"], "lang": "en", "toc": False,
    }
    assert body.startswith("\n# Introduction\n")


def test_convert_stage():
    metadata, body = resolve(CANONICAL_MD)
    converted = convert(parse_markdown(body), metadata)
    assert converted.body == EXPECTED_BODY
    assert converted.metadata == metadata


def test_full_source():
    source = build_source(CANONICAL_MD, BuildOptions(template=BARE_TEMPLATE))
    assert source == (
        "// bare\n"
        "\n"
        '#article(title: "Pipeline Test", authors: ("Ada",), lang: "en", toc: false)[\n'
        f"{EXPECTED_BODY}\n"
        "]\n"
    )


def test_cjk_document_detected_end_to_end():
    source = build_source("# 标题\n\n这是一个中文文档。\n", BuildOptions(template=BARE_TEMPLATE))
    assert 'lang: "zh"' in source
    assert "= 标题" in source


def test_watch_rebuilds_through_pipeline(tmp_path, fake_compiler):
    src = tmp_path / "pipeline-test.md"
    src.write_text(CANONICAL_MD, encoding="utf-8")
    dest = tmp_path / "out" / "pipeline-test.pdf"
    built = threading.Event()
    options = BuildOptions(template=BARE_TEMPLATE)

    with WatchSupervisor(
        lambda path: build_file(path, options, fake_compiler),
        debounce_ms=20, observe=False, on_built=lambda s, d: built.set(),
    ) as sup:
        sup.watch(src, dest)
        sup.notify(src)
        assert built.wait(5)

    assert dest.read_bytes() == fake_compiler.data
    source, root = fake_compiler.calls[0]
    assert EXPECTED_BODY in source
    assert root == tmp_path
