"""Typst compilation through the `typst` command-line compiler"""

import logging
import os
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Optional

from mdxport.core.errors import CompileError, Diagnostic


logger = logging.getLogger(__name__)

Compiler = Callable[[str, Optional[Path]], bytes]

# `--diagnostic-format short`: "main.typ:3:5: error: unknown variable: foo"
DIAGNOSTIC_RE = re.compile(
    r"^(?:(?P<file>.+?):(?P<line>\d+):(?P<col>\d+): )?(?P<severity>error|warning): (?P<message>.*)$"
)


def parse_diagnostics(stderr: str) -> list[Diagnostic]:
    """Collect error diagnostics from compiler output; warnings are only logged."""
    diagnostics = []
    for raw in stderr.splitlines():
        m = DIAGNOSTIC_RE.match(raw.strip())
        if not m:
            continue
        if m['severity'] == 'warning':
            logger.warning("typst: %s", m['message'])
            continue
        line = int(m['line']) if m['line'] else None
        diagnostics.append(Diagnostic(m['message'], line))
    return diagnostics


class TypstCompiler:
    """Compile Typst source to PDF bytes with an external `typst` binary."""

    def __init__(self, typst_bin: str = "typst", font_paths: list[str] = None):
        self.typst_bin = typst_bin
        self.font_paths = font_paths or []

    def executable(self) -> str:
        found = shutil.which(self.typst_bin)
        if not found:
            raise CompileError(f"Typst compiler not found: {self.typst_bin!r} (install typst or set typst_bin)")
        return found

    def command(self, main: Path, out: Path, root: Path) -> list[str]:
        cmd = [self.executable(), "compile", "--root", str(root), "--diagnostic-format", "short"]
        for font_path in self.font_paths:
            cmd += ["--font-path", font_path]
        return cmd + [str(main), str(out)]

    def __call__(self, source: str, root: Optional[Path] = None) -> bytes:
        """Compile source; relative paths (images) resolve against root when given."""
        with tempfile.TemporaryDirectory(prefix="mdxport-") as tmp:
            tmp_dir = Path(tmp)
            root = root.resolve() if root else tmp_dir
            # the main file must live under --root for relative includes to resolve
            fd, main_name = tempfile.mkstemp(prefix=".mdxport-", suffix=".typ", dir=root)
            main = Path(main_name)
            out = tmp_dir / "out.pdf"
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(source)
                cmd = self.command(main, out, root)
                logger.debug("running %s", " ".join(cmd))
                result = subprocess.run(cmd, capture_output=True, text=True, check=False)
            finally:
                main.unlink(missing_ok=True)

            diagnostics = parse_diagnostics(result.stderr)
            if result.returncode != 0:
                if not diagnostics and result.stderr.strip():
                    diagnostics = [Diagnostic(result.stderr.strip())]
                raise CompileError(f"typst exited with status {result.returncode}", diagnostics)
            if not out.exists():
                raise CompileError("typst produced no output", diagnostics)
            return out.read_bytes()
