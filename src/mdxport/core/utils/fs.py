"""Output path helpers and atomic file writes"""

import os
import tempfile
from pathlib import Path


PDF_SUFFIX = ".pdf"


def atomic_write(path: Path, data: bytes) -> None:
    """Write data next to path, then os.replace it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def default_output(input_path: Path) -> Path:
    """`notes.md` -> `notes.pdf` beside the input."""
    return input_path.with_suffix(PDF_SUFFIX)


def resolve_output(input_path: Path, output: Path = None, multiple: bool = False) -> Path:
    """Destination for input_path: the explicit file, a file inside the output directory, or the default."""
    if output is None:
        return default_output(input_path)
    if multiple or output.is_dir():
        return output / default_output(Path(input_path.name))
    return output
