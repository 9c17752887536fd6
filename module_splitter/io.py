from __future__ import annotations

import codecs
from pathlib import Path
from typing import Tuple, Union

from .config import SUPPORTED_EXTENSIONS
from .errors import InputError, WriteError

PathLike = Union[str, Path]


def resolve_module_path(path: PathLike) -> Path:
    p = Path(path)
    if not p.exists():
        raise InputError(f"Module file not found: {p}")
    if not p.is_file():
        raise InputError(f"Not a file: {p}")
    if p.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise InputError(f"Unsupported file extension: {p.suffix or '<none>'} (expected {sorted(SUPPORTED_EXTENSIONS)})")
    return p.resolve()


def read_module(path: Path) -> Tuple[str, bool]:
    """Decode the module as UTF-8 keeping its line endings.

    A leading BOM is stripped from the text; the flag says whether it was there
    so writers can put it back.
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise InputError(f"Cannot read {path}: {e}")
    has_bom = raw.startswith(codecs.BOM_UTF8)
    if has_bom:
        raw = raw[len(codecs.BOM_UTF8):]
    try:
        return raw.decode("utf-8"), has_bom
    except UnicodeDecodeError as e:
        raise InputError(f"{path} is not valid UTF-8: {e}")


def _encode(text: str, bom: bool) -> bytes:
    data = text.encode("utf-8")
    return codecs.BOM_UTF8 + data if bom else data


def write_text_exclusive(path: Path, text: str, bom: bool = False) -> None:
    """Create ``path`` with ``text``; fails if it already exists."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "xb") as f:
            f.write(_encode(text, bom))
    except OSError as e:
        raise WriteError(path, e)


def write_text(path: Path, text: str, bom: bool = False) -> None:
    try:
        path.write_bytes(_encode(text, bom))
    except OSError as e:
        raise WriteError(path, e)
