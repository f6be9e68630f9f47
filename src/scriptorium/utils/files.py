"""Utility helpers for working with document files."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator


def is_ignored(path: Path, ignore_postfixes: Iterable[str] = ()) -> bool:
    """Hidden files and files ending with an ignored postfix are not documents."""
    if path.name.startswith("."):
        return True
    return any(path.name.endswith(postfix) for postfix in ignore_postfixes if postfix)


def iter_document_paths(base: Path, ignore_postfixes: Iterable[str] = ()) -> Iterator[Path]:
    """Yield document files under ``base``, descending into directories."""
    postfixes = tuple(ignore_postfixes)
    if not base.is_dir():
        return
    for child in sorted(base.iterdir()):
        if is_ignored(child, postfixes):
            continue
        if child.is_dir():
            yield from iter_document_paths(child, postfixes)
        elif child.is_file():
            yield child


def extension_of(name: str) -> str:
    """Extension of the last path component, without the dot ("" if none)."""
    suffix = PurePosixPath(name).suffix
    return suffix[1:] if suffix else ""


def relative_name(path: Path, base: Path) -> str:
    """Document name of ``path`` relative to ``base`` using forward slashes."""
    return path.relative_to(base).as_posix()
