"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

IGNORE_POSTFIXES_ENV = "SCRIPTORIUM_IGNORE_POSTFIXES"
DEFAULT_IGNORE_POSTFIXES = ("~", ".bak")


def _get_default_documents_path() -> Path:
    return Path("documents")


def _get_default_ignore_postfixes() -> tuple[str, ...]:
    """Postfixes of files that are never documents, e.g. editor backups."""
    value = os.environ.get(IGNORE_POSTFIXES_ENV)
    if value is None:
        return DEFAULT_IGNORE_POSTFIXES
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclass(slots=True)
class AppConfig:
    documents_path: Path | None = field(default_factory=_get_default_documents_path)
    db_path: Path | None = None
    default_name: str = "index"
    preferred_extension: str | None = None
    ignore_postfixes: tuple[str, ...] = field(default_factory=_get_default_ignore_postfixes)
    min_validity_check_interval: float | None = 1.0
    concurrency: int | None = None
    prepare: bool = False

    def __post_init__(self) -> None:
        if self.concurrency is not None and self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")

    def resolve_documents_path(self, base_dir: Path | None = None) -> Path:
        if self.documents_path is None:
            self.documents_path = _get_default_documents_path()
        return _resolve(Path(self.documents_path), base_dir)

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            raise ValueError("No database configured")
        return _resolve(Path(self.db_path), base_dir)


def _resolve(path: Path, base_dir: Path | None) -> Path:
    if path.is_absolute() or base_dir is None:
        return path
    return base_dir / path
