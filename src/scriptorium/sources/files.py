"""Documents stored as files under a base directory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from scriptorium.errors import not_found, parsing_error
from scriptorium.models import SourceDocument
from scriptorium.utils.files import extension_of, is_ignored, iter_document_paths, relative_name

LOGGER = logging.getLogger(__name__)


class FileSource:
    """Serves the files under ``base_path`` as documents.

    Document names are paths relative to the base directory. A name may leave
    out the extension (``"pages/home"`` finds ``pages/home.tpl``) or name a
    directory, in which case the directory's ``default_name`` document is
    used. When several files match, the preferred extension wins.
    """

    def __init__(
        self,
        base_path: Path,
        *,
        identifier: str | None = None,
        default_name: str | None = "index",
        preferred_extension: str | None = None,
        ignore_postfixes: Iterable[str] = (),
        encoding: str = "utf-8",
    ) -> None:
        self.base_path = Path(base_path).resolve()
        self.identifier = identifier or str(self.base_path)
        self.default_name = default_name
        self.preferred_extension = preferred_extension.lstrip(".") if preferred_extension else None
        self.ignore_postfixes = tuple(ignore_postfixes)
        self.encoding = encoding

    def list_names(self) -> set[str]:
        return {
            relative_name(path, self.base_path)
            for path in iter_document_paths(self.base_path, self.ignore_postfixes)
        }

    def read(self, name: str) -> SourceDocument:
        path = self.path_for(name)
        try:
            stat = path.stat()
            text = path.read_text(encoding=self.encoding)
        except FileNotFoundError as exc:
            raise not_found(name, "file disappeared") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise parsing_error(name, f"Could not read document: {exc}", cause=exc) from exc
        return SourceDocument(
            name=name,
            text=text,
            tag=extension_of(path.name),
            freshness=stat.st_mtime_ns,
        )

    def freshness(self, name: str) -> int:
        path = self.path_for(name)
        try:
            return path.stat().st_mtime_ns
        except FileNotFoundError as exc:
            raise not_found(name, "file disappeared") from exc

    def path_for(self, name: str) -> Path:
        """Map a document name to an existing file, or raise NOT_FOUND."""
        candidate = (self.base_path / name).resolve()
        if candidate != self.base_path and self.base_path not in candidate.parents:
            raise not_found(name, "outside of the source directory")

        if candidate.is_dir():
            if self.default_name is None:
                raise not_found(name, "is a directory")
            match = self._match(candidate, self.default_name)
            if match is None:
                raise not_found(name, f"no default document in directory {candidate}")
            return match

        if candidate.is_file() and not is_ignored(candidate, self.ignore_postfixes):
            return candidate

        match = self._match(candidate.parent, candidate.name)
        if match is None:
            raise not_found(name)
        return match

    def _match(self, directory: Path, stem: str) -> Path | None:
        if not directory.is_dir():
            return None
        matches = sorted(
            child
            for child in directory.glob(f"{stem}.*")
            if child.is_file() and not is_ignored(child, self.ignore_postfixes)
        )
        if not matches:
            return None
        if self.preferred_extension is not None:
            for match in matches:
                if match.suffix == f".{self.preferred_extension}":
                    return match
        if len(matches) > 1:
            LOGGER.debug("Several documents match %s, using %s", stem, matches[0].name)
        return matches[0]

    def __repr__(self) -> str:
        return f"FileSource({str(self.base_path)!r})"
