"""Document source contract and in-memory implementations."""

from __future__ import annotations

import itertools
import threading
from typing import Hashable, Protocol, Sequence, runtime_checkable

from scriptorium.errors import DocumentError, ErrorKind, not_found
from scriptorium.models import SourceDocument


@runtime_checkable
class DocumentSource(Protocol):
    """Supplies document text and a cheap freshness signal by name."""

    identifier: str

    def list_names(self) -> set[str]:
        """Names of all documents currently known to the source."""
        ...

    def read(self, name: str) -> SourceDocument:
        """Read text, tag and freshness; raise a NOT_FOUND error if absent."""
        ...

    def freshness(self, name: str) -> Hashable:
        """Current freshness snapshot; raise a NOT_FOUND error if absent."""
        ...


class MemorySource:
    """Documents held in memory, for ad hoc documents and tests.

    Every ``put`` bumps a source-wide revision counter, which serves as the
    freshness snapshot.
    """

    def __init__(self, identifier: str = "memory", documents: dict[str, tuple[str, str]] | None = None) -> None:
        self.identifier = identifier
        self._lock = threading.Lock()
        self._revisions = itertools.count(1)
        self._documents: dict[str, SourceDocument] = {}
        for name, (text, tag) in (documents or {}).items():
            self.put(name, text, tag)

    def put(self, name: str, text: str, tag: str) -> SourceDocument:
        with self._lock:
            document = SourceDocument(name=name, text=text, tag=tag, freshness=next(self._revisions))
            self._documents[name] = document
        return document

    def remove(self, name: str) -> bool:
        with self._lock:
            return self._documents.pop(name, None) is not None

    def list_names(self) -> set[str]:
        with self._lock:
            return set(self._documents)

    def read(self, name: str) -> SourceDocument:
        with self._lock:
            document = self._documents.get(name)
        if document is None:
            raise not_found(name, f"not in source {self.identifier!r}")
        return document

    def freshness(self, name: str) -> Hashable:
        return self.read(name).freshness

    def __repr__(self) -> str:
        return f"MemorySource({self.identifier!r}, documents={len(self._documents)})"


class ChainSource:
    """Looks a name up in several sources in order; the first match wins."""

    def __init__(self, identifier: str, sources: Sequence[DocumentSource]) -> None:
        if not sources:
            raise ValueError("ChainSource requires at least one source")
        self.identifier = identifier
        self.sources = list(sources)

    def list_names(self) -> set[str]:
        names: set[str] = set()
        for source in self.sources:
            names |= source.list_names()
        return names

    def _first(self, name: str, operation: str):
        for source in self.sources:
            try:
                return getattr(source, operation)(name)
            except DocumentError as error:
                if error.kind is not ErrorKind.NOT_FOUND:
                    raise
        raise not_found(name, f"not in any source of {self.identifier!r}")

    def read(self, name: str) -> SourceDocument:
        return self._first(name, "read")

    def freshness(self, name: str) -> Hashable:
        return self._first(name, "freshness")
