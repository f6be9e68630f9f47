"""Name to descriptor cache with throttled revalidation."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from scriptorium.errors import DocumentError, ErrorKind
from scriptorium.models import DocumentDescriptor
from scriptorium.sources.base import DocumentSource

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    size: int = 0


class DocumentCache:
    """Concurrent mapping from document name to its current descriptor.

    Lookups are plain dictionary reads. Installing or replacing a descriptor
    is a compare-and-swap done under a lock that only ever covers the
    dictionary mutation, never source I/O or builds: a caller that loses the
    race discards its own descriptor and returns the winner.

    Freshness is checked at most once per ``min_validity_check_interval``
    seconds per descriptor; in between, cached descriptors are trusted.
    ``None`` disables revalidation entirely and ``0`` checks on every resolve.
    """

    def __init__(
        self,
        source: DocumentSource,
        *,
        min_validity_check_interval: float | None = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source
        self.min_validity_check_interval = min_validity_check_interval
        self._clock = clock
        self._descriptors: dict[str, DocumentDescriptor] = {}
        self._lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def resolve(self, name: str) -> DocumentDescriptor:
        """Return a valid descriptor for ``name``, reading the source on a miss.

        Raises:
            DocumentError: NOT_FOUND when the source does not know the name.
        """
        current = self._descriptors.get(name)
        if current is not None:
            if self.is_valid(current):
                self._count(hit=True)
                return current
            LOGGER.debug("Document %s is stale, reloading", name)

        self._count(hit=False)
        try:
            document = self.source.read(name)
        except DocumentError as error:
            if current is not None and error.kind is ErrorKind.NOT_FOUND:
                self._discard(name, current)
            raise

        fresh = DocumentDescriptor.from_source(document, checked_at=self._clock())
        return self._install(name, fresh, current)

    def peek(self, name: str) -> DocumentDescriptor | None:
        """Cached descriptor for ``name`` without validation or source access."""
        return self._descriptors.get(name)

    def is_valid(self, descriptor: DocumentDescriptor) -> bool:
        return self._is_valid(descriptor, set())

    def _is_valid(self, descriptor: DocumentDescriptor, tested: set[int]) -> bool:
        if descriptor.invalidated:
            return False
        # Dependency graphs may contain cycles of already-built documents
        if id(descriptor) in tested:
            return True
        tested.add(id(descriptor))

        for dependency in descriptor.dependencies:
            if not self._is_valid(dependency, tested):
                LOGGER.debug("Dependency %s of %s changed", dependency.name, descriptor.name)
                descriptor.invalidate()
                return False

        interval = self.min_validity_check_interval
        if interval is None:
            return True
        if not descriptor.claim_validity_check(self._clock(), interval):
            return True

        try:
            current = self.source.freshness(descriptor.name)
        except DocumentError as error:
            if error.kind is not ErrorKind.NOT_FOUND:
                raise
            descriptor.invalidate()
            return False

        if current != descriptor.freshness:
            descriptor.invalidate()
            return False
        return True

    def _install(
        self,
        name: str,
        fresh: DocumentDescriptor,
        stale: DocumentDescriptor | None,
    ) -> DocumentDescriptor:
        with self._lock:
            existing = self._descriptors.get(name)
            if existing is None or existing is stale:
                self._descriptors[name] = fresh
                return fresh
        LOGGER.debug("Discarding duplicate descriptor for %s", name)
        return existing

    def _discard(self, name: str, descriptor: DocumentDescriptor) -> None:
        descriptor.invalidate()
        with self._lock:
            if self._descriptors.get(name) is descriptor:
                del self._descriptors[name]

    def invalidate(self, name: str) -> bool:
        """Drop the cached descriptor for ``name``; return True if one existed."""
        with self._lock:
            descriptor = self._descriptors.pop(name, None)
        if descriptor is None:
            return False
        descriptor.invalidate()
        return True

    def clear(self) -> None:
        with self._lock:
            descriptors = list(self._descriptors.values())
            self._descriptors.clear()
        for descriptor in descriptors:
            descriptor.invalidate()
        with self._stats_lock:
            self._hits = 0
            self._misses = 0

    def names(self) -> list[str]:
        return sorted(self._descriptors)

    def descriptors(self) -> list[DocumentDescriptor]:
        with self._lock:
            return list(self._descriptors.values())

    def stats(self) -> CacheStats:
        with self._stats_lock:
            return CacheStats(hits=self._hits, misses=self._misses, size=len(self._descriptors))

    def _count(self, *, hit: bool) -> None:
        with self._stats_lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors
