"""Core Scriptorium data models."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Hashable

if TYPE_CHECKING:
    from scriptorium.languages.artifacts import Artifact


@dataclass(frozen=True, slots=True)
class SourceDocument:
    """Raw document as read from a source."""

    name: str
    text: str
    tag: str
    freshness: Hashable


class DocumentDescriptor:
    """Cache entry for one generation of a document.

    The artifact slot is write-once: a descriptor that went stale is replaced
    by a new descriptor, never refilled, so readers holding an old descriptor
    keep seeing a consistent artifact.
    """

    __slots__ = (
        "name",
        "tag",
        "source_text",
        "freshness",
        "_artifact",
        "_last_validity_check_at",
        "_invalidated",
        "_dependencies",
        "_building",
        "_lock",
    )

    def __init__(
        self,
        name: str,
        tag: str,
        source_text: str,
        freshness: Hashable,
        *,
        checked_at: float = 0.0,
    ) -> None:
        self.name = name
        self.tag = tag
        self.source_text = source_text
        self.freshness = freshness
        self._artifact: Artifact | None = None
        self._last_validity_check_at = checked_at
        self._invalidated = False
        self._dependencies: tuple[DocumentDescriptor, ...] = ()
        self._building: threading.Event | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_source(cls, document: SourceDocument, *, checked_at: float = 0.0) -> "DocumentDescriptor":
        return cls(
            document.name,
            document.tag,
            document.text,
            document.freshness,
            checked_at=checked_at,
        )

    @property
    def artifact(self) -> Artifact | None:
        return self._artifact

    @property
    def last_validity_check_at(self) -> float:
        return self._last_validity_check_at

    @property
    def invalidated(self) -> bool:
        return self._invalidated

    @property
    def dependencies(self) -> tuple["DocumentDescriptor", ...]:
        return self._dependencies

    def install_artifact(self, artifact: Artifact) -> Artifact:
        """Install ``artifact`` unless one is already present; return the winner."""
        with self._lock:
            if self._artifact is None:
                self._artifact = artifact
            return self._artifact

    def claim_build(self) -> tuple[bool, threading.Event]:
        """Claim the right to build this descriptor.

        Returns ``(True, event)`` for the claimant, who must hand the event back
        to :meth:`release_build`; other callers get ``(False, event)`` and may
        wait on it.
        """
        with self._lock:
            if self._building is None:
                self._building = threading.Event()
                return True, self._building
            return False, self._building

    def release_build(self, event: threading.Event) -> None:
        with self._lock:
            if self._building is event:
                self._building = None
        event.set()

    def claim_validity_check(self, now: float, min_interval: float) -> bool:
        """Return True when the caller should consult the source's freshness.

        The comparison and the timestamp update happen under the descriptor
        lock, so concurrent callers inside one interval get a single check.
        """
        with self._lock:
            if min_interval > 0 and now - self._last_validity_check_at <= min_interval:
                return False
            self._last_validity_check_at = now
            return True

    def invalidate(self) -> None:
        self._invalidated = True

    def add_dependency(self, dependency: "DocumentDescriptor") -> None:
        with self._lock:
            if all(existing is not dependency for existing in self._dependencies):
                self._dependencies = self._dependencies + (dependency,)

    def __repr__(self) -> str:
        return (
            f"DocumentDescriptor(name={self.name!r}, tag={self.tag!r}, "
            f"freshness={self.freshness!r}, built={self._artifact is not None})"
        )


def describe(descriptor: DocumentDescriptor) -> dict[str, Any]:
    """Summary of a descriptor for listings."""
    return {
        "name": descriptor.name,
        "tag": descriptor.tag,
        "built": descriptor.artifact is not None,
        "dependencies": [dependency.name for dependency in descriptor.dependencies],
    }
