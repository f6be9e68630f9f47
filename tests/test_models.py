"""Tests for data models."""

from __future__ import annotations

import threading

import pytest

from scriptorium.languages.artifacts import TextArtifact
from scriptorium.models import DocumentDescriptor, SourceDocument, describe


def _descriptor(name: str = "doc", freshness: int = 1) -> DocumentDescriptor:
    return DocumentDescriptor.from_source(SourceDocument(name, "text", "txt", freshness))


class TestSourceDocument:
    """Tests for SourceDocument."""

    def test_is_frozen(self) -> None:
        """Source documents are immutable snapshots."""
        document = SourceDocument("doc", "text", "txt", 1)
        with pytest.raises(AttributeError):
            document.text = "changed"  # type: ignore[misc]


class TestDocumentDescriptor:
    """Tests for DocumentDescriptor."""

    def test_from_source(self) -> None:
        """Copies name, tag, text and freshness from the source document."""
        descriptor = DocumentDescriptor.from_source(
            SourceDocument("doc", "hello", "txt", 42), checked_at=5.0
        )
        assert descriptor.name == "doc"
        assert descriptor.tag == "txt"
        assert descriptor.source_text == "hello"
        assert descriptor.freshness == 42
        assert descriptor.last_validity_check_at == 5.0
        assert descriptor.artifact is None
        assert not descriptor.invalidated

    def test_install_artifact_is_write_once(self) -> None:
        """The first installed artifact wins."""
        descriptor = _descriptor()
        first = TextArtifact("doc", "txt", "one")
        second = TextArtifact("doc", "txt", "two")

        assert descriptor.install_artifact(first) is first
        assert descriptor.install_artifact(second) is first
        assert descriptor.artifact is first

    def test_claim_build_single_owner(self) -> None:
        """Only one caller owns a build until it is released."""
        descriptor = _descriptor()
        owner, event = descriptor.claim_build()
        other, same_event = descriptor.claim_build()

        assert owner is True
        assert other is False
        assert same_event is event
        assert not event.is_set()

        descriptor.release_build(event)
        assert event.is_set()
        again, new_event = descriptor.claim_build()
        assert again is True
        assert new_event is not event

    def test_claim_validity_check_throttles(self) -> None:
        """A check is granted at most once per interval."""
        descriptor = _descriptor()
        assert descriptor.claim_validity_check(10.0, 5.0) is True
        assert descriptor.claim_validity_check(12.0, 5.0) is False
        assert descriptor.claim_validity_check(15.0, 5.0) is False
        assert descriptor.claim_validity_check(15.5, 5.0) is True
        assert descriptor.last_validity_check_at == 15.5

    def test_claim_validity_check_zero_interval(self) -> None:
        """A zero interval grants every check, even at the same instant."""
        descriptor = _descriptor()
        assert descriptor.claim_validity_check(0.0, 0) is True
        assert descriptor.claim_validity_check(0.0, 0) is True

    def test_concurrent_validity_claims(self) -> None:
        """Concurrent callers within one interval get a single check."""
        descriptor = _descriptor()
        granted = []
        barrier = threading.Barrier(8)

        def claim() -> None:
            barrier.wait()
            granted.append(descriptor.claim_validity_check(100.0, 10.0))

        threads = [threading.Thread(target=claim) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert granted.count(True) == 1

    def test_add_dependency_deduplicates(self) -> None:
        """The same descriptor is recorded once."""
        descriptor = _descriptor("a")
        dependency = _descriptor("b")
        descriptor.add_dependency(dependency)
        descriptor.add_dependency(dependency)
        assert descriptor.dependencies == (dependency,)

    def test_invalidate(self) -> None:
        """Invalidation is sticky."""
        descriptor = _descriptor()
        descriptor.invalidate()
        assert descriptor.invalidated


class TestDescribe:
    """Tests for describe()."""

    def test_describe(self) -> None:
        """Summarises build state and dependencies."""
        descriptor = _descriptor("a")
        descriptor.add_dependency(_descriptor("b"))
        info = describe(descriptor)
        assert info == {"name": "a", "tag": "txt", "built": False, "dependencies": ["b"]}
