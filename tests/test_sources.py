"""Tests for in-memory and chained document sources."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from scriptorium.errors import DocumentError, ErrorKind, parsing_error
from scriptorium.sources.base import ChainSource, DocumentSource, MemorySource


class TestMemorySource:
    """Tests for MemorySource."""

    def test_satisfies_protocol(self) -> None:
        """MemorySource is a DocumentSource."""
        assert isinstance(MemorySource(), DocumentSource)

    def test_put_and_read(self) -> None:
        """Documents can be stored and read back."""
        source = MemorySource()
        source.put("doc", "hello", "txt")

        document = source.read("doc")
        assert document.text == "hello"
        assert document.tag == "txt"
        assert source.list_names() == {"doc"}

    def test_freshness_increases(self) -> None:
        """Every put produces a new freshness value."""
        source = MemorySource()
        source.put("doc", "one", "txt")
        before = source.freshness("doc")
        source.put("doc", "two", "txt")
        assert source.freshness("doc") != before

    def test_remove(self) -> None:
        """Removed documents are no longer found."""
        source = MemorySource(documents={"doc": ("hello", "txt")})
        assert source.remove("doc") is True
        assert source.remove("doc") is False
        with pytest.raises(DocumentError) as excinfo:
            source.read("doc")
        assert excinfo.value.kind is ErrorKind.NOT_FOUND

    def test_missing_freshness(self) -> None:
        """Freshness of an unknown name is a NotFound error."""
        with pytest.raises(DocumentError) as excinfo:
            MemorySource().freshness("missing")
        assert excinfo.value.kind is ErrorKind.NOT_FOUND


class TestChainSource:
    """Tests for ChainSource."""

    def test_first_source_wins(self) -> None:
        """The earliest source knowing a name serves it."""
        first = MemorySource("first", {"shared": ("from first", "txt")})
        second = MemorySource("second", {"shared": ("from second", "txt"), "only": ("x", "txt")})
        chain = ChainSource("chain", [first, second])

        assert chain.read("shared").text == "from first"
        assert chain.read("only").text == "x"
        assert chain.list_names() == {"shared", "only"}

    def test_not_found_anywhere(self) -> None:
        """A name unknown to all sources is NotFound."""
        chain = ChainSource("chain", [MemorySource(), MemorySource()])
        with pytest.raises(DocumentError) as excinfo:
            chain.freshness("missing")
        assert excinfo.value.kind is ErrorKind.NOT_FOUND

    def test_other_errors_propagate(self) -> None:
        """Only NotFound falls through to the next source."""
        broken = MagicMock()
        broken.read.side_effect = parsing_error("doc", "corrupt")
        chain = ChainSource("chain", [broken, MemorySource(documents={"doc": ("ok", "txt")})])

        with pytest.raises(DocumentError) as excinfo:
            chain.read("doc")
        assert excinfo.value.kind is ErrorKind.PARSING

    def test_requires_sources(self) -> None:
        """An empty chain is rejected."""
        with pytest.raises(ValueError):
            ChainSource("chain", [])
