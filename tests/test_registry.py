"""Tests for the language registry."""

from __future__ import annotations

import pytest

from scriptorium.errors import DocumentError, ErrorKind
from scriptorium.languages.python import PythonAdapter
from scriptorium.languages.registry import LanguageRegistry, default_registry
from scriptorium.languages.text import TextAdapter


class TestLanguageRegistry:
    """Tests for LanguageRegistry."""

    def test_default_registry(self) -> None:
        """Built-in adapters are registered under their tags."""
        registry = default_registry()
        assert registry.tags() == ["py", "python", "scriptlet", "text", "tpl", "txt"]
        assert registry.for_tag("py", "doc").name == "python"
        assert registry.for_tag("tpl", "doc").name == "scriptlets"
        assert registry.by_name("text") is not None

    def test_tags_are_case_insensitive(self) -> None:
        """Lookups ignore tag case."""
        registry = LanguageRegistry([PythonAdapter()])
        assert registry.get("PY") is registry.get("py")

    def test_duplicate_tag_rejected(self) -> None:
        """A tag may only be claimed once unless replacing."""
        registry = LanguageRegistry([TextAdapter()])
        with pytest.raises(ValueError, match="txt"):
            registry.register(TextAdapter())

    def test_replace(self) -> None:
        """Replacing swaps the adapter for its tags."""
        registry = LanguageRegistry([TextAdapter()])
        replacement = TextAdapter()
        registry.register(replacement, replace=True)
        assert registry.get("txt") is replacement

    def test_missing_adapter(self) -> None:
        """Unknown tags raise an adapter error for the document."""
        registry = LanguageRegistry()
        assert registry.get("rb") is None
        assert registry.get(None) is None
        with pytest.raises(DocumentError) as excinfo:
            registry.for_tag("rb", "script.rb")
        assert excinfo.value.kind is ErrorKind.LANGUAGE_ADAPTER_MISSING
        assert excinfo.value.origin.document_name == "script.rb"
