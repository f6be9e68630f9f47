"""Language adapter registry for dispatching builds by tag."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Dict, Iterable, List, Protocol, Sequence

from scriptorium.errors import adapter_missing
from scriptorium.languages.python import PythonAdapter
from scriptorium.languages.scriptlets import ScriptletAdapter
from scriptorium.languages.text import TextAdapter

if TYPE_CHECKING:
    from scriptorium.cache.builder import BuildContext
    from scriptorium.languages.artifacts import Artifact


class LanguageAdapter(Protocol):
    """Compiles the source text of one language into an artifact."""

    name: str
    tags: Sequence[str]

    def compile(self, source_text: str, tag: str, context: "BuildContext") -> "Artifact":
        ...


class LanguageRegistry:
    """Explicit mapping from language tag to adapter.

    Adapters are registered at start-up; a document whose tag has no adapter
    fails with a LANGUAGE_ADAPTER_MISSING error.
    """

    def __init__(self, adapters: Iterable[LanguageAdapter] = ()) -> None:
        self._lock = threading.Lock()
        self._adapters: Dict[str, LanguageAdapter] = {}
        self._by_tag: Dict[str, LanguageAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: LanguageAdapter, *, replace: bool = False) -> None:
        """Register ``adapter`` under its name and each of its tags.

        Raises:
            ValueError: If a tag is already taken and ``replace`` is False.
        """
        tags = [tag.lower() for tag in adapter.tags]
        if not tags:
            raise ValueError(f"Adapter {adapter.name!r} declares no tags")
        with self._lock:
            if not replace:
                taken = [tag for tag in tags if tag in self._by_tag]
                if taken:
                    raise ValueError(
                        f"Tags already registered: {', '.join(taken)} (adapter {adapter.name!r})"
                    )
            self._adapters[adapter.name] = adapter
            for tag in tags:
                self._by_tag[tag] = adapter

    def get(self, tag: str | None) -> LanguageAdapter | None:
        if not tag:
            return None
        return self._by_tag.get(tag.lower())

    def for_tag(self, tag: str | None, document_name: str) -> LanguageAdapter:
        adapter = self.get(tag)
        if adapter is None:
            raise adapter_missing(document_name, tag)
        return adapter

    def by_name(self, name: str) -> LanguageAdapter | None:
        return self._adapters.get(name)

    def tags(self) -> List[str]:
        return sorted(self._by_tag)

    def adapters(self) -> List[LanguageAdapter]:
        return list(self._adapters.values())


def default_registry() -> LanguageRegistry:
    """Registry with the built-in Python, text and scriptlet adapters."""
    return LanguageRegistry([PythonAdapter(), TextAdapter(), ScriptletAdapter()])
