"""Dependency chains for detecting documents that include themselves."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from scriptorium.errors import dependency_loop


@dataclass(frozen=True, slots=True)
class DependencyChain:
    """Names of the documents in flight on one logical call path.

    Chains are immutable: :meth:`enter` returns an extended copy and the
    caller leaves the document simply by dropping it.
    """

    names: tuple[str, ...] = ()

    def enter(self, name: str) -> "DependencyChain":
        if name in self.names:
            raise dependency_loop(self.names + (name,))
        return DependencyChain(self.names + (name,))

    @property
    def current(self) -> str | None:
        return self.names[-1] if self.names else None

    @property
    def root(self) -> str | None:
        return self.names[0] if self.names else None

    @property
    def is_nested(self) -> bool:
        return len(self.names) > 1

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def __str__(self) -> str:
        return " -> ".join(self.names)


EMPTY_CHAIN = DependencyChain()
