"""Per-run execution state shared by a document and its includes."""

from __future__ import annotations

import io
import sys
import threading
from contextlib import contextmanager
from functools import partial
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Hashable, Iterator, Mapping, TextIO

from scriptorium.cache.dependency import EMPTY_CHAIN, DependencyChain

if TYPE_CHECKING:
    from scriptorium.host import DocumentHost
    from scriptorium.languages.artifacts import Artifact


class ExecutionContext:
    """Output writers, attributes and include chain of one run.

    A context is not thread-safe; each concurrent run gets its own. The
    exception is a context consumed by ``Artifact.make_enterable``: it is
    immutable from then on and only serves ``enter`` calls until released.
    """

    def __init__(
        self,
        host: "DocumentHost",
        *,
        writer: TextIO | None = None,
        error_writer: TextIO | None = None,
        attributes: dict[str, Any] | None = None,
        chain: DependencyChain = EMPTY_CHAIN,
    ) -> None:
        self.host = host
        self.writer = writer if writer is not None else io.StringIO()
        self.error_writer = error_writer if error_writer is not None else sys.stderr
        self._attributes = attributes if attributes is not None else host.attributes
        self.chain = chain
        self.enterable_artifact: "Artifact | None" = None
        self.entering_key: Hashable | None = None
        self.entry_state: Any = None
        self.immutable = False
        self.released = False
        self._enter_lock = threading.RLock()

    @property
    def attributes(self) -> Mapping[str, Any]:
        """Shared attributes; a read-only view once the context is immutable."""
        self._check_released()
        if self.immutable:
            return MappingProxyType(self._attributes)
        return self._attributes

    def _check_released(self) -> None:
        if self.released:
            raise RuntimeError("Cannot use a released execution context")

    def write(self, text: str) -> None:
        self._check_released()
        self.writer.write(text)

    def write_error(self, text: str) -> None:
        self._check_released()
        self.error_writer.write(text)

    @property
    def output(self) -> str:
        """Everything written so far, when the writer keeps it."""
        getvalue = getattr(self.writer, "getvalue", None)
        return getvalue() if getvalue is not None else ""

    @contextmanager
    def entering(self, name: str) -> Iterator[DependencyChain]:
        """Put ``name`` on the chain for the duration of the block.

        Raises:
            DocumentError: DEPENDENCY_LOOP if ``name`` is already running.
        """
        previous = self.chain
        self.chain = previous.enter(name)
        try:
            yield self.chain
        finally:
            self.chain = previous

    def include(self, name: str) -> None:
        """Run another document into this context's output."""
        self._check_released()
        self.host.run_document(name, self)

    def make_immutable(self) -> None:
        self.immutable = True

    def bind_enterable(self, artifact: "Artifact", key: Hashable, state: Any) -> None:
        """Hand this context over to ``artifact`` under ``key``."""
        self.enterable_artifact = artifact
        self.entering_key = key
        self.entry_state = state
        self.make_immutable()

    def enter(self, entry_point: str, *args: Any) -> Any:
        """Call an entry point of the artifact this context was made enterable for."""
        self._check_released()
        if self.enterable_artifact is None:
            raise RuntimeError("Execution context was not made enterable")
        # Entries share the include chain, so they run one at a time
        with self._enter_lock:
            return self.enterable_artifact.enter_context(self, entry_point, args)

    def release(self) -> None:
        """Drop the artifact's state; the context cannot be used afterwards."""
        self.released = True
        self.entry_state = None

    def namespace(self, document_name: str) -> dict[str, Any]:
        return {
            "__name__": "__document__",
            "__file__": document_name,
            "context": self,
            "write": self.write,
            "write_error": self.write_error,
            "include": self.include,
            "attributes": self.attributes,
            "error_writer": self.error_writer,
            "print": partial(print, file=self.writer),
        }
