"""Compiled document artifacts."""

from __future__ import annotations

import ast
import threading
import traceback
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Hashable

from scriptorium.errors import (
    UNKNOWN_POSITION,
    DocumentError,
    ErrorFrame,
    ErrorKind,
    execution_error,
    preparation_error,
)

if TYPE_CHECKING:
    from scriptorium.execution import ExecutionContext


class Artifact(ABC):
    """The runnable form of one document generation.

    Besides plain runs, an artifact can keep execution contexts around under
    entering keys. ``make_enterable`` runs the document once into a context
    and keeps the resulting state; ``enter`` then calls named entry points
    against that state without running the document again.
    """

    def __init__(self, document_name: str, tag: str) -> None:
        self.document_name = document_name
        self.tag = tag
        self._enterable: dict[Hashable, "ExecutionContext"] = {}
        self._enterable_lock = threading.Lock()

    def prepare(self) -> None:
        """Finish any work that can happen before the first run."""

    @abstractmethod
    def run(self, context: "ExecutionContext") -> None:
        ...

    def run_enterable(self, context: "ExecutionContext") -> Any:
        """Run into ``context`` and return the state entry points need."""
        self.run(context)
        return None

    def call_entry_point(self, context: "ExecutionContext", entry_point: str, args: tuple) -> Any:
        raise DocumentError(
            ErrorKind.EXECUTION,
            f"Language does not support entry points: {self.tag}",
            stack=[ErrorFrame(self.document_name)],
        )

    def make_enterable(self, key: Hashable, context: "ExecutionContext") -> bool:
        """Run into ``context`` and keep it for ``enter`` calls under ``key``.

        Returns False, leaving the context unconsumed, if ``key`` is already
        enterable. On success the context becomes immutable and belongs to
        this artifact until ``release``.

        Raises:
            RuntimeError: If the context was already made enterable.
            DocumentError: If the run fails.
        """
        if context.enterable_artifact is not None:
            raise RuntimeError("Execution context was already made enterable for another artifact")
        with self._enterable_lock:
            if key in self._enterable:
                return False
        with context.entering(self.document_name):
            state = self.run_enterable(context)
        with self._enterable_lock:
            if key in self._enterable:
                return False
            context.bind_enterable(self, key, state)
            self._enterable[key] = context
        return True

    def enterable_context(self, key: Hashable) -> "ExecutionContext | None":
        with self._enterable_lock:
            return self._enterable.get(key)

    def enter(self, key: Hashable, entry_point: str, *args: Any) -> Any:
        """Call ``entry_point`` in the context kept under ``key``.

        Raises:
            DocumentError: EXECUTION if nothing is enterable under ``key``,
                the entry point is missing, or the call fails.
        """
        context = self.enterable_context(key)
        if context is None:
            raise DocumentError(
                ErrorKind.EXECUTION,
                f"No enterable execution context for key: {key!r}",
                stack=[ErrorFrame(self.document_name)],
            )
        return context.enter(entry_point, *args)

    def enter_context(self, context: "ExecutionContext", entry_point: str, args: tuple) -> Any:
        if context.enterable_artifact is not self:
            raise RuntimeError("Execution context belongs to another artifact")
        with context.entering(self.document_name):
            return self.call_entry_point(context, entry_point, args)

    def release(self) -> None:
        """Release every enterable context."""
        with self._enterable_lock:
            contexts = list(self._enterable.values())
            self._enterable.clear()
        for context in contexts:
            context.release()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.document_name!r}, tag={self.tag!r})"


class TextArtifact(Artifact):
    """Literal text, written out as is."""

    def __init__(self, document_name: str, tag: str, text: str) -> None:
        super().__init__(document_name, tag)
        self.text = text

    def run(self, context: "ExecutionContext") -> None:
        context.write(self.text)


def failing_line(error: BaseException, document_name: str) -> int:
    """Innermost traceback line that belongs to ``document_name``."""
    line = UNKNOWN_POSITION
    for frame in traceback.extract_tb(error.__traceback__):
        if frame.filename == document_name and frame.lineno is not None:
            line = frame.lineno
    return line


def call_in_namespace(document_name: str, namespace: dict[str, Any], entry_point: str, args: tuple) -> Any:
    """Call the function named ``entry_point`` that a run left in ``namespace``."""
    function = namespace.get(entry_point)
    if not callable(function):
        raise DocumentError(
            ErrorKind.EXECUTION,
            f"Entry point not found: {entry_point}",
            stack=[ErrorFrame(document_name)],
        )
    try:
        return function(*args)
    except DocumentError as error:
        error.push_frame(document_name, failing_line(error, document_name))
        raise
    except Exception as exc:
        raise execution_error(document_name, exc, line_number=failing_line(exc, document_name)) from exc


class CompiledCode:
    """An AST compiled into a code object once, on first use.

    Compilation is where Python reports some errors that parsing accepts
    (``return`` outside a function, for instance); those surface as
    preparation errors.
    """

    def __init__(self, document_name: str, tree: ast.AST, mode: str) -> None:
        self.document_name = document_name
        self.tree = tree
        self.mode = mode
        self._code: Any = None
        self._lock = threading.Lock()

    def get(self) -> Any:
        code = self._code
        if code is not None:
            return code
        try:
            code = compile(self.tree, self.document_name, self.mode)
        except SyntaxError as exc:
            raise preparation_error(
                self.document_name,
                exc.msg,
                line_number=exc.lineno or UNKNOWN_POSITION,
                column_number=exc.offset or UNKNOWN_POSITION,
                cause=exc,
            ) from exc
        except (ValueError, TypeError) as exc:
            raise preparation_error(self.document_name, str(exc), cause=exc) from exc
        with self._lock:
            if self._code is None:
                self._code = code
            return self._code

    def execute(self, namespace: dict[str, Any]) -> Any:
        code = self.get()
        try:
            if self.mode == "eval":
                return eval(code, namespace)
            exec(code, namespace)
            return None
        except DocumentError as error:
            # A nested include failed; this document is the enclosing frame
            error.push_frame(self.document_name, failing_line(error, self.document_name))
            raise
        except Exception as exc:
            raise execution_error(
                self.document_name, exc, line_number=failing_line(exc, self.document_name)
            ) from exc
