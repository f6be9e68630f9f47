"""Structured document errors and their cross-document stack."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Sequence

UNKNOWN_POSITION = -1


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    DEPENDENCY_LOOP = "dependency_loop"
    PARSING = "parsing"
    PREPARATION = "preparation"
    LANGUAGE_ADAPTER_MISSING = "language_adapter_missing"
    EXECUTION = "execution"


@dataclass(frozen=True, slots=True)
class ErrorFrame:
    """Position of a failure inside one document."""

    document_name: str
    line_number: int = UNKNOWN_POSITION
    column_number: int = UNKNOWN_POSITION

    def __str__(self) -> str:
        if self.line_number == UNKNOWN_POSITION:
            return self.document_name
        if self.column_number == UNKNOWN_POSITION:
            return f"{self.document_name}:{self.line_number}"
        return f"{self.document_name}:{self.line_number}:{self.column_number}"


class DocumentError(Exception):
    """Failure raised while resolving, building or executing a document.

    The stack is ordered origin first: the frame of the document where the
    failure happened comes first, and every enclosing document that included
    it appends its own frame as the error travels outward.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        cause: BaseException | None = None,
        stack: Iterable[ErrorFrame] = (),
        chain: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        self.stack: list[ErrorFrame] = list(stack)
        self.chain: tuple[str, ...] = tuple(chain)
        if cause is not None:
            self.__cause__ = cause

    @property
    def origin(self) -> ErrorFrame | None:
        return self.stack[0] if self.stack else None

    def push_frame(
        self,
        document_name: str,
        line_number: int = UNKNOWN_POSITION,
        column_number: int = UNKNOWN_POSITION,
    ) -> "DocumentError":
        """Append the frame of an enclosing document and return ``self``."""
        self.stack.append(ErrorFrame(document_name, line_number, column_number))
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "cause": repr(self.cause) if self.cause is not None else None,
            "chain": list(self.chain),
            "stack": [
                {
                    "document": frame.document_name,
                    "line": frame.line_number,
                    "column": frame.column_number,
                }
                for frame in self.stack
            ],
        }

    def __str__(self) -> str:
        if not self.stack:
            return self.message
        trail = " <- ".join(str(frame) for frame in self.stack)
        return f"{self.message} [{trail}]"


def not_found(document_name: str, detail: str | None = None) -> DocumentError:
    message = f"Document not found: {document_name}"
    if detail:
        message = f"{message} ({detail})"
    return DocumentError(ErrorKind.NOT_FOUND, message, stack=[ErrorFrame(document_name)])


def dependency_loop(chain: Sequence[str]) -> DocumentError:
    """Loop error for a chain whose last name already appeared earlier."""
    return DocumentError(
        ErrorKind.DEPENDENCY_LOOP,
        "Document dependency loop: " + " -> ".join(chain),
        chain=chain,
    )


def parsing_error(
    document_name: str,
    message: str,
    *,
    line_number: int = UNKNOWN_POSITION,
    column_number: int = UNKNOWN_POSITION,
    cause: BaseException | None = None,
) -> DocumentError:
    return DocumentError(
        ErrorKind.PARSING,
        message,
        cause=cause,
        stack=[ErrorFrame(document_name, line_number, column_number)],
    )


def preparation_error(
    document_name: str,
    message: str,
    *,
    line_number: int = UNKNOWN_POSITION,
    column_number: int = UNKNOWN_POSITION,
    cause: BaseException | None = None,
) -> DocumentError:
    return DocumentError(
        ErrorKind.PREPARATION,
        message,
        cause=cause,
        stack=[ErrorFrame(document_name, line_number, column_number)],
    )


def adapter_missing(
    document_name: str,
    tag: str | None,
    *,
    line_number: int = UNKNOWN_POSITION,
    column_number: int = UNKNOWN_POSITION,
) -> DocumentError:
    return DocumentError(
        ErrorKind.LANGUAGE_ADAPTER_MISSING,
        f"Adapter not available for language: {tag}",
        stack=[ErrorFrame(document_name, line_number, column_number)],
    )


def execution_error(
    document_name: str,
    cause: BaseException,
    *,
    line_number: int = UNKNOWN_POSITION,
    column_number: int = UNKNOWN_POSITION,
) -> DocumentError:
    message = f"{type(cause).__name__}: {cause}" if str(cause) else type(cause).__name__
    return DocumentError(
        ErrorKind.EXECUTION,
        message,
        cause=cause,
        stack=[ErrorFrame(document_name, line_number, column_number)],
    )
