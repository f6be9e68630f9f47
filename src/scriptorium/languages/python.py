"""Python language adapter."""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING, Any

from scriptorium.errors import UNKNOWN_POSITION, parsing_error
from scriptorium.languages.artifacts import Artifact, CompiledCode, call_in_namespace

if TYPE_CHECKING:
    from scriptorium.cache.builder import BuildContext
    from scriptorium.execution import ExecutionContext


class PythonArtifact(Artifact):
    def __init__(self, document_name: str, tag: str, code: CompiledCode) -> None:
        super().__init__(document_name, tag)
        self.code = code

    def prepare(self) -> None:
        self.code.get()

    def run(self, context: "ExecutionContext") -> None:
        self.run_enterable(context)

    def run_enterable(self, context: "ExecutionContext") -> dict[str, Any]:
        namespace = context.namespace(self.document_name)
        self.code.execute(namespace)
        return namespace

    def call_entry_point(self, context: "ExecutionContext", entry_point: str, args: tuple) -> Any:
        return call_in_namespace(self.document_name, context.entry_state, entry_point, args)


def parse_python(
    source: str,
    document_name: str,
    *,
    mode: str = "exec",
    first_line: int = 1,
    first_column: int = 1,
) -> ast.AST:
    """Parse Python source, reporting syntax errors at document positions."""
    try:
        tree = ast.parse(source, filename=document_name, mode=mode)
    except SyntaxError as exc:
        line = UNKNOWN_POSITION
        column = UNKNOWN_POSITION
        if exc.lineno is not None:
            line = exc.lineno + first_line - 1
            if exc.offset is not None:
                column = exc.offset + (first_column - 1 if exc.lineno == 1 else 0)
        raise parsing_error(
            document_name,
            f"Syntax error: {exc.msg}",
            line_number=line,
            column_number=column,
            cause=exc,
        ) from exc
    if first_line > 1:
        ast.increment_lineno(tree, first_line - 1)
    return tree


class PythonAdapter:
    """Runs documents as Python modules.

    Parsing happens at build time; compiling the tree into a code object is
    the preparation step, done eagerly when the builder prepares artifacts
    and lazily on first run otherwise.
    """

    name = "python"
    tags = ("py", "python")

    def compile(self, source_text: str, tag: str, context: "BuildContext") -> PythonArtifact:
        tree = parse_python(source_text, context.document_name)
        return PythonArtifact(context.document_name, tag, CompiledCode(context.document_name, tree, "exec"))
