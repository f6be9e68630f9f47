"""Text documents with embedded Python scriptlets.

Scriptlets are delimited by ``<%`` and ``%>``::

    <% total = 2 + 2 %>        code, run in the document's namespace
    <%= total %>               expression, its value is written out
    <%# a note %>              comment, dropped
    <%& partials/header %>     include of another document, at build time

Everything outside the delimiters is written out literally. Code blocks are
independent statements: a block cannot open a loop that a later block closes.
"""

from __future__ import annotations

import textwrap
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from scriptorium.errors import DocumentError, parsing_error
from scriptorium.languages.artifacts import Artifact, CompiledCode, call_in_namespace
from scriptorium.languages.python import parse_python
from scriptorium.utils.text import line_and_column

if TYPE_CHECKING:
    from scriptorium.cache.builder import BuildContext
    from scriptorium.execution import ExecutionContext

DELIMITER_START = "<%"
DELIMITER_END = "%>"
COMMENT = "#"
EXPRESSION = "="
INCLUDE = "&"


@dataclass(slots=True)
class LiteralSegment:
    text: str


@dataclass(slots=True)
class CodeSegment:
    code: CompiledCode


@dataclass(slots=True)
class ExpressionSegment:
    code: CompiledCode


@dataclass(slots=True)
class IncludeSegment:
    name: str
    artifact: Artifact
    line_number: int
    column_number: int


Segment = Union[LiteralSegment, CodeSegment, ExpressionSegment, IncludeSegment]


class ScriptletArtifact(Artifact):
    def __init__(self, document_name: str, tag: str, segments: list[Segment]) -> None:
        super().__init__(document_name, tag)
        self.segments = segments

    def prepare(self) -> None:
        for segment in self.segments:
            if isinstance(segment, (CodeSegment, ExpressionSegment)):
                segment.code.get()

    def run(self, context: "ExecutionContext") -> None:
        self.run_enterable(context)

    def call_entry_point(self, context: "ExecutionContext", entry_point: str, args: tuple) -> Any:
        return call_in_namespace(self.document_name, context.entry_state, entry_point, args)

    def run_enterable(self, context: "ExecutionContext") -> dict[str, Any]:
        namespace = context.namespace(self.document_name)
        for segment in self.segments:
            if isinstance(segment, LiteralSegment):
                context.write(segment.text)
            elif isinstance(segment, ExpressionSegment):
                value = segment.code.execute(namespace)
                if value is not None:
                    context.write(str(value))
            elif isinstance(segment, CodeSegment):
                segment.code.execute(namespace)
            else:
                try:
                    with context.entering(segment.name):
                        segment.artifact.run(context)
                except DocumentError as error:
                    error.push_frame(self.document_name, segment.line_number, segment.column_number)
                    raise
        return namespace


def _code_body(body: str, line: int) -> tuple[str, int]:
    stripped = body.strip()
    if "\n" not in stripped:
        return stripped, line
    head, _, rest = body.partition("\n")
    if head.strip():
        return head.strip() + "\n" + rest.rstrip(), line
    return textwrap.dedent(rest).strip("\n"), line + 1


def parse_scriptlets(text: str, context: "BuildContext") -> list[Segment]:
    """Split ``text`` into segments, resolving includes through ``context``."""
    name = context.document_name
    segments: list[Segment] = []
    position = 0
    while position < len(text):
        start = text.find(DELIMITER_START, position)
        if start == -1:
            segments.append(LiteralSegment(text[position:]))
            break
        if start > position:
            segments.append(LiteralSegment(text[position:start]))

        line, column = line_and_column(text, start)
        end = text.find(DELIMITER_END, start + len(DELIMITER_START))
        if end == -1:
            raise parsing_error(
                name,
                "Scriptlet does not have an ending delimiter",
                line_number=line,
                column_number=column,
            )
        body = text[start + len(DELIMITER_START) : end]
        position = end + len(DELIMITER_END)

        if body.startswith(COMMENT):
            continue

        if body.startswith(EXPRESSION):
            expression = body[len(EXPRESSION) :].strip()
            if not expression:
                raise parsing_error(name, "Empty expression", line_number=line, column_number=column)
            tree = parse_python(
                expression, name, mode="eval", first_line=line, first_column=column + 3
            )
            segments.append(ExpressionSegment(CompiledCode(name, tree, "eval")))
        elif body.startswith(INCLUDE):
            target = body[len(INCLUDE) :].strip().strip("'\"")
            if not target:
                raise parsing_error(
                    name, "Include without a document name", line_number=line, column_number=column
                )
            artifact = context.include(target, line, column)
            segments.append(IncludeSegment(target, artifact, line, column))
        else:
            code, first_line = _code_body(body, line)
            if code:
                tree = parse_python(code, name, first_line=first_line, first_column=column + 2)
                segments.append(CodeSegment(CompiledCode(name, tree, "exec")))

    return _merge_literals(segments)


def _merge_literals(segments: list[Segment]) -> list[Segment]:
    merged: list[Segment] = []
    for segment in segments:
        if isinstance(segment, LiteralSegment) and merged and isinstance(merged[-1], LiteralSegment):
            merged[-1] = LiteralSegment(merged[-1].text + segment.text)
        else:
            merged.append(segment)
    return merged


class ScriptletAdapter:
    name = "scriptlets"
    tags = ("tpl", "scriptlet")

    def compile(self, source_text: str, tag: str, context: "BuildContext") -> ScriptletArtifact:
        return ScriptletArtifact(context.document_name, tag, parse_scriptlets(source_text, context))
