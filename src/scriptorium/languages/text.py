"""Literal text adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING

from scriptorium.languages.artifacts import TextArtifact

if TYPE_CHECKING:
    from scriptorium.cache.builder import BuildContext


class TextAdapter:
    name = "text"
    tags = ("txt", "text")

    def compile(self, source_text: str, tag: str, context: "BuildContext") -> TextArtifact:
        return TextArtifact(context.document_name, tag, source_text)
