"""Document host tying together a source, the cache and the builder."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable

from scriptorium.cache.builder import BuildContext, ExecutableBuilder
from scriptorium.cache.cache import DocumentCache
from scriptorium.cache.defroster import Defroster
from scriptorium.cache.dependency import EMPTY_CHAIN, DependencyChain
from scriptorium.config import AppConfig
from scriptorium.execution import ExecutionContext
from scriptorium.languages.artifacts import Artifact
from scriptorium.languages.registry import LanguageRegistry, default_registry
from scriptorium.models import DocumentDescriptor
from scriptorium.sources.base import ChainSource, DocumentSource
from scriptorium.sources.files import FileSource
from scriptorium.sources.storage import SQLiteSource

LOGGER = logging.getLogger(__name__)


def build_source(config: AppConfig, base_dir: Path | None = None) -> DocumentSource:
    """Source described by ``config``: files, a SQLite store, or both.

    When both are configured the directory is consulted first.
    """
    sources: list[DocumentSource] = []
    if config.documents_path is not None:
        sources.append(
            FileSource(
                config.resolve_documents_path(base_dir),
                default_name=config.default_name,
                preferred_extension=config.preferred_extension,
                ignore_postfixes=config.ignore_postfixes,
            )
        )
    if config.db_path is not None:
        sources.append(SQLiteSource(config.resolve_db_path(base_dir)))
    if not sources:
        raise ValueError("Configure a documents directory, a database, or both")
    if len(sources) == 1:
        return sources[0]
    return ChainSource("chain", sources)


class DocumentHost:
    """Entry point for resolving, building and running documents.

    Thread-safe: any number of threads may resolve and run documents at once.
    Each run uses its own :class:`ExecutionContext`.
    """

    def __init__(
        self,
        source: DocumentSource,
        *,
        registry: LanguageRegistry | None = None,
        min_validity_check_interval: float | None = 1.0,
        prepare: bool = False,
        clock: Callable[[], float] = time.monotonic,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        self.source = source
        self.registry = registry if registry is not None else default_registry()
        self.cache = DocumentCache(
            source, min_validity_check_interval=min_validity_check_interval, clock=clock
        )
        self.builder = ExecutableBuilder(self.registry, prepare=prepare)
        self.attributes: dict[str, Any] = attributes if attributes is not None else {}
        self._defroster = Defroster(self)

    @classmethod
    def from_config(cls, config: AppConfig, base_dir: Path | None = None) -> "DocumentHost":
        source = build_source(config, base_dir)
        LOGGER.debug("Serving documents from %r", source)
        return cls(
            source,
            min_validity_check_interval=config.min_validity_check_interval,
            prepare=config.prepare,
        )

    def resolve(self, name: str) -> DocumentDescriptor:
        return self.cache.resolve(name)

    def resolve_and_build(
        self, name: str, chain: DependencyChain = EMPTY_CHAIN
    ) -> tuple[DocumentDescriptor, Artifact]:
        """Resolve ``name`` and build its artifact as part of ``chain``.

        Raises:
            DocumentError: On a dependency loop, a missing document, or a
                failed build.
        """
        chain = chain.enter(name)
        descriptor = self.cache.resolve(name)
        artifact = self.builder.build(descriptor, BuildContext(self, descriptor, chain))
        return descriptor, artifact

    def get_artifact(self, name: str, chain: DependencyChain = EMPTY_CHAIN) -> Artifact:
        _, artifact = self.resolve_and_build(name, chain)
        return artifact

    def execute(self, name: str, context: ExecutionContext | None = None) -> ExecutionContext:
        """Run ``name`` and return the context holding its output."""
        if context is None:
            context = ExecutionContext(self)
        self.run_document(name, context)
        return context

    def run_document(self, name: str, context: ExecutionContext) -> None:
        with context.entering(name):
            artifact = self.get_artifact(name)
            artifact.run(context)

    def list_names(self) -> list[str]:
        return sorted(self.source.list_names())

    def invalidate(self, name: str) -> bool:
        return self.cache.invalidate(name)

    def clear(self) -> None:
        self.cache.clear()
        LOGGER.info("Document cache cleared")

    def defroster(self) -> Defroster:
        """The host's defroster, also the handle of its latest batch."""
        return self._defroster

    def defrost(self, concurrency: int | None = None, *, blocking: bool = False) -> Defroster:
        return self._defroster.defrost(concurrency, blocking=blocking)
