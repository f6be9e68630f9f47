"""Create-once construction of document artifacts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from scriptorium.cache.dependency import DependencyChain
from scriptorium.errors import UNKNOWN_POSITION, DocumentError, parsing_error
from scriptorium.languages.artifacts import Artifact
from scriptorium.languages.registry import LanguageRegistry
from scriptorium.models import DocumentDescriptor

if TYPE_CHECKING:
    from scriptorium.host import DocumentHost

LOGGER = logging.getLogger(__name__)


class BuildContext:
    """What a language adapter sees while compiling one document."""

    def __init__(
        self,
        host: "DocumentHost",
        descriptor: DocumentDescriptor,
        chain: DependencyChain,
    ) -> None:
        self.host = host
        self.descriptor = descriptor
        self.chain = chain

    @property
    def document_name(self) -> str:
        return self.descriptor.name

    def include(
        self,
        name: str,
        line_number: int = UNKNOWN_POSITION,
        column_number: int = UNKNOWN_POSITION,
    ) -> Artifact:
        """Resolve and build another document while compiling this one.

        The included document becomes a dependency of this one, so a change to
        it invalidates this document too. Failures gain a frame pointing at
        the include site.
        """
        try:
            descriptor, artifact = self.host.resolve_and_build(name, self.chain)
        except DocumentError as error:
            error.push_frame(self.document_name, line_number, column_number)
            raise
        self.descriptor.add_dependency(descriptor)
        return artifact


class ExecutableBuilder:
    """Turns descriptors into artifacts, at most once per descriptor.

    The artifact slot of a descriptor is install-if-absent, so when two
    builds of the same descriptor race, the loser's artifact is discarded and
    the winner's returned. Top-level requests additionally single-flight on
    the descriptor: the first caller compiles and the others wait for its
    result. Nested builds, triggered by includes while another document is
    being compiled, never wait, which keeps cross-thread include cycles from
    deadlocking. A nested build overlapping a top-level build of the same
    descriptor may therefore compile twice; only one artifact is installed.
    """

    def __init__(self, registry: LanguageRegistry, *, prepare: bool = False) -> None:
        self.registry = registry
        self.prepare = prepare

    def build(self, descriptor: DocumentDescriptor, context: BuildContext) -> Artifact:
        while True:
            artifact = descriptor.artifact
            if artifact is not None:
                return artifact

            if context.chain.is_nested:
                return self._construct(descriptor, context)

            owner, done = descriptor.claim_build()
            if not owner:
                done.wait()
                # The owner either installed an artifact or failed; in the
                # latter case this caller takes its own turn.
                continue
            try:
                return self._construct(descriptor, context)
            finally:
                descriptor.release_build(done)

    def _construct(self, descriptor: DocumentDescriptor, context: BuildContext) -> Artifact:
        adapter = self.registry.for_tag(descriptor.tag, descriptor.name)
        LOGGER.debug("Building %s with the %s adapter", descriptor.name, adapter.name)
        try:
            artifact = adapter.compile(descriptor.source_text, descriptor.tag, context)
            if self.prepare:
                artifact.prepare()
        except DocumentError:
            raise
        except Exception as exc:
            raise parsing_error(
                descriptor.name,
                f"{adapter.name} adapter failed: {exc}",
                cause=exc,
            ) from exc

        winner = descriptor.install_artifact(artifact)
        if winner is not artifact:
            LOGGER.debug("Discarding duplicate artifact for %s", descriptor.name)
        return winner
