"""Bulk parallel pre-building ("defrosting") of a document collection."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from scriptorium.host import DocumentHost

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DefrostFailure:
    name: str
    error: BaseException


@dataclass(slots=True)
class DefrostResult:
    interrupted: bool = False
    failures: tuple[DefrostFailure, ...] = ()
    total: int = 0
    completed: int = 0
    built: list[str] = field(default_factory=list)

    @property
    def done(self) -> bool:
        return self.completed == self.total


def default_concurrency() -> int:
    return os.cpu_count() or 1


class Defroster:
    """Builds every document of a host's source ahead of time.

    The instance doubles as the handle of its latest batch: failures,
    interruption and completion can be inspected from any thread while the
    batch is still running.
    """

    poll_interval = 0.05

    def __init__(self, host: "DocumentHost") -> None:
        self.host = host
        self._lock = threading.Lock()
        self._failures: list[DefrostFailure] = []
        self._built: list[str] = []
        self._total = 0
        self._completed = 0
        self._interrupted = False
        self._interrupt_requested = threading.Event()
        self._done = threading.Event()
        self._done.set()

    def defrost(self, concurrency: int | None = None, *, blocking: bool = False) -> "Defroster":
        """Build every document currently listed by the source.

        The names are snapshotted now; documents added later are not part of
        the batch. With ``blocking`` the call returns once every task finished
        or the wait was interrupted; otherwise the batch runs on a background
        thread and the call returns immediately.
        """
        workers = concurrency if concurrency is not None else default_concurrency()
        if workers < 1:
            raise ValueError("concurrency must be at least 1")
        self._claim_batch()
        try:
            names = sorted(self.host.source.list_names())
        except BaseException:
            self._done.set()
            raise
        self._start_batch(len(names))
        LOGGER.info("Defrosting %d documents with %d workers", len(names), workers)

        if blocking:
            self._run(names, workers)
        else:
            thread = threading.Thread(
                target=self._run, args=(names, workers), name="defroster", daemon=True
            )
            thread.start()
        return self

    def _claim_batch(self) -> None:
        """Reset the handle for a new batch, or raise if one is running."""
        with self._lock:
            if not self._done.is_set():
                raise RuntimeError("A defrost batch is already running")
            self._done.clear()
            self._failures = []
            self._built = []
            self._total = 0
            self._completed = 0
            self._interrupted = False
            self._interrupt_requested.clear()

    def _start_batch(self, total: int) -> None:
        with self._lock:
            self._total = total
            if not total:
                self._done.set()

    def _run(self, names: list[str], workers: int) -> None:
        if not names:
            return
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="defrost")
        try:
            pending: set[Future] = set()
            for name in names:
                future = executor.submit(self._defrost_one, name)
                future.add_done_callback(partial(self._record, name))
                pending.add(future)

            while pending:
                if self._interrupt_requested.is_set():
                    self._mark_interrupted()
                    return
                _, pending = wait(pending, timeout=self.poll_interval, return_when=FIRST_COMPLETED)
            # Waiters are woken before done callbacks run
            self._done.wait()
        except KeyboardInterrupt:
            self._interrupt_requested.set()
            self._mark_interrupted()
            raise
        finally:
            # Running tasks are left to finish; their outcomes are still recorded.
            executor.shutdown(wait=False)

    def _defrost_one(self, name: str) -> None:
        LOGGER.debug("Defrosting: %s", name)
        self.host.get_artifact(name)

    def _record(self, name: str, future: Future) -> None:
        error = future.exception() if not future.cancelled() else None
        with self._lock:
            if error is not None:
                self._failures.append(DefrostFailure(name, error))
            elif not future.cancelled():
                self._built.append(name)
            self._completed += 1
            finished = self._completed >= self._total
        if error is not None:
            LOGGER.error("Failed to defrost %s: %s", name, error)
        if finished:
            self._done.set()

    def _mark_interrupted(self) -> None:
        with self._lock:
            self._interrupted = True
        LOGGER.warning("Defrost interrupted; %d tasks are no longer awaited", self._total - self._completed)

    def interrupt(self) -> None:
        """Stop waiting for the current batch; running tasks are not cancelled."""
        self._interrupt_requested.set()

    def interrupt_requested(self) -> bool:
        return self._interrupt_requested.is_set()

    def was_interrupted(self) -> bool:
        with self._lock:
            return self._interrupted

    def has_failures(self) -> bool:
        with self._lock:
            return bool(self._failures)

    def failures(self) -> tuple[DefrostFailure, ...]:
        with self._lock:
            return tuple(self._failures)

    def is_done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for every task of the batch to finish; return True if they did."""
        return self._done.wait(timeout)

    def result(self) -> DefrostResult:
        with self._lock:
            return DefrostResult(
                interrupted=self._interrupted,
                failures=tuple(self._failures),
                total=self._total,
                completed=self._completed,
                built=list(self._built),
            )
