"""Stateful handles over the transaction and span collaborators.

A guard is either inactive or active. Acquiring (``begin``/``start``) moves it
to active; finishing (``commit``/``stop``) or aborting (``rollback``) moves it
back. ``release()`` aborts only when active, so cleanup code can call it
without knowing how far the invocation got.

Collaborator failures surface as ``GuardError``. A guard whose finish or
abort failed stays active: the resource was not provably released.
"""
from __future__ import annotations

import abc
import logging
from contextlib import ExitStack, contextmanager
from typing import Callable, Iterator

from domain_models import ITimeSpanManager, ITransactionManager
from errors import GuardError

logger = logging.getLogger(__name__)


class ResourceGuard(abc.ABC):
    name = "guard"

    def __init__(self) -> None:
        self._active = False

    def is_active(self) -> bool:
        return self._active

    @abc.abstractmethod
    def release(self) -> None:
        """Abort the resource if still active; no-op otherwise."""

    def _acquire(self, operation: str, action: Callable[[], None]) -> None:
        if self._active:
            raise GuardError(self.name, operation, f"{self.name}.{operation} called while already active")
        try:
            action()
        except Exception as exc:
            raise GuardError(self.name, operation) from exc
        self._active = True
        logger.debug("%s: %s", self.name, operation)

    def _finish(self, operation: str, action: Callable[[], None]) -> None:
        if not self._active:
            raise GuardError(self.name, operation, f"{self.name}.{operation} called while inactive")
        try:
            action()
        except Exception as exc:
            raise GuardError(self.name, operation) from exc
        self._active = False
        logger.debug("%s: %s", self.name, operation)

    @contextmanager
    def _scoped(self, acquire: Callable[[], None], finish: Callable[[], None]) -> Iterator["ResourceGuard"]:
        acquire()
        try:
            yield self
            finish()
        except BaseException as exc:
            try:
                self.release()
            except Exception as cleanup_exc:
                logger.error("%s: release failed while handling %r", self.name, exc, exc_info=cleanup_exc)
                exc.add_note(f"{self.name} release failed: {cleanup_exc!r}")
            raise


class TransactionGuard(ResourceGuard):
    name = "transaction"

    def __init__(self, manager: ITransactionManager):
        super().__init__()
        self._manager = manager

    def begin(self) -> None:
        self._acquire("begin", self._manager.begin)

    def commit(self) -> None:
        self._finish("commit", self._manager.commit)

    def rollback(self) -> None:
        self._finish("rollback", self._manager.rollback)

    def release(self) -> None:
        if self.is_active():
            self.rollback()

    def scope(self):
        """Begin now, commit on clean exit, roll back otherwise."""
        return self._scoped(self.begin, self.commit)


class SpanGuard(ResourceGuard):
    name = "span"

    def __init__(self, manager: ITimeSpanManager):
        super().__init__()
        self._manager = manager

    def start(self, label: str) -> None:
        self._acquire("start", lambda: self._manager.start_span(label))

    def add_event(self, text: str) -> None:
        if not self._active:
            raise GuardError(self.name, "add_event", "span.add_event called while inactive")
        try:
            self._manager.add_event(text)
        except Exception as exc:
            raise GuardError(self.name, "add_event") from exc

    def stop(self) -> None:
        self._finish("stop", self._manager.stop_span)

    def release(self) -> None:
        if self.is_active():
            self.stop()

    def scope(self, label: str):
        """Start a span for the body of the ``with`` block and always stop it."""
        return self._scoped(lambda: self.start(label), self.stop)


def release_all(*guards: ResourceGuard) -> None:
    """Release ``guards`` in the order given.

    Every release runs even if an earlier one raises; the last failure
    propagates with the earlier ones chained as its ``__context__``.
    """
    with ExitStack() as stack:
        for guard in reversed(guards):
            stack.callback(guard.release)
