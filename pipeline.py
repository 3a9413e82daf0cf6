"""Runs one use-case invocation between its hooks.

    on_start -> operation -> on_end, then on_finally on every exit path

The first error from the start, domain or end phase is the one the caller
sees. Failures during cleanup, and guards still active once cleanup is done,
are logged and attached to that error as notes. Without such an error they
are raised themselves.
"""
from __future__ import annotations

import enum
import logging
from typing import Callable, List, Optional

from domain_models import CreateOrderContext, Order
from errors import InvariantViolation
from hooks import HookChain

logger = logging.getLogger(__name__)

Operation = Callable[[CreateOrderContext], Optional[Order]]


class PipelinePhase(enum.Enum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    START_FAILED = "start_failed"
    DOMAIN_RUNNING = "domain_running"
    DOMAIN_FAILED = "domain_failed"
    ENDING = "ending"
    FINALIZING = "finalizing"
    DONE = "done"


class UseCasePipeline:
    def __init__(self, operation: Operation, chain: HookChain, name: str = "use_case"):
        self._operation = operation
        self._chain = chain
        self.name = name
        self.phase = PipelinePhase.NOT_STARTED

    def execute(self, ctx: CreateOrderContext) -> Optional[Order]:
        if self.phase is not PipelinePhase.NOT_STARTED:
            raise InvariantViolation(f"{self.name}: pipeline instances run once, use a fresh one per invocation")

        logger.debug("%s: executing %s", self.name, ctx.request)
        try:
            self.phase = PipelinePhase.STARTING
            try:
                self._chain.run_on_start(ctx)
            except BaseException:
                self.phase = PipelinePhase.START_FAILED
                raise

            self.phase = PipelinePhase.DOMAIN_RUNNING
            try:
                self._operation(ctx)
            except BaseException:
                self.phase = PipelinePhase.DOMAIN_FAILED
                raise

            self.phase = PipelinePhase.ENDING
            self._chain.run_on_end(ctx)
        except BaseException as exc:
            logger.info("%s: failed in %s: %r", self.name, self.phase.value, exc)
            self._finalize(ctx, exc)
            raise

        self._finalize(ctx, None)
        logger.info("%s: completed", self.name)
        return ctx.result

    def _finalize(self, ctx: CreateOrderContext, primary: Optional[BaseException]) -> None:
        self.phase = PipelinePhase.FINALIZING
        cleanup_errors = self._chain.run_on_finally(ctx)
        leaked = [guard for guard in self._chain.guards if guard.is_active()]
        self.phase = PipelinePhase.DONE

        violation: Optional[InvariantViolation] = None
        if leaked:
            names = ", ".join(guard.name for guard in leaked)
            violation = InvariantViolation(f"{self.name}: guards still active after cleanup: {names}")
            logger.critical("%s", violation)

        if primary is not None:
            for err in cleanup_errors:
                primary.add_note(f"cleanup failed: {err!r}")
            if violation is not None:
                primary.add_note(str(violation))
            return

        if violation is not None:
            raise violation from _first(cleanup_errors)
        if cleanup_errors:
            raise cleanup_errors[0]


def _first(errors: List[Exception]) -> Optional[Exception]:
    return errors[0] if errors else None
