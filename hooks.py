"""Lifecycle hooks around a use-case invocation.

A hook opts into any subset of ``on_start``, ``on_end`` and ``on_finally`` by
overriding it; the rest stay no-ops. Order of registration matters: fetching
entities needs the transaction begun, persisting the order must happen before
the commit, and so on.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Sequence, Tuple

from domain_models import CreateOrderContext, IOrderRepo, IProductRepo, IUserRepo
from guards import ResourceGuard, SpanGuard, TransactionGuard, release_all

logger = logging.getLogger(__name__)


class Hook:
    # guards this hook drives; the pipeline checks them after cleanup
    guards: Tuple[ResourceGuard, ...] = ()

    def on_start(self, ctx: CreateOrderContext) -> None:
        pass

    def on_end(self, ctx: CreateOrderContext) -> None:
        pass

    def on_finally(self, ctx: CreateOrderContext) -> None:
        pass


class HookChain:
    def __init__(self, hooks: Sequence[Hook]):
        self._hooks: Tuple[Hook, ...] = tuple(hooks)

    def __iter__(self):
        return iter(self._hooks)

    def __len__(self) -> int:
        return len(self._hooks)

    @property
    def guards(self) -> List[ResourceGuard]:
        seen: List[ResourceGuard] = []
        for hook in self._hooks:
            for guard in hook.guards:
                if not any(guard is g for g in seen):
                    seen.append(guard)
        return seen

    def run_on_start(self, ctx: CreateOrderContext) -> None:
        for hook in self._hooks:
            hook.on_start(ctx)

    def run_on_end(self, ctx: CreateOrderContext) -> None:
        for hook in self._hooks:
            hook.on_end(ctx)

    def run_on_finally(self, ctx: CreateOrderContext) -> List[Exception]:
        """Run every ``on_finally``, even past failures, and return the failures."""
        errors: List[Exception] = []
        for hook in self._hooks:
            try:
                hook.on_finally(ctx)
            except Exception as exc:
                logger.error("on_finally of %s failed", type(hook).__name__, exc_info=exc)
                errors.append(exc)
        return errors


# ---------- span ----------
class StartSpan(Hook):
    def __init__(self, span: SpanGuard, label: str):
        self.span = span
        self.label = label
        self.guards = (span,)

    def on_start(self, ctx: CreateOrderContext) -> None:
        self.span.start(self.label)


# ---------- transaction ----------
class BeginTransaction(Hook):
    def __init__(self, transaction: TransactionGuard):
        self.transaction = transaction
        self.guards = (transaction,)

    def on_start(self, ctx: CreateOrderContext) -> None:
        self.transaction.begin()


class CommitTransaction(Hook):
    def __init__(self, transaction: TransactionGuard):
        self.transaction = transaction
        self.guards = (transaction,)

    def on_end(self, ctx: CreateOrderContext) -> None:
        self.transaction.commit()


class ReleaseGuards(Hook):
    """Roll back / stop whichever of ``guards`` are still active, in order."""

    def __init__(self, *guards: ResourceGuard):
        self.guards = guards

    def on_finally(self, ctx: CreateOrderContext) -> None:
        release_all(*self.guards)


# ---------- data ----------
class FetchEntities(Hook):
    def __init__(self, user_repo: IUserRepo, product_repo: IProductRepo):
        self.user_repo = user_repo
        self.product_repo = product_repo

    def on_start(self, ctx: CreateOrderContext) -> None:
        ctx.user = self.user_repo.find(ctx.request.user_id)
        ctx.product = self.product_repo.find(ctx.request.product_id)


class PersistOrder(Hook):
    def __init__(self, order_repo: IOrderRepo):
        self.order_repo = order_repo

    def on_end(self, ctx: CreateOrderContext) -> None:
        self.order_repo.create(ctx.result)


class CallbackHook(Hook):
    """Run an arbitrary cleanup callable in the finally phase."""

    def __init__(self, on_finally: Callable[[], None]):
        self._callback = on_finally

    def on_finally(self, ctx: CreateOrderContext) -> None:
        self._callback()
