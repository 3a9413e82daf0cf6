import uuid

import pytest

from domain_models import CreateOrderContext, CreateOrderRequest, Product, User
from errors import GuardError, InsufficientFunds, InvariantViolation, NotFoundError, PersistenceError, ValidationError
from guards import SpanGuard, TransactionGuard
from hooks import (
    BeginTransaction,
    CallbackHook,
    CommitTransaction,
    FetchEntities,
    Hook,
    HookChain,
    PersistOrder,
    ReleaseGuards,
    StartSpan,
)
from pipeline import PipelinePhase, UseCasePipeline
from services import OrderCoreService
from tests.fakes import FakeOrderRepo, FakeProductRepo, FakeSpanManager, FakeTransactionManager, FakeUserRepo

PRICE = 80


class Harness:
    def __init__(self, balance, products=True, tx_fail_on=None, span_fail_on=None, order_error=None, extra=()):
        self.log = []
        self.user = User(id=uuid.uuid4(), name="alice", balance=balance)
        self.product = Product(id=uuid.uuid4(), name="lamp", price=PRICE)
        self.tx_manager = FakeTransactionManager(self.log, fail_on=tx_fail_on)
        self.span_manager = FakeSpanManager(self.log, fail_on=span_fail_on)
        self.orders = FakeOrderRepo(self.log, error=order_error)
        self.domain_calls = 0

        self.transaction = TransactionGuard(self.tx_manager)
        self.span = SpanGuard(self.span_manager)
        product_repo = FakeProductRepo(self.product) if products else FakeProductRepo()
        self.chain = HookChain(
            [
                StartSpan(self.span, "create order"),
                BeginTransaction(self.transaction),
                FetchEntities(FakeUserRepo(self.user), product_repo),
                PersistOrder(self.orders),
                CommitTransaction(self.transaction),
                *extra,
                ReleaseGuards(self.transaction),
                ReleaseGuards(self.span),
            ]
        )
        self.pipeline = UseCasePipeline(self._operation, self.chain, name="create_order")
        self.ctx = CreateOrderContext(request=CreateOrderRequest(user_id=self.user.id, product_id=self.product.id))

    def _operation(self, ctx):
        self.domain_calls += 1
        return OrderCoreService().create(ctx)

    def run(self):
        return self.pipeline.execute(self.ctx)


def test_affordable_order_is_created_and_committed():
    h = Harness(balance=100)
    order = h.run()
    assert order is h.ctx.result
    assert order.user_id == h.user.id
    assert order.product_id == h.product.id
    assert h.orders.orders == [order]
    assert h.log == [
        "span.start:create order",
        "tx.begin",
        "order.create",
        "tx.commit",
        "span.stop:create order",
    ]
    assert not h.transaction.is_active()
    assert not h.span.is_active()
    assert h.pipeline.phase is PipelinePhase.DONE


def test_insufficient_funds_rolls_back_and_stops_span():
    h = Harness(balance=50)
    with pytest.raises(ValidationError) as info:
        h.run()
    assert isinstance(info.value, InsufficientFunds)
    assert info.value.balance == 50
    assert info.value.price == PRICE
    assert "tx.commit" not in h.log
    assert h.log == ["span.start:create order", "tx.begin", "tx.rollback", "span.stop:create order"]
    assert h.ctx.result is None
    assert h.orders.orders == []
    assert not h.transaction.is_active()
    assert not h.span.is_active()


def test_missing_product_skips_domain_and_still_cleans_up():
    h = Harness(balance=100, products=False)
    with pytest.raises(NotFoundError) as info:
        h.run()
    assert info.value.entity == "product"
    assert h.domain_calls == 0
    assert "tx.commit" not in h.log
    assert h.log[-2:] == ["tx.rollback", "span.stop:create order"]
    assert not h.span.is_active()
    assert not h.transaction.is_active()


def test_begin_failure_aborts_before_domain():
    h = Harness(balance=100, tx_fail_on="begin")
    with pytest.raises(GuardError) as info:
        h.run()
    assert info.value.operation == "begin"
    assert h.domain_calls == 0
    assert "tx.rollback" not in h.log
    assert h.log == ["span.start:create order", "span.stop:create order"]


def test_persistence_failure_rolls_back():
    h = Harness(balance=100, order_error=PersistenceError("disk full"))
    with pytest.raises(PersistenceError):
        h.run()
    assert h.domain_calls == 1
    assert "tx.commit" not in h.log
    assert "tx.rollback" in h.log


def test_commit_failure_triggers_rollback():
    h = Harness(balance=100, tx_fail_on="commit")
    with pytest.raises(GuardError) as info:
        h.run()
    assert info.value.operation == "commit"
    assert "tx.rollback" in h.log
    assert not h.transaction.is_active()


def test_cleanup_failure_does_not_mask_domain_error():
    h = Harness(balance=50, span_fail_on="stop")
    with pytest.raises(InsufficientFunds) as info:
        h.run()
    notes = info.value.__notes__
    assert any("cleanup failed" in note for note in notes)
    assert any("guards still active" in note for note in notes)
    assert "tx.rollback" in h.log


def test_cleanup_failure_after_success_is_surfaced():
    h = Harness(balance=100, span_fail_on="stop")
    with pytest.raises(InvariantViolation) as info:
        h.run()
    assert isinstance(info.value.__cause__, GuardError)
    assert "span" in str(info.value)
    # the business work itself went through
    assert "tx.commit" in h.log


def test_cleanup_error_without_leak_is_raised():
    def failing_close():
        raise RuntimeError("close boom")

    h = Harness(balance=100, extra=[CallbackHook(failing_close)])
    with pytest.raises(RuntimeError, match="close boom"):
        h.run()
    assert h.log[-1] == "span.stop:create order"


def test_leaked_guard_is_reported():
    log = []
    tx = TransactionGuard(FakeTransactionManager(log))

    class BeginOnly(Hook):
        guards = (tx,)

        def on_start(self, ctx):
            tx.begin()

    def operation(ctx):
        return None

    pipeline = UseCasePipeline(operation, HookChain([BeginOnly()]))
    ctx = CreateOrderContext(request=CreateOrderRequest(user_id=uuid.uuid4(), product_id=uuid.uuid4()))
    with pytest.raises(InvariantViolation):
        pipeline.execute(ctx)


def test_pipeline_instances_run_once():
    h = Harness(balance=100)
    h.run()
    with pytest.raises(InvariantViolation):
        h.pipeline.execute(h.ctx)
    assert h.log.count("tx.begin") == 1


def test_finally_runs_exactly_once_when_start_fails():
    h = Harness(balance=100, span_fail_on="start")
    with pytest.raises(GuardError):
        h.run()
    assert h.log == []
    assert h.pipeline.phase is PipelinePhase.DONE
