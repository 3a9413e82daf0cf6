from __future__ import annotations

from typing import Callable, Optional
from uuid import UUID

from sqlalchemy import create_engine, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config import Settings
from db_models import Base, DBOrderRow, DBProductRow, DBUserRow

# DOMAIN MODELS TO IMPLEMENT
from domain_models import (
    IOrderRepo,
    IProductRepo,
    ITimeSpanManager,
    ITransactionManager,
    IUserRepo,
    Order,
    Product,
    User,
)
from errors import NotFoundError, PersistenceError
from guards import SpanGuard, TransactionGuard
from hooks import (
    BeginTransaction,
    CallbackHook,
    CommitTransaction,
    FetchEntities,
    HookChain,
    PersistOrder,
    ReleaseGuards,
    StartSpan,
)
from mappers import DomainEntityMapper
from pipeline import UseCasePipeline
from services import OrderCoreService

PipelineFactory = Callable[[], UseCasePipeline]


# IMPLEMENTATIONS
class SqlAlchemyUserRepo(IUserRepo):
    def __init__(self, session: Session):
        self._s = session

    def find(self, user_id: UUID) -> User:
        try:
            row = self._s.get(DBUserRow, user_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to load user {user_id}") from exc
        if row is None:
            raise NotFoundError("user", user_id)
        return DomainEntityMapper.user_row_to_domain(row)


class SqlAlchemyProductRepo(IProductRepo):
    def __init__(self, session: Session):
        self._s = session

    def find(self, product_id: UUID) -> Product:
        try:
            row = self._s.get(DBProductRow, product_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to load product {product_id}") from exc
        if row is None:
            raise NotFoundError("product", product_id)
        return DomainEntityMapper.product_row_to_domain(row)


class SqlAlchemyOrderRepo(IOrderRepo):
    def __init__(self, session: Session, after_sql_created: Optional[Callable[[str], None]] = None):
        self._s = session
        self._after_sql_created = after_sql_created

    def create(self, order: Order) -> None:
        stmt = insert(DBOrderRow).values(**DomainEntityMapper.order_to_values(order))
        if self._after_sql_created is not None:
            self._after_sql_created(str(stmt))
        try:
            self._s.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to insert order {order.id}") from exc

    def get(self, order_id: UUID) -> Optional[Order]:
        try:
            row = self._s.get(DBOrderRow, order_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to load order {order_id}") from exc
        return DomainEntityMapper.order_row_to_domain(row) if row else None


class TracedOrderRepo(IOrderRepo):
    """Times every insert in its own span nested under the use-case span."""

    def __init__(self, inner: IOrderRepo, spans: ITimeSpanManager, label: str = "insert order"):
        self._inner = inner
        self._spans = spans
        self._label = label

    def create(self, order: Order) -> None:
        with SpanGuard(self._spans).scope(self._label):
            self._inner.create(order)


class SqlAlchemyTransactionManager(ITransactionManager):
    def __init__(self, session: Session):
        self._s = session

    def begin(self) -> None:
        self._s.begin()

    def commit(self) -> None:
        self._s.commit()

    def rollback(self) -> None:
        self._s.rollback()

    def is_active(self) -> bool:
        return self._s.in_transaction()


def make_pipeline_factory(
    session_factory: Callable[[], Session],
    span_manager_factory: Callable[[], ITimeSpanManager],
    span_name: str = "create order",
) -> PipelineFactory:
    """Return a factory building a fresh create-order pipeline per invocation.

    Nothing stateful (session, guards, span stack) is shared between two
    pipelines, so concurrent invocations never see each other's transaction.
    """

    def build() -> UseCasePipeline:
        session = session_factory()
        spans = span_manager_factory()
        transaction = TransactionGuard(SqlAlchemyTransactionManager(session))
        span = SpanGuard(spans)

        order_repo = TracedOrderRepo(
            SqlAlchemyOrderRepo(session, after_sql_created=lambda sql: spans.add_event(f"order insert sql: {sql}")),
            spans,
        )

        # order is significant: the span wraps everything, entities are read
        # inside the transaction, the order is written before the commit
        chain = HookChain(
            [
                StartSpan(span, span_name),
                BeginTransaction(transaction),
                FetchEntities(SqlAlchemyUserRepo(session), SqlAlchemyProductRepo(session)),
                PersistOrder(order_repo),
                CommitTransaction(transaction),
                ReleaseGuards(transaction),
                CallbackHook(session.close),
                ReleaseGuards(span),
            ]
        )
        return UseCasePipeline(OrderCoreService().create, chain, name="create_order")

    return build


def create_session_factory(settings: Settings) -> sessionmaker:
    engine = create_engine(settings.database_url, echo=settings.sql_echo)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
