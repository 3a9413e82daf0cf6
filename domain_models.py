from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional, Protocol
from uuid import UUID

from errors import InvariantViolation


@dataclass(frozen=True)
class User:
    id: UUID
    name: str
    balance: int


@dataclass(frozen=True)
class Product:
    id: UUID
    name: str
    price: int


@dataclass(frozen=True)
class Order:
    id: UUID
    user_id: UUID
    product_id: UUID

    @classmethod
    def new(cls, user_id: UUID, product_id: UUID) -> "Order":
        return cls(id=uuid.uuid4(), user_id=user_id, product_id=product_id)


@dataclass(frozen=True)
class CreateOrderRequest:
    user_id: UUID
    product_id: UUID


_WRITE_ONCE = ("user", "product", "result")


@dataclass
class CreateOrderContext:
    """Per-invocation state threaded through the pipeline and every hook.

    ``user``, ``product`` and ``result`` are each written at most once, and
    ``result`` only after both entities are in place.
    """

    request: CreateOrderRequest
    user: Optional[User] = None
    product: Optional[Product] = None
    result: Optional[Order] = None

    def __setattr__(self, name, value):
        if name in _WRITE_ONCE and getattr(self, name, None) is not None:
            raise InvariantViolation(f"context field {name!r} is already set")
        if name == "result" and value is not None and (self.user is None or self.product is None):
            raise InvariantViolation("context result set before user and product")
        super().__setattr__(name, value)


# INTERFACES FOR COLLABORATORS THE CORE DEPENDS ON
class IUserRepo(Protocol):
    def find(self, user_id: UUID) -> User: ...


class IProductRepo(Protocol):
    def find(self, product_id: UUID) -> Product: ...


class IOrderRepo(Protocol):
    def create(self, order: Order) -> None: ...


class ITransactionManager(Protocol):
    def begin(self) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...
    def is_active(self) -> bool: ...


class ITimeSpanManager(Protocol):
    def start_span(self, name: str) -> None: ...
    def add_event(self, name: str) -> None: ...
    def is_active(self) -> bool: ...
    def stop_span(self) -> None: ...
