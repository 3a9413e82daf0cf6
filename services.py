from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from domain_models import CreateOrderContext, CreateOrderRequest, Order
from errors import InsufficientFunds, InvariantViolation

if TYPE_CHECKING:
    from pipeline import UseCasePipeline

logger = logging.getLogger(__name__)


class OrderCoreService:
    """Pure order creation: no repositories, no transactions, no spans.

    Entities are fetched into the context and the result persisted by hooks.
    """

    def create(self, ctx: CreateOrderContext) -> Order:
        user, product = ctx.user, ctx.product
        if user is None or product is None:
            raise InvariantViolation("user and product must be fetched before creating an order")

        if user.balance < product.price:
            raise InsufficientFunds(user.id, user.balance, product.price)

        ctx.result = Order.new(user.id, product.id)
        return ctx.result


class OrderAppService:
    def __init__(self, pipeline_factory: Callable[[], "UseCasePipeline"]):
        self.pipeline_factory = pipeline_factory

    def create(self, request: CreateOrderRequest) -> Order:
        order = self.pipeline_factory().execute(CreateOrderContext(request=request))
        if order is None:
            raise InvariantViolation("create order pipeline finished without producing an order")
        logger.info("order %s created for user %s", order.id, order.user_id)
        return order
