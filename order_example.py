import logging
import uuid

from sqlalchemy.orm import sessionmaker

from config import Settings
from domain_impl import create_session_factory, make_pipeline_factory
from domain_models import CreateOrderRequest, Product, User
from errors import OrderError
from mappers import DomainEntityMapper
from services import OrderAppService
from telemetry import OpenTelemetryTimeSpanManager


def seed(session_factory: sessionmaker, *users: User, products=()) -> None:
    with session_factory.begin() as session:
        session.add_all([DomainEntityMapper.user_to_row(u) for u in users])
        session.add_all([DomainEntityMapper.product_to_row(p) for p in products])


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    session_factory = create_session_factory(settings)
    service = OrderAppService(
        make_pipeline_factory(session_factory, OpenTelemetryTimeSpanManager, span_name=settings.span_name)
    )

    alice = User(id=uuid.uuid4(), name="alice", balance=100)
    bob = User(id=uuid.uuid4(), name="bob", balance=50)
    lamp = Product(id=uuid.uuid4(), name="lamp", price=80)
    seed(session_factory, alice, bob, products=[lamp])

    # each call runs in its own transaction and span
    for user in (alice, bob):
        try:
            order = service.create(CreateOrderRequest(user_id=user.id, product_id=lamp.id))
            print("order_id:", order.id)
        except OrderError as exc:
            print(f"{user.name}: {exc}")


if __name__ == "__main__":
    main()
