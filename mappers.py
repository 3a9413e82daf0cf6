from db_models import DBOrderRow, DBProductRow, DBUserRow
from domain_models import Order, Product, User


class DomainEntityMapper:
    @staticmethod
    def user_row_to_domain(row: DBUserRow) -> User:
        return User(id=row.id, name=row.name, balance=row.balance)

    @staticmethod
    def user_to_row(user: User) -> DBUserRow:
        return DBUserRow(id=user.id, name=user.name, balance=user.balance)

    @staticmethod
    def product_row_to_domain(row: DBProductRow) -> Product:
        return Product(id=row.id, name=row.name, price=row.price)

    @staticmethod
    def product_to_row(product: Product) -> DBProductRow:
        return DBProductRow(id=product.id, name=product.name, price=product.price)

    @staticmethod
    def order_to_values(order: Order) -> dict:
        return {"id": order.id, "user_id": order.user_id, "product_id": order.product_id}

    @staticmethod
    def order_row_to_domain(row: DBOrderRow) -> Order:
        return Order(id=row.id, user_id=row.user_id, product_id=row.product_id)
