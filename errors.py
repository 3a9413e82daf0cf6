from typing import Any, Optional


class OrderError(Exception):
    pass


class ValidationError(OrderError):
    pass


class InsufficientFunds(ValidationError):
    def __init__(self, user_id: Any, balance: int, price: int):
        super().__init__(f"insufficient funds: user {user_id} has {balance}, price is {price}")
        self.user_id = user_id
        self.balance = balance
        self.price = price


class NotFoundError(OrderError):
    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class PersistenceError(OrderError):
    pass


class GuardError(OrderError):
    """A guard's collaborator failed, or the guard was driven from the wrong state."""

    def __init__(self, guard: str, operation: str, message: Optional[str] = None):
        super().__init__(message or f"{guard}.{operation} failed")
        self.guard = guard
        self.operation = operation


class InvariantViolation(OrderError):
    """A defect in wiring or hook code, e.g. a guard left active after cleanup."""
