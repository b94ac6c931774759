from .order import OrderRepository
from .payment import PaymentRepository

__all__ = [
    "OrderRepository",
    "PaymentRepository",
]
