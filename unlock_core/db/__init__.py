from .database import get_engine, get_sessionmaker
from .models import Base, Order, PaymentRecord

__all__ = [
    "Base",
    "Order",
    "PaymentRecord",
    "get_sessionmaker",
    "get_engine",
]
