from enum import Enum
from typing import Dict, FrozenSet


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    UNLOCKING = "unlocking"
    IN_USE = "in_use"
    RETURNED = "returned"
    UNLOCK_FAILED = "unlock_failed"
    OVERDUE = "overdue"
    CANCELED = "canceled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELED = "canceled"


# target -> statuses it may be entered from
ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.UNLOCKING: frozenset(
        {OrderStatus.PENDING_PAYMENT, OrderStatus.UNLOCK_FAILED}
    ),
    OrderStatus.IN_USE: frozenset({OrderStatus.UNLOCKING}),
    OrderStatus.UNLOCK_FAILED: frozenset({OrderStatus.UNLOCKING}),
    OrderStatus.RETURNED: frozenset({OrderStatus.IN_USE, OrderStatus.OVERDUE}),
    OrderStatus.OVERDUE: frozenset({OrderStatus.IN_USE}),
    OrderStatus.CANCELED: frozenset({OrderStatus.PENDING_PAYMENT}),
}

# closed for good, not even a confirm-and-unlock re-run reopens them
CLOSED_ORDER_STATUSES = frozenset({OrderStatus.RETURNED, OrderStatus.CANCELED})

ACTIVE_ORDER_STATUSES = frozenset({OrderStatus.IN_USE, OrderStatus.OVERDUE})

TERMINAL_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.CANCELED}
)

PROVIDER_STATUS_MAP: Dict[str, PaymentStatus] = {
    "paid": PaymentStatus.PAID,
    "captured": PaymentStatus.PAID,
    "failed": PaymentStatus.FAILED,
    "voided": PaymentStatus.CANCELED,
    "refunded": PaymentStatus.CANCELED,
    "canceled": PaymentStatus.CANCELED,
    "cancelled": PaymentStatus.CANCELED,
}


def allowed_sources(target: OrderStatus) -> FrozenSet[OrderStatus]:
    return ORDER_TRANSITIONS.get(OrderStatus(target), frozenset())


def can_transition(current: str, target: str) -> bool:
    return OrderStatus(current) in allowed_sources(OrderStatus(target))


def map_provider_status(raw_status: str) -> PaymentStatus:
    return PROVIDER_STATUS_MAP.get((raw_status or "").lower(), PaymentStatus.PENDING)


def merge_payment_status(current: str, incoming: PaymentStatus) -> PaymentStatus:
    """Payment status only moves forward: a terminal status never reverts to pending."""
    if current is None:
        return incoming
    current_status = PaymentStatus(current)
    if current_status in TERMINAL_PAYMENT_STATUSES and incoming == PaymentStatus.PENDING:
        return current_status
    return incoming
