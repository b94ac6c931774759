from typing import List, Optional

from loguru import logger

from unlock_core.core.exceptions import (
    InvalidTransitionException,
    OrderNotFoundException,
    PaymentNotFoundException,
)
from unlock_core.core.status import OrderStatus, can_transition
from unlock_core.core.utils import utcnow
from unlock_core.db.models import Order
from unlock_core.db.repositories.order import OrderRepository
from unlock_core.db.repositories.payment import PaymentRepository
from unlock_core.monitoring.metrics import order_transitions_total
from unlock_core.schemas import OrderResponse, PaymentResponse

OPERATOR_RESET_CODE = "E_UNLOCK_RESET"


class OrderService:
    def __init__(self, order_repo: OrderRepository, payment_repo: PaymentRepository):
        self.order_repo = order_repo
        self.payment_repo = payment_repo

    def list_orders(
        self, status: Optional[str] = None, q: Optional[str] = None, limit: int = 50
    ) -> List[OrderResponse]:
        return [self._to_response(o) for o in self.order_repo.list_orders(status, q, limit)]

    def list_active_orders(self) -> List[OrderResponse]:
        return [self._to_response(o) for o in self.order_repo.list_active()]

    def get_order(self, order_id: str) -> OrderResponse:
        order = self.order_repo.get_by_id(order_id)
        if not order:
            logger.error(f"Order {order_id} not found")
            raise OrderNotFoundException()
        return self._to_response(order)

    def mark_returned(self, order_id: str) -> OrderResponse:
        return self._transition(
            order_id, OrderStatus.RETURNED, returned_at=utcnow()
        )

    def mark_overdue(self, order_id: str) -> OrderResponse:
        return self._transition(order_id, OrderStatus.OVERDUE)

    def cancel(self, order_id: str) -> OrderResponse:
        return self._transition(order_id, OrderStatus.CANCELED)

    def mark_unlock_failed(self, order_id: str) -> OrderResponse:
        """Release an order stuck in ``unlocking`` so confirm-and-unlock can claim it again."""
        return self._transition(
            order_id,
            OrderStatus.UNLOCK_FAILED,
            vendor_code=OPERATOR_RESET_CODE,
            vendor_msg="unlock reset by operator",
        )

    def list_payments(self, limit: int = 50, status: Optional[str] = None) -> List[PaymentResponse]:
        return [
            PaymentResponse.model_validate(p)
            for p in self.payment_repo.list_payments(limit=limit, status=status)
        ]

    def get_payment(self, payment_id: str) -> PaymentResponse:
        payment = self.payment_repo.get_payment(payment_id)
        if not payment:
            raise PaymentNotFoundException()
        return PaymentResponse.model_validate(payment)

    def _transition(self, order_id: str, target: OrderStatus, **values) -> OrderResponse:
        order = self.order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFoundException()
        previous = order.status
        if not can_transition(previous, target.value):
            raise InvalidTransitionException(order_id, previous, target.value)

        order = self.order_repo.transition(order_id, target, **values)
        order_transitions_total.labels(
            service="unlock-core", from_status=previous, to_status=target.value
        ).inc()
        logger.info(f"Operator moved order {order_id}: {previous} -> {target.value}")
        return self._to_response(order)

    def _to_response(self, order: Order) -> OrderResponse:
        response = OrderResponse.model_validate(order)
        payment = self.payment_repo.get_payment(order.payment_id)
        if payment is not None:
            response.payment = PaymentResponse.model_validate(payment)
        return response
