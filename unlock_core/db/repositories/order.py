from typing import List, Optional, Tuple

from loguru import logger
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from unlock_core.core.exceptions import (
    InvalidTransitionException,
    OrderNotFoundException,
)
from unlock_core.core.status import (
    ACTIVE_ORDER_STATUSES,
    OrderStatus,
    allowed_sources,
)
from unlock_core.core.utils import utcnow, uuid4
from unlock_core.db.models import Order


class OrderRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, order_id: str) -> Optional[Order]:
        return self.session.get(Order, order_id)

    def get_by_payment_id(self, payment_id: str) -> Optional[Order]:
        return self.session.execute(
            select(Order).where(Order.payment_id == payment_id)
        ).scalar_one_or_none()

    def reload(self, order_id: str) -> Optional[Order]:
        return self.session.get(Order, order_id, populate_existing=True)

    def create_or_fetch(
        self,
        payment_id: str,
        device_no: str,
        cart_index: int,
        amount_halalas: int,
        cart_no: Optional[str] = None,
        site_no: Optional[str] = None,
    ) -> Tuple[Order, bool]:
        existing = self.get_by_payment_id(payment_id)
        if existing:
            return existing, False

        order = Order(
            id=uuid4(),
            payment_id=payment_id,
            device_no=device_no,
            cart_no=cart_no,
            cart_index=cart_index,
            site_no=site_no,
            amount_halalas=amount_halalas,
            status=OrderStatus.PENDING_PAYMENT.value,
            created_at=utcnow(),
        )
        try:
            self.session.add(order)
            self.session.flush()
        except IntegrityError:
            # a concurrent caller inserted the same payment first
            self.session.rollback()
            winner = self.get_by_payment_id(payment_id)
            if winner is None:
                raise
            logger.info(f"Order for payment {payment_id} created concurrently, reusing {winner.id}")
            return winner, False

        logger.info(f"Created order {order.id} for payment {payment_id}")
        return order, True

    def transition(self, order_id: str, target: OrderStatus, **values) -> Order:
        sources = [s.value for s in allowed_sources(target)]
        result = self.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.status.in_(sources))
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            order = self.reload(order_id)
            if not order:
                raise OrderNotFoundException()
            raise InvalidTransitionException(order_id, order.status, target.value)

        order = self.reload(order_id)
        logger.info(f"Order {order_id} -> {target.value}")
        return order

    def claim_unlock(self, order_id: str) -> bool:
        """Compare-and-set into ``unlocking``; only one caller per order wins."""
        now = utcnow()
        try:
            self.transition(
                order_id,
                OrderStatus.UNLOCKING,
                unlock_requested_at=func.coalesce(Order.unlock_requested_at, now),
            )
        except InvalidTransitionException as e:
            logger.warning(f"Unlock claim lost for order {order_id}: {e}")
            return False
        return True

    def mark_unlock_confirmed(self, order_id: str, vendor_code: str, vendor_msg: str) -> Order:
        return self.transition(
            order_id,
            OrderStatus.IN_USE,
            unlock_confirmed_at=utcnow(),
            vendor_code=vendor_code,
            vendor_msg=vendor_msg,
        )

    def mark_unlock_failed(self, order_id: str, vendor_code: str, vendor_msg: str) -> Order:
        return self.transition(
            order_id,
            OrderStatus.UNLOCK_FAILED,
            vendor_code=vendor_code,
            vendor_msg=vendor_msg,
        )

    def list_orders(
        self,
        status: Optional[str] = None,
        q: Optional[str] = None,
        limit: int = 50,
    ) -> List[Order]:
        stmt = select(Order)
        if status:
            stmt = stmt.where(Order.status == status)
        if q:
            like = f"%{q}%"
            stmt = stmt.where(
                or_(
                    Order.cart_no.ilike(like),
                    Order.device_no.ilike(like),
                    Order.payment_id.ilike(like),
                )
            )
        stmt = stmt.order_by(Order.created_at.desc()).limit(limit)
        return list(self.session.execute(stmt).scalars().all())

    def list_active(self) -> List[Order]:
        return list(
            self.session.execute(
                select(Order)
                .where(Order.status.in_([s.value for s in ACTIVE_ORDER_STATUSES]))
                .order_by(Order.created_at.desc())
            )
            .scalars()
            .all()
        )


__all__ = ["OrderRepository"]
