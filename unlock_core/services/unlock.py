from typing import Optional

from loguru import logger
from sqlalchemy.orm import Session

from unlock_core.clients.external import VENDOR_UNAVAILABLE_CODE, ExternalClient
from unlock_core.core.exceptions import ProviderUnavailableException
from unlock_core.core.status import CLOSED_ORDER_STATUSES, OrderStatus
from unlock_core.core.utils import SUCCESS_CODE
from unlock_core.db.models import Order
from unlock_core.db.repositories.order import OrderRepository
from unlock_core.db.repositories.payment import PaymentRepository
from unlock_core.monitoring.metrics import confirm_requests_total, unlock_commands_total
from unlock_core.schemas import (
    ConfirmUnlockData,
    ConfirmUnlockRequest,
    ConfirmUnlockResponse,
    OrderResponse,
    PaymentResponse,
    VendorOutcome,
)

ORDER_MISMATCH = "E_ORDER_MISMATCH"
ORDER_CLOSED = "E_ORDER_CLOSED"
UNLOCK_IN_PROGRESS = "E_UNLOCK_IN_PROGRESS"
PROVIDER_UNAVAILABLE = "E_PROVIDER_UNAVAILABLE"
PAYMENT_NOT_FOUND = "E_PAYMENT_NOT_FOUND"
PAYMENT_NOT_PAID = "E_PAYMENT_NOT_PAID"
AMOUNT_MISMATCH = "E_AMOUNT_MISMATCH"


class UnlockService:
    """Confirm a provider payment, then issue exactly one hardware unlock for it.

    Every call for the same payment id resolves to the same order. The order row
    is the lock: moving it into ``unlocking`` is a conditional update committed
    before the vendor is contacted, so concurrent or repeated calls can never
    send a second unlock for a payment whose unlock is pending or confirmed.
    """

    def __init__(
        self,
        session: Session,
        order_repo: OrderRepository,
        payment_repo: PaymentRepository,
        external_client: ExternalClient,
    ):
        self.session = session
        self.order_repo = order_repo
        self.payment_repo = payment_repo
        self.external_client = external_client

    def confirm_and_unlock(self, request: ConfirmUnlockRequest) -> ConfirmUnlockResponse:
        logger.info(
            f"Confirm-and-unlock payment={request.payment_id} device={request.device_no} "
            f"slot={request.cart_index} amount={request.amount_halalas}"
        )
        response = self._confirm_and_unlock(request)
        confirm_requests_total.labels(service="unlock-core", code=response.code).inc()
        return response

    def _confirm_and_unlock(self, request: ConfirmUnlockRequest) -> ConfirmUnlockResponse:
        order, created = self.order_repo.create_or_fetch(
            payment_id=request.payment_id,
            device_no=request.device_no,
            cart_no=request.cart_no,
            cart_index=request.cart_index,
            site_no=request.site_no,
            amount_halalas=request.amount_halalas,
        )
        self.session.commit()

        if not created and not self._matches(order, request):
            logger.warning(
                f"Payment {request.payment_id} already bound to order {order.id} "
                f"for device {order.device_no} slot {order.cart_index}"
            )
            return self._failure(ORDER_MISMATCH, "Payment already used for another selection", order)

        if order.unlock_confirmed_at is not None:
            logger.info(f"Order {order.id} already unlocked, replaying recorded outcome")
            return self._recorded_outcome(order)

        if OrderStatus(order.status) in CLOSED_ORDER_STATUSES:
            return self._failure(ORDER_CLOSED, f"Order is {order.status}", order)

        if order.status == OrderStatus.UNLOCKING.value:
            return self._failure(UNLOCK_IN_PROGRESS, "Unlock already in progress", order)

        failure = self._verify_payment(order)
        if failure is not None:
            return failure

        if not self.order_repo.claim_unlock(order.id):
            self.session.rollback()
            return self._after_lost_claim(order.id)
        self.session.commit()

        try:
            vendor = self.external_client.unlock_cart(
                device_no=order.device_no,
                cart_index=order.cart_index,
                cart_no=order.cart_no,
            )
        except Exception as e:
            # claim already committed
            self.session.rollback()
            self.order_repo.mark_unlock_failed(order.id, VENDOR_UNAVAILABLE_CODE, str(e))
            self.session.commit()
            unlock_commands_total.labels(service="unlock-core", outcome="failed").inc()
            logger.exception(f"Unlock call for order {order.id} raised: {e}")
            raise

        if vendor.success:
            order = self.order_repo.mark_unlock_confirmed(order.id, vendor.code, vendor.msg)
            unlock_commands_total.labels(service="unlock-core", outcome="success").inc()
            logger.info(f"Order {order.id} unlocked, cart in use")
        else:
            order = self.order_repo.mark_unlock_failed(order.id, vendor.code, vendor.msg)
            unlock_commands_total.labels(service="unlock-core", outcome="failed").inc()
            logger.error(f"Order {order.id} unlock failed: {vendor.code} {vendor.msg}")
        self.session.commit()

        return self._recorded_outcome(order)

    def _verify_payment(self, order: Order) -> Optional[ConfirmUnlockResponse]:
        try:
            payment = self.external_client.get_payment(order.payment_id)
        except ProviderUnavailableException as e:
            return self._failure(PROVIDER_UNAVAILABLE, f"Payment provider unavailable: {e}", order)

        if payment is None:
            return self._failure(PAYMENT_NOT_FOUND, "Payment not found", order)

        self.payment_repo.upsert_payment(
            payment_id=order.payment_id,
            status=payment.status,
            amount_halalas=payment.amount,
            mode=payment.mode,
            scheme=payment.scheme,
            currency=payment.currency,
            metadata_json=payment.metadata_json(),
            created_at=payment.created_at,
        )
        self.session.commit()

        if not payment.is_paid:
            logger.warning(f"Payment {order.payment_id} is {payment.raw_status or payment.status.value}")
            return self._failure(
                PAYMENT_NOT_PAID, f"Payment not completed (status={payment.status.value})", order
            )

        if payment.amount != order.amount_halalas:
            logger.error(
                f"Payment {order.payment_id} amount {payment.amount} "
                f"!= order amount {order.amount_halalas}"
            )
            return self._failure(AMOUNT_MISMATCH, "Paid amount does not match selection", order)

        return None

    def _after_lost_claim(self, order_id: str) -> ConfirmUnlockResponse:
        order = self.order_repo.reload(order_id)
        if order.unlock_confirmed_at is not None:
            return self._recorded_outcome(order)
        if OrderStatus(order.status) in CLOSED_ORDER_STATUSES:
            return self._failure(ORDER_CLOSED, f"Order is {order.status}", order)
        return self._failure(UNLOCK_IN_PROGRESS, "Unlock already in progress", order)

    @staticmethod
    def _matches(order: Order, request: ConfirmUnlockRequest) -> bool:
        return (
            order.device_no == request.device_no
            and order.cart_index == request.cart_index
            and order.amount_halalas == request.amount_halalas
        )

    def _recorded_outcome(self, order: Order) -> ConfirmUnlockResponse:
        return ConfirmUnlockResponse(
            code=SUCCESS_CODE,
            msg="ok",
            data=ConfirmUnlockData(
                order=self._order_response(order),
                vendor=VendorOutcome(code=order.vendor_code or "", msg=order.vendor_msg or ""),
            ),
        )

    def _failure(self, code: str, msg: str, order: Order) -> ConfirmUnlockResponse:
        logger.warning(f"Confirm-and-unlock for payment {order.payment_id} failed: {code} {msg}")
        return ConfirmUnlockResponse(
            code=code,
            msg=msg,
            data=ConfirmUnlockData(order=self._order_response(order)),
        )

    def _order_response(self, order: Order) -> OrderResponse:
        response = OrderResponse.model_validate(order)
        payment = self.payment_repo.get_payment(order.payment_id)
        if payment is not None:
            response.payment = PaymentResponse.model_validate(payment)
        return response
