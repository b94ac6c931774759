from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.orm import Session

from unlock_core.api.dependencies import get_order_service, get_session, get_unlock_service
from unlock_core.core.exceptions import PaymentNotFoundException, payment_not_found_exception
from unlock_core.schemas import (
    ConfirmUnlockRequest,
    ConfirmUnlockResponse,
    PaymentEnvelope,
    PaymentListEnvelope,
)
from unlock_core.services.order import OrderService
from unlock_core.services.unlock import UnlockService

router = APIRouter()


@router.post("/payments/confirm-and-unlock", response_model=ConfirmUnlockResponse)
def confirm_and_unlock(
    request: ConfirmUnlockRequest,
    unlock_service: UnlockService = Depends(get_unlock_service),
    session: Session = Depends(get_session),
):
    try:
        return unlock_service.confirm_and_unlock(request)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error confirming payment {request.payment_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/payments", response_model=PaymentListEnvelope)
def list_payments(
    limit: int = Query(50, ge=1, le=500),
    status: Optional[str] = None,
    order_service: OrderService = Depends(get_order_service),
):
    return PaymentListEnvelope(data=order_service.list_payments(limit=limit, status=status))


@router.get("/payments/{payment_id}", response_model=PaymentEnvelope)
def get_payment(
    payment_id: str,
    order_service: OrderService = Depends(get_order_service),
):
    try:
        return PaymentEnvelope(data=order_service.get_payment(payment_id))
    except PaymentNotFoundException:
        raise payment_not_found_exception()
