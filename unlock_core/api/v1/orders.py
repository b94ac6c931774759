from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from unlock_core.api.dependencies import get_order_service, get_session, get_settings
from unlock_core.config.settings import Settings
from unlock_core.core.exceptions import (
    InvalidTransitionException,
    OrderNotFoundException,
    invalid_transition_exception,
    order_not_found_exception,
)
from unlock_core.schemas import OrderEnvelope, OrderListEnvelope
from unlock_core.services.order import OrderService

router = APIRouter()


@router.get("/orders/list", response_model=OrderListEnvelope)
def list_orders(
    status: Optional[str] = None,
    q: Optional[str] = None,
    limit: int = Query(50, ge=1),
    order_service: OrderService = Depends(get_order_service),
    settings: Settings = Depends(get_settings),
):
    limit = min(limit, settings.orders_page_limit)
    return OrderListEnvelope(data=order_service.list_orders(status=status, q=q, limit=limit))


@router.get("/orders/active", response_model=OrderListEnvelope)
def list_active_orders(order_service: OrderService = Depends(get_order_service)):
    return OrderListEnvelope(data=order_service.list_active_orders())


@router.get("/orders/{order_id}", response_model=OrderEnvelope)
def get_order(
    order_id: str,
    order_service: OrderService = Depends(get_order_service),
):
    try:
        return OrderEnvelope(data=order_service.get_order(order_id))
    except OrderNotFoundException:
        raise order_not_found_exception()


def _transition(action, order_id: str, session: Session) -> OrderEnvelope:
    try:
        response = action(order_id)
        session.commit()
        return OrderEnvelope(data=response)
    except OrderNotFoundException:
        session.rollback()
        raise order_not_found_exception()
    except InvalidTransitionException as e:
        session.rollback()
        raise invalid_transition_exception(e)
    except Exception as e:
        session.rollback()
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/orders/{order_id}/mark-returned", response_model=OrderEnvelope)
def mark_returned(
    order_id: str,
    order_service: OrderService = Depends(get_order_service),
    session: Session = Depends(get_session),
):
    return _transition(order_service.mark_returned, order_id, session)


@router.post("/orders/{order_id}/cancel", response_model=OrderEnvelope)
def cancel_order(
    order_id: str,
    order_service: OrderService = Depends(get_order_service),
    session: Session = Depends(get_session),
):
    return _transition(order_service.cancel, order_id, session)


@router.post("/orders/{order_id}/mark-overdue", response_model=OrderEnvelope)
def mark_overdue(
    order_id: str,
    order_service: OrderService = Depends(get_order_service),
    session: Session = Depends(get_session),
):
    return _transition(order_service.mark_overdue, order_id, session)


@router.post("/orders/{order_id}/mark-unlock-failed", response_model=OrderEnvelope)
def mark_unlock_failed(
    order_id: str,
    order_service: OrderService = Depends(get_order_service),
    session: Session = Depends(get_session),
):
    return _transition(order_service.mark_unlock_failed, order_id, session)
