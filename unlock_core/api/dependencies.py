from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from unlock_core.clients.external import ExternalClient
from unlock_core.config.settings import Settings
from unlock_core.db.database import get_sessionmaker
from unlock_core.db.repositories.order import OrderRepository
from unlock_core.db.repositories.payment import PaymentRepository
from unlock_core.services.order import OrderService
from unlock_core.services.unlock import UnlockService


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def get_session(settings: Settings = Depends(get_settings)) -> Session:
    sessionmaker = get_sessionmaker(settings)
    session = sessionmaker()
    try:
        yield session
    finally:
        session.close()


def get_external_client(request: Request) -> ExternalClient:
    return request.app.state.external_client


def get_order_repository(session: Session = Depends(get_session)) -> OrderRepository:
    return OrderRepository(session)


def get_payment_repository(session: Session = Depends(get_session)) -> PaymentRepository:
    return PaymentRepository(session)


def get_order_service(
    order_repo: OrderRepository = Depends(get_order_repository),
    payment_repo: PaymentRepository = Depends(get_payment_repository),
) -> OrderService:
    return OrderService(order_repo, payment_repo)


def get_unlock_service(
    session: Session = Depends(get_session),
    order_repo: OrderRepository = Depends(get_order_repository),
    payment_repo: PaymentRepository = Depends(get_payment_repository),
    external_client: ExternalClient = Depends(get_external_client),
) -> UnlockService:
    return UnlockService(session, order_repo, payment_repo, external_client)
