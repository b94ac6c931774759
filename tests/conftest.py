import os
from datetime import datetime, timezone
from typing import Generator
from unittest.mock import Mock

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from unlock_core.clients.external import ExternalClient, ProviderPayment, VendorResult
from unlock_core.core.status import map_provider_status
from unlock_core.db.models import Base


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: mark test as integration test")


def pytest_collection_modifyitems(config, items):
    if os.getenv("UNLOCK_CORE_BASE"):
        return
    skip_live = pytest.mark.skip(reason="UNLOCK_CORE_BASE not set, no live service")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_live)


def provider_payment(
    payment_id: str = "pay_123", amount: int = 300, status: str = "paid"
) -> ProviderPayment:
    raw = {
        "id": payment_id,
        "status": status,
        "amount": amount,
        "currency": "SAR",
        "source": {"type": "creditcard", "company": "visa"},
        "created_at": "2026-10-18T09:00:00.000Z",
    }
    return ProviderPayment(
        id=payment_id,
        status=map_provider_status(status),
        raw_status=status,
        amount=amount,
        currency="SAR",
        mode="creditcard",
        scheme="visa",
        created_at=datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc),
        raw=raw,
    )


def vendor_result(code: str = "00000", msg: str = "success") -> VendorResult:
    return VendorResult(code, msg)


@pytest.fixture
def make_payment():
    return provider_payment


@pytest.fixture
def make_vendor_result():
    return vendor_result


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(
        bind=db_engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True
    )


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def external_client():
    client = Mock(spec=ExternalClient)
    client.get_payment.return_value = provider_payment()
    client.unlock_cart.return_value = vendor_result()
    client.get_circuit_breaker_stats.return_value = {
        "provider": {"state": "closed", "fail_counter": 0, "fail_max": 5, "reset_timeout": 30},
        "vendor": {"state": "closed", "fail_counter": 0, "fail_max": 3, "reset_timeout": 60},
    }
    return client


@pytest.fixture
def unlock_app(session_factory, external_client):
    from unlock_core.api.dependencies import get_session
    from unlock_core.main import app

    def _session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_session] = _session
    app.state.external_client = external_client
    yield app
    app.dependency_overrides.clear()
    del app.state.external_client


@pytest.fixture
def unlock_client(unlock_app) -> TestClient:
    return TestClient(unlock_app)


@pytest.fixture
def confirm_body() -> dict:
    return {
        "paymentId": "pay_123",
        "deviceNo": "01007008",
        "cartNo": "C-17",
        "cartIndex": 2,
        "siteNo": "riyadh-park",
        "amountHalalas": 300,
    }


@pytest.fixture(scope="session")
def base_url() -> str:
    return os.getenv("UNLOCK_CORE_BASE", "http://localhost:8000")


@pytest.fixture
def api_client(base_url: str):
    class APIClient:
        def __init__(self, base_url: str):
            self.base_url = base_url.rstrip("/")
            self.session = requests.Session()
            self.session.headers.update({"Content-Type": "application/json"})

        def get(self, path: str, **kwargs):
            url = f"{self.base_url}/{path.lstrip('/')}"
            response = self.session.get(url, **kwargs)
            response.raise_for_status()
            return response.json()

        def post(self, path: str, json=None, **kwargs):
            url = f"{self.base_url}/{path.lstrip('/')}"
            return self.session.post(url, json=json, **kwargs)

    return APIClient(base_url)
