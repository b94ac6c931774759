from unittest.mock import Mock

import pybreaker
import pytest
import requests

from unlock_core.clients.external import ExternalClient
from unlock_core.config.settings import Settings
from unlock_core.core.exceptions import ProviderUnavailableException
from unlock_core.core.status import PaymentStatus


def _response(status_code: int = 200, payload=None) -> Mock:
    response = Mock()
    response.status_code = status_code
    response.content = b"{}" if payload is not None else b""
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def settings() -> Settings:
    return Settings(
        provider_base="https://provider.test/v1",
        provider_secret_key="sk_test",
        vendor_base="http://vendor.test",
        cb_vendor_fail_max=2,
    )


@pytest.fixture
def client(settings) -> ExternalClient:
    return ExternalClient(settings)


def test_get_payment_maps_provider_payload(client):
    client._session.get = Mock(
        return_value=_response(
            payload={
                "id": "pay_123",
                "status": "paid",
                "amount": 300,
                "currency": "SAR",
                "source": {"type": "creditcard", "company": "mada"},
                "created_at": "2026-10-18T09:00:00.000Z",
            }
        )
    )

    payment = client.get_payment("pay_123")

    assert payment.status == PaymentStatus.PAID
    assert payment.is_paid
    assert payment.amount == 300
    assert payment.mode == "creditcard"
    assert payment.scheme == "mada"
    assert '"pay_123"' in payment.metadata_json()

    args, kwargs = client._session.get.call_args
    assert args[0] == "https://provider.test/v1/payments/pay_123"
    assert kwargs["auth"] == ("sk_test", "")


def test_get_payment_unknown_id(client):
    client._session.get = Mock(return_value=_response(404))

    assert client.get_payment("pay_missing") is None


def test_get_payment_provider_down(client):
    client._session.get = Mock(side_effect=requests.ConnectionError("refused"))

    with pytest.raises(ProviderUnavailableException):
        client.get_payment("pay_123")


def test_unlock_success(client):
    client._unlock_session.post = Mock(return_value=_response(payload={"code": "00000", "msg": "ok"}))

    result = client.unlock_cart("01007008", 2, cart_no="C-17")

    assert result.success
    args, kwargs = client._unlock_session.post.call_args
    assert args[0] == "http://vendor.test/handcart/unlock"
    assert kwargs["json"] == {"deviceNo": "01007008", "cartIndex": 2, "cartNo": "C-17"}


def test_unlock_vendor_rejection(client):
    client._unlock_session.post = Mock(
        return_value=_response(payload={"code": "E_SLOT_EMPTY", "msg": "no cart in slot"})
    )

    result = client.unlock_cart("01007008", 2)

    assert not result.success
    assert result.code == "E_SLOT_EMPTY"
    assert result.msg == "no cart in slot"


def test_unlock_timeout_is_not_retried(client):
    client._unlock_session.post = Mock(side_effect=requests.Timeout("read timed out"))

    result = client.unlock_cart("01007008", 2)

    assert result.code == "E_LOCK_TIMEOUT"
    assert result.msg == "timeout"
    assert client._unlock_session.post.call_count == 1


def test_unlock_breaker_opens_after_failures(client):
    client._unlock_session.post = Mock(side_effect=requests.ConnectionError("refused"))

    for _ in range(2):
        assert client.unlock_cart("01007008", 2).code == "E_VENDOR_UNAVAILABLE"

    result = client.unlock_cart("01007008", 2)

    assert result.code == "E_VENDOR_UNAVAILABLE"
    assert result.msg == "vendor unavailable"
    assert client._unlock_session.post.call_count == 2
    assert client.get_circuit_breaker_stats()["vendor"]["state"] == pybreaker.STATE_OPEN


def test_unlock_session_never_retries(client):
    adapter = client._unlock_session.get_adapter("http://vendor.test")
    assert adapter.max_retries.total == 0

    lookup_adapter = client._session.get_adapter("https://provider.test")
    assert lookup_adapter.max_retries.allowed_methods == frozenset({"GET"})


def test_timeout_that_trips_breaker_still_reports_timeout(client):
    client._unlock_session.post = Mock(side_effect=requests.Timeout("read timed out"))

    first = client.unlock_cart("01007008", 2)
    second = client.unlock_cart("01007008", 2)

    assert (first.code, first.msg) == ("E_LOCK_TIMEOUT", "timeout")
    assert (second.code, second.msg) == ("E_LOCK_TIMEOUT", "timeout")
    assert client.get_circuit_breaker_stats()["vendor"]["state"] == pybreaker.STATE_OPEN

    refused = client.unlock_cart("01007008", 2)
    assert (refused.code, refused.msg) == ("E_VENDOR_UNAVAILABLE", "vendor unavailable")
    assert client._unlock_session.post.call_count == 2


@pytest.mark.parametrize("payload", ["ok", [], 0])
def test_unlock_non_object_reply_is_vendor_failure(client, payload):
    client._unlock_session.post = Mock(return_value=_response(payload=payload))

    result = client.unlock_cart("01007008", 2)

    assert not result.success
    assert result.code == "E_VENDOR_UNAVAILABLE"
    assert result.msg == "invalid vendor response"


def test_get_payment_defaults_currency(client):
    client._session.get = Mock(
        return_value=_response(payload={"id": "pay_123", "status": "paid", "amount": 300})
    )

    assert client.get_payment("pay_123").currency == "SAR"
