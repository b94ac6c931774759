import pytest

from unlock_core.db.repositories import OrderRepository


@pytest.fixture
def unlocked_order(unlock_client, confirm_body) -> dict:
    body = unlock_client.post("/api/payments/confirm-and-unlock", json=confirm_body).json()
    return body["data"]["order"]


@pytest.fixture
def pending_order(unlock_client, confirm_body, external_client, make_payment) -> dict:
    external_client.get_payment.return_value = make_payment(status="initiated")
    body = unlock_client.post("/api/payments/confirm-and-unlock", json=confirm_body).json()
    assert body["code"] == "E_PAYMENT_NOT_PAID"
    return body["data"]["order"]


def test_get_order_with_payment(unlock_client, unlocked_order):
    response = unlock_client.get(f"/api/orders/{unlocked_order['id']}")

    assert response.status_code == 200
    order = response.json()["data"]
    assert order["status"] == "in_use"
    assert order["payment"]["status"] == "paid"


def test_get_unknown_order(unlock_client):
    assert unlock_client.get("/api/orders/does-not-exist").status_code == 404


def test_list_and_active_orders(unlock_client, unlocked_order):
    listing = unlock_client.get("/api/orders/list", params={"status": "in_use"}).json()
    assert [o["id"] for o in listing["data"]] == [unlocked_order["id"]]

    assert unlock_client.get("/api/orders/list", params={"q": "0100"}).json()["data"]
    assert unlock_client.get("/api/orders/list", params={"status": "returned"}).json()["data"] == []

    active = unlock_client.get("/api/orders/active").json()["data"]
    assert [o["id"] for o in active] == [unlocked_order["id"]]


def test_overdue_then_returned(unlock_client, unlocked_order):
    order_id = unlocked_order["id"]

    overdue = unlock_client.post(f"/api/orders/{order_id}/mark-overdue")
    assert overdue.status_code == 200
    assert overdue.json()["data"]["status"] == "overdue"

    returned = unlock_client.post(f"/api/orders/{order_id}/mark-returned")
    assert returned.status_code == 200
    assert returned.json()["data"]["status"] == "returned"
    assert returned.json()["data"]["returned_at"] is not None

    assert unlock_client.get("/api/orders/active").json()["data"] == []


def test_returned_order_rejects_further_transitions(unlock_client, unlocked_order):
    order_id = unlocked_order["id"]
    unlock_client.post(f"/api/orders/{order_id}/mark-returned")

    assert unlock_client.post(f"/api/orders/{order_id}/mark-returned").status_code == 409
    assert unlock_client.post(f"/api/orders/{order_id}/mark-overdue").status_code == 409
    assert unlock_client.post(f"/api/orders/{order_id}/cancel").status_code == 409


def test_cancel_pending_order_blocks_unlock(
    unlock_client, pending_order, confirm_body, external_client, make_payment
):
    response = unlock_client.post(f"/api/orders/{pending_order['id']}/cancel")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "canceled"

    external_client.get_payment.return_value = make_payment()
    body = unlock_client.post("/api/payments/confirm-and-unlock", json=confirm_body).json()

    assert body["code"] == "E_ORDER_CLOSED"
    external_client.unlock_cart.assert_not_called()


def test_in_use_order_cannot_be_canceled(unlock_client, unlocked_order):
    response = unlock_client.post(f"/api/orders/{unlocked_order['id']}/cancel")

    assert response.status_code == 409
    assert "in_use" in response.json()["detail"]


def test_transition_unknown_order(unlock_client):
    assert unlock_client.post("/api/orders/nope/mark-returned").status_code == 404


def test_operator_releases_stuck_unlock(
    unlock_client, confirm_body, external_client, session_factory
):
    with session_factory() as s:
        repo = OrderRepository(s)
        order, _ = repo.create_or_fetch(
            payment_id="pay_123", device_no="01007008", cart_index=2, amount_halalas=300
        )
        repo.claim_unlock(order.id)
        s.commit()
        order_id = order.id

    stuck = unlock_client.post("/api/payments/confirm-and-unlock", json=confirm_body).json()
    assert stuck["code"] == "E_UNLOCK_IN_PROGRESS"

    released = unlock_client.post(f"/api/orders/{order_id}/mark-unlock-failed")
    assert released.status_code == 200
    assert released.json()["data"]["status"] == "unlock_failed"
    assert released.json()["data"]["vendor_code"] == "E_UNLOCK_RESET"

    body = unlock_client.post("/api/payments/confirm-and-unlock", json=confirm_body).json()
    assert body["data"]["order"]["status"] == "in_use"
    external_client.unlock_cart.assert_called_once()


def test_unlocked_order_cannot_be_released(unlock_client, unlocked_order):
    response = unlock_client.post(f"/api/orders/{unlocked_order['id']}/mark-unlock-failed")

    assert response.status_code == 409
