"""Tests for the gateway sandbox service.

The sandbox is exercised through FastAPI's TestClient against a throwaway
SQLite database, covering the gateway contract the payments app consumes.
"""

import hashlib
import hmac

import pytest
from fastapi.testclient import TestClient

from services.gateway_sandbox import main, repo

AUTH = ("rzp_test_sandbox", "sandbox_secret")


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SANDBOX_KEY_ID", AUTH[0])
    monkeypatch.setenv("SANDBOX_KEY_SECRET", AUTH[1])
    monkeypatch.setattr(repo, "engine", repo.make_engine(f"sqlite:///{tmp_path / 'sandbox.db'}"))
    repo.init_db()
    return TestClient(main.app)


def create(client, amount=19900, receipt="u1_x_y"):
    return client.post("/v1/orders", json={"amount": amount, "currency": "INR", "receipt": receipt, "payment_capture": 1}, auth=AUTH)


def test_create_order_echoes_contract_fields(client):
    r = create(client)
    assert r.status_code == 200
    body = r.json()
    assert body["id"].startswith("order_")
    assert (body["amount"], body["currency"], body["receipt"], body["status"]) == (19900, "INR", "u1_x_y", "created")


def test_create_order_requires_credentials(client):
    r = client.post("/v1/orders", json={"amount": 19900, "currency": "INR"}, auth=("rzp_test_sandbox", "wrong"))
    assert r.status_code == 401
    assert r.json()["error"]["description"] == "Authentication failed"

    r = client.post("/v1/orders", json={"amount": 19900, "currency": "INR"})
    assert r.status_code == 401


def test_create_order_rejects_small_amount(client):
    r = create(client, amount=50)
    assert r.status_code == 400
    assert r.json()["error"] == {"code": "BAD_REQUEST_ERROR", "description": "Order amount less than minimum amount allowed"}


def test_create_order_rejects_long_receipt(client):
    r = create(client, receipt="r" * 41)
    assert r.status_code == 400
    assert r.json()["error"]["description"].startswith("receipt")


def test_checkout_success_is_signed_and_marks_order_paid(client):
    order_id = create(client).json()["id"]

    r = client.post(f"/v1/checkout/{order_id}/complete", json={"outcome": "success"})
    assert r.status_code == 200
    body = r.json()
    payment_id = body["razorpay_payment_id"]
    assert body["razorpay_order_id"] == order_id
    expected = hmac.new(AUTH[1].encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()
    assert body["razorpay_signature"] == expected

    assert client.get(f"/v1/orders/{order_id}", auth=AUTH).json()["status"] == "paid"
    payments = client.get(f"/v1/orders/{order_id}/payments", auth=AUTH).json()
    assert payments["count"] == 1
    assert payments["items"][0] == {**payments["items"][0], "id": payment_id, "status": "captured"}


def test_checkout_failure_then_success(client):
    order_id = create(client).json()["id"]

    r = client.post(f"/v1/checkout/{order_id}/complete", json={"outcome": "failure"})
    assert r.status_code == 400
    assert r.json()["error"]["metadata"]["order_id"] == order_id
    assert client.get(f"/v1/orders/{order_id}", auth=AUTH).json()["status"] == "attempted"

    assert client.post(f"/v1/checkout/{order_id}/complete").status_code == 200
    order = client.get(f"/v1/orders/{order_id}", auth=AUTH).json()
    assert (order["status"], order["attempts"]) == ("paid", 2)


def test_paid_order_accepts_no_more_attempts(client):
    order_id = create(client).json()["id"]
    client.post(f"/v1/checkout/{order_id}/complete")
    r = client.post(f"/v1/checkout/{order_id}/complete")
    assert r.status_code == 400


def test_unknown_order(client):
    r = client.get("/v1/orders/order_missing", auth=AUTH)
    assert r.status_code == 400
    assert r.json()["error"]["description"] == "The id provided does not exist"
