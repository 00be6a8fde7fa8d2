import pytest

from apps.payments import adapters
from apps.payments.errors import GatewayError
from apps.payments.models import IdempotencyKey, PaymentRecordModel

CREATE_URL = "/create-order"
PAYLOAD = {"bookId": "b1", "userId": "u1", "amount": 199}


def post(client, payload, key):
    return client.post(CREATE_URL, data=payload, content_type="application/json", HTTP_IDEMPOTENCY_KEY=key)


@pytest.mark.django_db
def test_retry_with_same_key_replays_without_second_gateway_order(client, monkeypatch):
    calls = {"n": 0}
    original = adapters.GatewayStub.create_remote_order

    def counting(self, amount, currency, receipt):
        calls["n"] += 1
        return original(self, amount, currency, receipt)

    monkeypatch.setattr(adapters.GatewayStub, "create_remote_order", counting)

    r1 = post(client, PAYLOAD, "idem-same-1")
    assert r1.status_code == 201

    r2 = post(client, PAYLOAD, "idem-same-1")
    assert r2.status_code == 201
    assert r2.json() == r1.json()
    assert r2.headers.get("Idempotent-Replay") == "true"

    assert calls["n"] == 1
    assert PaymentRecordModel.objects.count() == 1
    assert IdempotencyKey.objects.get(key="idem-same-1").order_id == r1.json()["id"]


@pytest.mark.django_db
def test_same_key_different_payload_conflicts(client):
    assert post(client, PAYLOAD, "idem-conflict-1").status_code == 201

    r2 = post(client, {**PAYLOAD, "amount": 299}, "idem-conflict-1")
    assert r2.status_code == 409
    assert r2.json() == {"error": "IDEMPOTENCY_CONFLICT"}


@pytest.mark.django_db
def test_client_error_is_replayed(client):
    bad = {"bookId": "b1", "userId": "u1", "amount": "abc"}
    r1 = post(client, bad, "idem-400")
    assert r1.status_code == 400

    r2 = post(client, bad, "idem-400")
    assert r2.status_code == 400
    assert r2.json() == r1.json()
    assert r2.headers.get("Idempotent-Replay") == "true"


@pytest.mark.django_db
def test_server_error_releases_key_for_retry(client, monkeypatch):
    def unavailable(self, amount, currency, receipt):
        raise GatewayError("Payment gateway temporarily unavailable", status_code=503)

    with monkeypatch.context() as m:
        m.setattr(adapters.GatewayStub, "create_remote_order", unavailable)
        r1 = post(client, PAYLOAD, "idem-503")
    assert r1.status_code == 503
    assert not IdempotencyKey.objects.filter(key="idem-503").exists()

    r2 = post(client, PAYLOAD, "idem-503")
    assert r2.status_code == 201
    assert r2.headers.get("Idempotent-Replay") is None


@pytest.mark.django_db
def test_in_flight_key_is_reported(client):
    from apps.payments.idempotency import _hash

    IdempotencyKey.objects.create(key="idem-busy", request_hash=_hash(PAYLOAD), response_status=0, response_body={})
    r = post(client, PAYLOAD, "idem-busy")
    assert r.status_code == 409
    assert r.json() == {"error": "IDEMPOTENCY_IN_PROGRESS"}


@pytest.mark.django_db
def test_overlong_key_is_rejected_before_any_work(client, monkeypatch):
    def unexpected(self, amount, currency, receipt):
        raise AssertionError("gateway must not be called")

    monkeypatch.setattr(adapters.GatewayStub, "create_remote_order", unexpected)

    r = post(client, PAYLOAD, "k" * 201)
    assert r.status_code == 400
    assert r.json() == {"error": "Idempotency-Key too long"}
    assert not IdempotencyKey.objects.exists()
    assert not PaymentRecordModel.objects.exists()


@pytest.mark.django_db
def test_key_at_length_limit_is_accepted(client):
    key = "k" * 200
    assert post(client, PAYLOAD, key).status_code == 201
    assert IdempotencyKey.objects.filter(key=key).exists()
