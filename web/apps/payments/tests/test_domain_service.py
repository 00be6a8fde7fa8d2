"""Unit tests for the PaymentService domain orchestration.

These tests drive order creation and payment verification with stubbed
ports: the in-memory ledger and small gateway stubs defined here. No
database or network is involved.
"""

import hashlib
import hmac

import pytest

from apps.payments.adapters import GatewayStub, InMemoryLedger
from apps.payments.domain import GatewayConfig, PaymentRecord, PaymentService, PaymentStatus, RemoteOrder
from apps.payments.errors import (
    ConfigurationError,
    GatewayError,
    InvalidAmount,
    InvalidSignature,
    MissingFields,
    PersistenceError,
    VerificationError,
)

CONFIG = GatewayConfig(key_id="rzp_test_key", key_secret="s3cret")


def sign(order_id, payment_id, secret="s3cret"):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


class RecordingGateway:
    """Gateway stub that confirms a fixed order id and records its calls."""

    def __init__(self, order_id="order_abc", amount=None):
        self.order_id = order_id
        self.amount = amount
        self.calls = []

    def create_remote_order(self, amount, currency, receipt):
        self.calls.append((amount, currency, receipt))
        return RemoteOrder(id=self.order_id, amount=self.amount or amount, currency=currency, receipt=receipt)


class FailingGateway:
    def create_remote_order(self, amount, currency, receipt):
        raise GatewayError("The api key provided is invalid", status_code=401)


class BrokenLedger(InMemoryLedger):
    """Ledger whose writes always fail."""

    def record_created(self, record):
        raise PersistenceError()

    def mark_failed(self, order_id, payment_id):
        raise PersistenceError()

    def mark_paid(self, *args, **kwargs):
        raise PersistenceError()


def test_create_order_ok():
    """Happy path: amount normalized, gateway called once, ledger row created."""
    gateway, ledger = RecordingGateway(), InMemoryLedger()
    out = PaymentService(CONFIG, gateway, ledger).create_order("b1", "u1", 199)

    assert out.order_id == "order_abc"
    assert out.amount == 19900
    assert out.currency == "INR"
    assert out.key_id == "rzp_test_key"

    amount, currency, receipt = gateway.calls[0]
    assert (amount, currency) == (19900, "INR")
    assert receipt.startswith("u1_") and len(receipt) <= 40

    row = ledger.get("order_abc")
    assert row.status == PaymentStatus.CREATED
    assert row.amount == 19900
    assert row.receipt == receipt
    assert (row.book_id, row.user_id) == ("b1", "u1")


def test_create_order_persists_gateway_confirmed_amount():
    gateway, ledger = RecordingGateway(amount=20000), InMemoryLedger()
    out = PaymentService(CONFIG, gateway, ledger).create_order("b1", "u1", 199)
    assert out.amount == 20000
    assert ledger.get("order_abc").amount == 20000


@pytest.mark.parametrize("config", [GatewayConfig("", "s3cret"), GatewayConfig("rzp_test_key", "")])
def test_create_order_without_credentials_fails_before_gateway(config):
    gateway = RecordingGateway()
    with pytest.raises(ConfigurationError):
        PaymentService(config, gateway, InMemoryLedger()).create_order("b1", "u1", 199)
    assert gateway.calls == []


@pytest.mark.parametrize("user_id, amount, message", [(None, 199, "userId required"), ("", 199, "userId required"), ("u1", None, "amount required")])
def test_create_order_missing_fields(user_id, amount, message):
    gateway = RecordingGateway()
    with pytest.raises(MissingFields) as e:
        PaymentService(CONFIG, gateway, InMemoryLedger()).create_order("b1", user_id, amount)
    assert e.value.message == message
    assert gateway.calls == []


def test_create_order_invalid_amount():
    gateway = RecordingGateway()
    with pytest.raises(InvalidAmount):
        PaymentService(CONFIG, gateway, InMemoryLedger()).create_order("b1", "u1", "-10")
    assert gateway.calls == []


def test_create_order_gateway_failure_writes_no_row():
    ledger = InMemoryLedger()
    with pytest.raises(GatewayError) as e:
        PaymentService(CONFIG, FailingGateway(), ledger).create_order("b1", "u1", 199)
    assert e.value.status_code == 401
    assert e.value.message == "The api key provided is invalid"
    assert ledger.rows == {}


def test_create_order_survives_ledger_failure():
    """The gateway order exists, so a failed ledger write must not fail the call."""
    out = PaymentService(CONFIG, RecordingGateway(), BrokenLedger()).create_order("b1", "u1", 199)
    assert out.order_id == "order_abc"


def test_create_order_with_gateway_stub_rejects_tiny_amounts():
    with pytest.raises(GatewayError) as e:
        PaymentService(CONFIG, GatewayStub(CONFIG), InMemoryLedger()).create_order("b1", "u1", "0.5")
    assert e.value.status_code == 400


def _seeded_ledger(status=PaymentStatus.CREATED):
    ledger = InMemoryLedger()
    ledger.rows["order_abc"] = PaymentRecord(order_id="order_abc", amount=19900, currency="INR", status=status)
    return ledger


def test_verify_valid_signature_marks_paid():
    ledger = _seeded_ledger()
    result = PaymentService(CONFIG, RecordingGateway(), ledger).verify_payment(
        "pay_xyz", "order_abc", sign("order_abc", "pay_xyz"), "b1", "u1"
    )
    assert result.success is True
    row = ledger.get("order_abc")
    assert row.status == PaymentStatus.PAID
    assert row.payment_id == "pay_xyz"


def test_in_memory_mark_paid_fills_blank_references_only():
    ledger = _seeded_ledger()
    row = ledger.mark_paid("order_abc", "pay_xyz", book_id="b1", user_id="u1")
    assert (row.book_id, row.user_id) == ("b1", "u1")

    row = ledger.mark_paid("order_abc", "pay_xyz", book_id="b2", user_id="u2")
    assert (row.book_id, row.user_id) == ("b1", "u1")


def test_verify_valid_signature_creates_missing_row():
    ledger = InMemoryLedger()
    PaymentService(CONFIG, RecordingGateway(), ledger).verify_payment(
        "pay_xyz", "order_abc", sign("order_abc", "pay_xyz"), "b1", "u1"
    )
    row = ledger.get("order_abc")
    assert row.status == PaymentStatus.PAID
    assert row.amount is None
    assert row.user_id == "u1"


def test_verify_invalid_signature_marks_failed():
    ledger = _seeded_ledger()
    with pytest.raises(InvalidSignature):
        PaymentService(CONFIG, RecordingGateway(), ledger).verify_payment("pay_xyz", "order_abc", "tampered")
    row = ledger.get("order_abc")
    assert row.status == PaymentStatus.FAILED
    assert row.payment_id == "pay_xyz"


def test_verify_signature_with_other_secret_is_invalid():
    ledger = _seeded_ledger()
    with pytest.raises(InvalidSignature):
        PaymentService(CONFIG, RecordingGateway(), ledger).verify_payment(
            "pay_xyz", "order_abc", sign("order_abc", "pay_xyz", secret="other")
        )


def test_verify_invalid_signature_without_row_is_tolerated():
    ledger = InMemoryLedger()
    with pytest.raises(InvalidSignature):
        PaymentService(CONFIG, RecordingGateway(), ledger).verify_payment("pay_xyz", "order_abc", "tampered")
    assert ledger.rows == {}


def test_verify_invalid_signature_never_downgrades_paid_row():
    ledger = _seeded_ledger(PaymentStatus.PAID)
    ledger.rows["order_abc"].payment_id = "pay_xyz"
    with pytest.raises(InvalidSignature):
        PaymentService(CONFIG, RecordingGateway(), ledger).verify_payment("pay_replay", "order_abc", "tampered")
    row = ledger.get("order_abc")
    assert row.status == PaymentStatus.PAID
    assert row.payment_id == "pay_xyz"


def test_verify_invalid_signature_with_broken_ledger_still_reports_invalid():
    with pytest.raises(InvalidSignature):
        PaymentService(CONFIG, RecordingGateway(), BrokenLedger()).verify_payment("pay_xyz", "order_abc", "tampered")


def test_verify_valid_signature_with_broken_ledger_raises_verification_error():
    with pytest.raises(VerificationError):
        PaymentService(CONFIG, RecordingGateway(), BrokenLedger()).verify_payment(
            "pay_xyz", "order_abc", sign("order_abc", "pay_xyz")
        )


@pytest.mark.parametrize(
    "payment_id, order_id, signature",
    [(None, "order_abc", "sig"), ("pay_xyz", "", "sig"), ("pay_xyz", "order_abc", None)],
)
def test_verify_missing_fields(payment_id, order_id, signature):
    with pytest.raises(MissingFields):
        PaymentService(CONFIG, RecordingGateway(), InMemoryLedger()).verify_payment(payment_id, order_id, signature)


def test_verify_without_secret_refuses():
    config = GatewayConfig(key_id="rzp_test_key", key_secret="")
    forged = sign("order_abc", "pay_xyz", secret="")
    with pytest.raises(ConfigurationError):
        PaymentService(config, RecordingGateway(), _seeded_ledger()).verify_payment("pay_xyz", "order_abc", forged)


def test_gateway_config_repr_hides_secret():
    assert "s3cret" not in repr(CONFIG)
