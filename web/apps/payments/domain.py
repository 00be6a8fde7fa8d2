"""Domain models, ports, errors and service for book payments.

This module contains the dataclasses used as DTOs for gateway orders and
ledger rows, the protocol definitions (ports) for the payment gateway and
the payment ledger, the error taxonomy surfaced to the HTTP layer, and the
domain service that creates gateway orders and verifies completed payments.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Protocol

from .errors import (
    ConfigurationError,
    InvalidSignature,
    MissingFields,
    PersistenceError,
    VerificationError,
)
from .money import normalize_amount
from .receipts import generate_receipt, receipt_hint
from .signatures import compute_signature, signatures_match

logger = logging.getLogger("payments")


# ---- Enums ----
class PaymentStatus(str, Enum):
    """Lifecycle of a ledger row.

    ``created`` is the only legal initial state; ``paid`` and ``failed`` are
    set by the verification step.
    """

    CREATED = "created"
    PAID = "paid"
    FAILED = "failed"


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class GatewayConfig:
    """Process-wide gateway configuration.

    Built once from settings and injected into the service and the gateway
    adapter. ``key_secret`` is kept out of ``repr`` so the object can be
    logged safely.
    """

    key_id: str
    key_secret: str = field(repr=False)
    base_url: str = "https://api.razorpay.com"
    timeout: float = 10.0
    currency: str = "INR"
    receipt_max_length: int = 40

    @property
    def is_complete(self) -> bool:
        return bool(self.key_id) and bool(self.key_secret)


@dataclass(frozen=True)
class RemoteOrder:
    """Order as confirmed by the gateway.

    Attributes:
        id: Gateway-issued order id (``order_...``).
        amount: Amount in minor units, as accepted by the gateway.
        currency: Currency code echoed by the gateway.
        receipt: Receipt echoed by the gateway.
        status: Gateway-side order status when known (``created``,
            ``attempted``, ``paid``).
    """

    id: str
    amount: int
    currency: str
    receipt: str
    status: str | None = None


@dataclass
class PaymentRecord:
    """One ledger row tracking a gateway order's lifecycle."""

    order_id: str
    amount: int | None
    currency: str
    receipt: str | None = None
    book_id: str | None = None
    user_id: str | None = None
    payment_id: str | None = None
    status: PaymentStatus = PaymentStatus.CREATED
    created_at: datetime | None = None


@dataclass(frozen=True)
class CreatedOrder:
    """Result of ``PaymentService.create_order`` returned to the client.

    ``key_id`` is the gateway's public key identifier, never the secret.
    """

    order_id: str
    amount: int
    currency: str
    key_id: str


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    message: str = "Payment verified"


# ---- Ports (DIP) ----
class GatewayPort(Protocol):
    """Port describing the payment gateway operations used by the domain."""

    def create_remote_order(self, amount: int, currency: str, receipt: str) -> RemoteOrder:
        """Create an order on the gateway.

        Args:
            amount: Amount in minor units (e.g. paise).
            currency: Currency code, e.g. 'INR'.
            receipt: Short correlation id, at most 40 characters.

        Returns:
            The gateway-confirmed RemoteOrder.

        Raises:
            ConfigurationError: When credentials are missing.
            GatewayError: When the gateway rejects the call or is unreachable.
        """
        raise NotImplementedError()


class LedgerPort(Protocol):
    """Port describing the persistent payment ledger."""

    def record_created(self, record: PaymentRecord) -> None:
        raise NotImplementedError()

    def mark_failed(self, order_id: str, payment_id: str) -> bool:
        raise NotImplementedError()

    def mark_paid(
        self,
        order_id: str,
        payment_id: str,
        book_id: str | None = None,
        user_id: str | None = None,
        currency: str | None = None,
    ) -> PaymentRecord:
        raise NotImplementedError()

    def get(self, order_id: str) -> Optional[PaymentRecord]:
        raise NotImplementedError()


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


# ---- Domain service ----
class PaymentService:
    """Domain service that creates gateway orders and verifies payments.

    The service owns the ordering of side effects: nothing is written to
    the ledger before the gateway confirms an order, and once the gateway
    order exists a failing ledger write no longer fails the request. The
    verification upsert later compensates for such a missing row.
    """

    def __init__(self, config: GatewayConfig, gateway: GatewayPort, ledger: LedgerPort):
        """Initialize the service with required dependencies.

        Args:
            config: Immutable gateway configuration.
            gateway: GatewayPort used to create remote orders.
            ledger: LedgerPort used to persist payment records.
        """
        self.config = config
        self.gateway = gateway
        self.ledger = ledger

    def create_order(self, book_id: Any, user_id: Any, raw_amount: Any) -> CreatedOrder:
        """Create a gateway order for a book purchase.

        Args:
            book_id: Opaque reference to the book being bought.
            user_id: Opaque reference to the buyer.
            raw_amount: Price in major units (e.g. rupees) as sent by the client.

        Returns:
            CreatedOrder with the gateway order id, confirmed amount and
            currency, and the public key id for the hosted checkout.

        Raises:
            ConfigurationError: Gateway credentials are not configured.
            MissingFields: ``user_id`` or ``raw_amount`` is absent.
            InvalidAmount: The amount is not a positive finite number.
            GatewayError: The gateway rejected the order or was unreachable.
        """
        if not self.config.is_complete:
            logger.error(
                "gateway credentials missing",
                extra={"key_id_present": bool(self.config.key_id), "key_secret_present": bool(self.config.key_secret)},
            )
            raise ConfigurationError()

        if not _present(user_id):
            raise MissingFields("userId required")
        if raw_amount is None or (isinstance(raw_amount, str) and not raw_amount.strip()):
            raise MissingFields("amount required")

        amount = normalize_amount(raw_amount)
        receipt = generate_receipt(receipt_hint(user_id), max_length=self.config.receipt_max_length)

        remote = self.gateway.create_remote_order(amount, self.config.currency, receipt)
        logger.info(
            "gateway order created",
            extra={"order_id": remote.id, "amount": remote.amount, "currency": remote.currency},
        )

        # From here on the gateway order exists: ledger failures must not fail the request.
        record = PaymentRecord(
            order_id=remote.id,
            amount=remote.amount,
            currency=remote.currency,
            receipt=remote.receipt,
            book_id=str(book_id) if _present(book_id) else None,
            user_id=str(user_id),
            status=PaymentStatus.CREATED,
        )
        try:
            self.ledger.record_created(record)
        except PersistenceError:
            logger.exception("failed to persist payment record", extra={"order_id": remote.id})

        return CreatedOrder(
            order_id=remote.id,
            amount=remote.amount,
            currency=remote.currency,
            key_id=self.config.key_id,
        )

    def verify_payment(
        self,
        payment_id: Any,
        order_id: Any,
        signature: Any,
        book_id: Any = None,
        user_id: Any = None,
    ) -> VerificationResult:
        """Verify a checkout completion and finalize the ledger row.

        The expected signature is ``hex(HMAC-SHA256(secret, "order_id|payment_id"))``
        and is compared in constant time.

        On mismatch an existing ledger row is moved to ``failed`` unless it is
        already ``paid``; a missing row is tolerated. On match the row is
        upserted to ``paid``.

        Returns:
            VerificationResult(success=True) when the signature is valid.

        Raises:
            MissingFields: Any of the gateway identifiers or the signature is absent.
            ConfigurationError: The gateway secret is not configured.
            InvalidSignature: The signature does not match.
            VerificationError: The ledger could not be updated.
        """
        if not (_present(payment_id) and _present(order_id) and _present(signature)):
            raise MissingFields()
        if not self.config.key_secret:
            logger.error("gateway secret missing, refusing to verify", extra={"order_id": order_id})
            raise ConfigurationError()

        payment_id, order_id, signature = str(payment_id), str(order_id), str(signature)
        expected = compute_signature(self.config.key_secret, order_id, payment_id)

        if not signatures_match(expected, signature):
            logger.warning("payment signature mismatch", extra={"order_id": order_id, "payment_id": payment_id})
            try:
                updated = self.ledger.mark_failed(order_id, payment_id)
            except PersistenceError:
                logger.exception("failed to record failed payment", extra={"order_id": order_id})
            else:
                if not updated:
                    logger.info("no updatable ledger row for failed payment", extra={"order_id": order_id})
            raise InvalidSignature()

        try:
            record = self.ledger.mark_paid(
                order_id,
                payment_id,
                book_id=str(book_id) if _present(book_id) else None,
                user_id=str(user_id) if _present(user_id) else None,
                currency=self.config.currency,
            )
        except PersistenceError as e:
            logger.exception("failed to record paid payment", extra={"order_id": order_id})
            raise VerificationError() from e

        logger.info("payment verified", extra={"order_id": order_id, "payment_id": payment_id, "status": record.status.value})
        return VerificationResult(success=True)
