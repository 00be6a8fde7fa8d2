"""In-process stub adapters for the payments domain ports.

These stubs implement ``GatewayPort`` and ``LedgerPort`` without any
network or database access. They are intended for unit tests and local
development where deterministic behavior is useful and the real gateway
is not reachable.
"""

import secrets
from dataclasses import replace
from typing import Dict, Optional

from .domain import GatewayConfig, GatewayPort, LedgerPort, PaymentRecord, PaymentStatus, RemoteOrder
from .errors import ConfigurationError, GatewayError, PersistenceError


class GatewayStub(GatewayPort):
    """Stub implementation of ``GatewayPort``.

    Accepts any order of at least 100 minor units (the smallest amount the
    real gateway accepts) and echoes it back with a random ``order_`` id.
    Smaller amounts are rejected the way the gateway rejects them.
    """

    MIN_AMOUNT = 100

    def __init__(self, config: GatewayConfig | None = None):
        self.config = config
        self.calls = 0

    def create_remote_order(self, amount: int, currency: str, receipt: str) -> RemoteOrder:
        """Create a fake gateway order.

        Args:
            amount: Amount in minor units.
            currency: Currency code.
            receipt: Receipt to echo back.

        Returns:
            RemoteOrder: The echoed order with a generated ``order_`` id.

        Raises:
            ConfigurationError: When a config without credentials was given.
            GatewayError: With status 400 when ``amount`` is below the minimum.
        """
        if self.config is not None and not self.config.is_complete:
            raise ConfigurationError()
        self.calls += 1
        if amount < self.MIN_AMOUNT:
            raise GatewayError("Order amount less than minimum amount allowed", status_code=400)
        return RemoteOrder(
            id=f"order_{secrets.token_hex(7)}",
            amount=amount,
            currency=currency,
            receipt=receipt,
            status="created",
        )


class InMemoryLedger(LedgerPort):
    """Dict-backed ledger with the same transition rules as ``PaymentLedger``."""

    def __init__(self):
        self.rows: Dict[str, PaymentRecord] = {}

    def record_created(self, record: PaymentRecord) -> None:
        if record.order_id in self.rows:
            raise PersistenceError()
        self.rows[record.order_id] = replace(record, status=PaymentStatus.CREATED)

    def mark_failed(self, order_id: str, payment_id: str) -> bool:
        row = self.rows.get(order_id)
        if row is None or row.status == PaymentStatus.PAID:
            return False
        row.status = PaymentStatus.FAILED
        row.payment_id = payment_id
        return True

    def mark_paid(self, order_id, payment_id, book_id=None, user_id=None, currency=None) -> PaymentRecord:
        row = self.rows.get(order_id)
        if row is None:
            row = PaymentRecord(
                order_id=order_id,
                amount=None,
                currency=currency or "INR",
                book_id=book_id,
                user_id=user_id,
            )
            self.rows[order_id] = row
        if row.book_id is None and book_id:
            row.book_id = book_id
        if row.user_id is None and user_id:
            row.user_id = user_id
        row.status = PaymentStatus.PAID
        row.payment_id = payment_id
        return row

    def get(self, order_id: str) -> Optional[PaymentRecord]:
        return self.rows.get(order_id)
