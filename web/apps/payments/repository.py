"""Repository layer for the payment ledger.

This module persists ``PaymentRecord`` domain objects with the Django ORM
and keeps the domain decoupled from ORM types. Database failures are
converted into ``PersistenceError`` so the domain service can decide which
of them are fatal.

Per-order exclusivity is delegated to the database: the unique index on
``order_id``, conditional ``UPDATE`` statements and row locks taken inside
``transaction.atomic``.
"""

from datetime import datetime
from typing import List, Optional

from django.db import DatabaseError, IntegrityError, transaction

from .domain import PaymentRecord, PaymentStatus
from .errors import PersistenceError
from .models import PaymentRecordModel


def _to_domain(obj: PaymentRecordModel) -> PaymentRecord:
    return PaymentRecord(
        order_id=obj.order_id,
        amount=obj.amount,
        currency=obj.currency,
        receipt=obj.receipt,
        book_id=obj.book_id,
        user_id=obj.user_id,
        payment_id=obj.payment_id,
        status=PaymentStatus(obj.status),
        created_at=obj.created_at,
    )


class PaymentLedger:
    """Ledger of gateway orders backed by ``PaymentRecordModel``."""

    def record_created(self, record: PaymentRecord) -> None:
        """Insert a new ``created`` row.

        Args:
            record: Domain record built from the gateway-confirmed order.

        Raises:
            PersistenceError: When the row cannot be written (including a
                duplicate ``order_id``).
        """
        try:
            # Savepoint: a failed insert must not poison an enclosing transaction.
            with transaction.atomic():
                PaymentRecordModel.objects.create(
                    order_id=record.order_id,
                    amount=record.amount,
                    currency=record.currency,
                    receipt=record.receipt,
                    book_id=record.book_id,
                    user_id=record.user_id,
                    status=PaymentStatus.CREATED.value,
                )
        except DatabaseError as e:
            raise PersistenceError() from e

    def mark_failed(self, order_id: str, payment_id: str) -> bool:
        """Move an existing, not yet paid row to ``failed``.

        A ``paid`` row is never downgraded. The update is a single
        conditional statement, so a concurrent ``mark_paid`` either wins
        before it (and the row is left alone) or after it.

        Returns:
            bool: True when a row was updated, False when no such row exists
            or it is already paid.

        Raises:
            PersistenceError: On database failure.
        """
        try:
            updated = (
                PaymentRecordModel.objects.filter(order_id=order_id)
                .exclude(status=PaymentStatus.PAID.value)
                .update(status=PaymentStatus.FAILED.value, payment_id=payment_id)
            )
        except DatabaseError as e:
            raise PersistenceError() from e
        return updated > 0

    @transaction.atomic
    def _upsert_paid(self, order_id, payment_id, book_id, user_id, currency) -> PaymentRecordModel:
        try:
            # Nested savepoint: an IntegrityError only rolls back this block.
            with transaction.atomic():
                return PaymentRecordModel.objects.create(
                    order_id=order_id,
                    payment_id=payment_id,
                    book_id=book_id,
                    user_id=user_id,
                    currency=currency,
                    status=PaymentStatus.PAID.value,
                )
        except IntegrityError:
            obj = PaymentRecordModel.objects.select_for_update().get(order_id=order_id)
            obj.status = PaymentStatus.PAID.value
            obj.payment_id = payment_id
            update_fields = ["status", "payment_id", "updated_at"]
            if obj.book_id is None and book_id:
                obj.book_id = book_id
                update_fields.append("book_id")
            if obj.user_id is None and user_id:
                obj.user_id = user_id
                update_fields.append("user_id")
            obj.save(update_fields=update_fields)
            return obj

    def mark_paid(
        self,
        order_id: str,
        payment_id: str,
        book_id: str | None = None,
        user_id: str | None = None,
        currency: str | None = None,
    ) -> PaymentRecord:
        """Upsert the row for ``order_id`` to ``paid``.

        A missing row is created, which compensates for a ``created`` row
        that could not be written when the order was placed. Such rows have
        no amount or receipt.

        Returns:
            PaymentRecord: The stored record.

        Raises:
            PersistenceError: On database failure.
        """
        try:
            obj = self._upsert_paid(order_id, payment_id, book_id, user_id, currency or "INR")
        except DatabaseError as e:
            raise PersistenceError() from e
        return _to_domain(obj)

    def get(self, order_id: str) -> Optional[PaymentRecord]:
        obj = PaymentRecordModel.objects.filter(order_id=order_id).first()
        return _to_domain(obj) if obj else None

    def stale_created(self, older_than: datetime, limit: int = 50) -> List[PaymentRecord]:
        """Return ``created`` rows last touched before ``older_than``, oldest first."""
        qs = (
            PaymentRecordModel.objects.filter(status=PaymentStatus.CREATED.value, updated_at__lt=older_than)
            .order_by("updated_at")[:limit]
        )
        return [_to_domain(o) for o in qs]
