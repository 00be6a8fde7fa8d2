"""SQLAlchemy repository for the gateway sandbox.

The sandbox keeps just enough gateway-side state to behave like the real
processor during local development: orders created by the marketplace and
the payment attempts made against them through the simulated checkout.

Database connection parameters are read from the ``DATABASE_URL``
environment variable, defaulting to a local SQLite file.
"""

import os
import secrets
import string
import time
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy import BigInteger, ForeignKey, Integer, String, create_engine, select
from sqlalchemy.orm import DeclarativeBase, Session, mapped_column

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./gateway_sandbox.db")

_ALPHABET = string.ascii_letters + string.digits


def make_engine(url: str):
    kwargs = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    return create_engine(url, **kwargs)


engine = make_engine(DATABASE_URL)


class Base(DeclarativeBase):
    pass


def _new_id(prefix: str) -> str:
    return prefix + "".join(secrets.choice(_ALPHABET) for _ in range(14))


class Order(Base):
    """Gateway-side order.

    Attributes:
        id: Public id, ``order_`` followed by 14 alphanumerics.
        amount: Amount in minor units.
        currency: Three-letter currency code.
        receipt: Merchant receipt, at most 40 characters.
        status: ``created``, ``attempted`` (a payment failed) or ``paid``.
        attempts: Number of checkout attempts.
        created_at: Epoch seconds.
    """

    __tablename__ = "sandbox_orders"

    id = mapped_column(String(32), primary_key=True, default=lambda: _new_id("order_"))
    amount = mapped_column(BigInteger, nullable=False)
    currency = mapped_column(String(3), nullable=False)
    receipt = mapped_column(String(40), nullable=True)
    status = mapped_column(String(16), nullable=False, default="created")
    attempts = mapped_column(Integer, nullable=False, default=0)
    created_at = mapped_column(BigInteger, nullable=False, default=lambda: int(time.time()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity": "order",
            "amount": self.amount,
            "amount_paid": self.amount if self.status == "paid" else 0,
            "amount_due": 0 if self.status == "paid" else self.amount,
            "currency": self.currency,
            "receipt": self.receipt,
            "status": self.status,
            "attempts": self.attempts,
            "created_at": self.created_at,
        }


class Payment(Base):
    """Payment attempt made through the simulated checkout."""

    __tablename__ = "sandbox_payments"

    id = mapped_column(String(32), primary_key=True, default=lambda: _new_id("pay_"))
    order_id = mapped_column(String(32), ForeignKey("sandbox_orders.id"), nullable=False, index=True)
    amount = mapped_column(BigInteger, nullable=False)
    currency = mapped_column(String(3), nullable=False)
    status = mapped_column(String(16), nullable=False)  # captured | failed
    created_at = mapped_column(BigInteger, nullable=False, default=lambda: int(time.time()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity": "payment",
            "order_id": self.order_id,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status,
            "captured": self.status == "captured",
            "created_at": self.created_at,
        }


def init_db():
    Base.metadata.create_all(engine)


@contextmanager
def get_session():
    """Yield a SQLAlchemy session bound to the configured engine.

    Yields:
        Session: Active SQLAlchemy session, closed on context exit.
    """
    with Session(engine, expire_on_commit=False) as s:
        yield s


class SandboxRepo:
    """Repository for sandbox orders and payments."""

    def create_order(self, amount: int, currency: str, receipt: Optional[str]) -> Order:
        with get_session() as s:
            order = Order(amount=amount, currency=currency, receipt=receipt)
            s.add(order)
            s.commit()
            return order

    def get_order(self, order_id: str) -> Optional[Order]:
        with get_session() as s:
            return s.get(Order, order_id)

    def list_payments(self, order_id: str) -> List[Payment]:
        with get_session() as s:
            rows = s.execute(select(Payment).where(Payment.order_id == order_id).order_by(Payment.created_at))
            return list(rows.scalars())

    def record_attempt(self, order_id: str, success: bool) -> Optional[Payment]:
        """Record a checkout attempt and move the order accordingly.

        A paid order accepts no further attempts.

        Returns:
            Payment: The new attempt, or None when the order does not exist
            or is already paid.
        """
        with get_session() as s:
            order = s.execute(select(Order).where(Order.id == order_id).with_for_update()).scalars().first()
            if order is None or order.status == "paid":
                return None
            payment = Payment(
                order_id=order.id,
                amount=order.amount,
                currency=order.currency,
                status="captured" if success else "failed",
            )
            order.attempts += 1
            order.status = "paid" if success else "attempted"
            s.add(payment)
            s.commit()
            return payment
