"""Pydantic schemas for the payments API.

Request schemas only check the shape of the payload (types and field
names). Presence and amount rules belong to the domain service so that
the checks run in one place and in a fixed order.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Opaque ids arrive as strings (document ids) but integers are tolerated.
OpaqueId = Optional[Union[str, int]]


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class CreateOrderDTO(_Request):
    """Body of ``POST /create-order``.

    Attributes:
        book_id: Book being bought (``bookId``).
        user_id: Buyer (``userId``).
        amount: Price in major units, as number or numeric string.
    """

    book_id: OpaqueId = Field(default=None, alias="bookId")
    user_id: OpaqueId = Field(default=None, alias="userId")
    amount: Optional[Union[Decimal, str]] = None

    @field_validator("amount", mode="before")
    @classmethod
    def keep_raw_amount(cls, v):
        # Booleans and floats are passed through as text and judged by the normalizer.
        if isinstance(v, bool):
            return str(v)
        if isinstance(v, float):
            return str(v)
        return v


class VerifyPaymentDTO(_Request):
    """Body of ``POST /verify-payment`` as produced by the hosted checkout."""

    payment_id: Optional[str] = Field(default=None, alias="razorpay_payment_id")
    order_id: Optional[str] = Field(default=None, alias="razorpay_order_id")
    signature: Optional[str] = Field(default=None, alias="razorpay_signature")
    book_id: OpaqueId = Field(default=None, alias="bookId")
    user_id: OpaqueId = Field(default=None, alias="userId")


class CreateOrderResponseDTO(BaseModel):
    id: str
    amount: int
    currency: str
    key: str


class PaymentRecordReadDTO(BaseModel):
    """Ledger row as exposed by ``GET /payments/<order_id>``."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(serialization_alias="orderId")
    payment_id: Optional[str] = Field(default=None, serialization_alias="paymentId")
    book_id: Optional[str] = Field(default=None, serialization_alias="bookId")
    user_id: Optional[str] = Field(default=None, serialization_alias="userId")
    amount: Optional[int] = None
    currency: str
    status: str
    receipt: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, serialization_alias="createdAt")
