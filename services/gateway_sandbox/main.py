"""Gateway sandbox API built with FastAPI.

A local stand-in for the payment gateway consumed by the marketplace. It
implements the parts of the gateway contract the payments app relies on:

- ``POST /v1/orders`` (HTTP basic auth) creating an order from
  ``{amount, currency, receipt, payment_capture}``.
- ``GET /v1/orders/{id}`` and ``GET /v1/orders/{id}/payments``.
- ``POST /v1/checkout/{order_id}/complete``, standing in for the hosted
  checkout: it records a payment attempt and, on success, returns the
  ``razorpay_*`` fields signed the way the real gateway signs them.

Errors use the gateway's ``{"error": {"code", "description"}}`` shape.
Credentials come from ``SANDBOX_KEY_ID`` and ``SANDBOX_KEY_SECRET``.
"""

import hashlib
import hmac
import logging
import os
import secrets
import time
import uuid
from contextlib import asynccontextmanager
from typing import Annotated, Literal, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, Field, constr
from pythonjsonlogger import jsonlogger
from sqlalchemy import text

from . import repo

MIN_AMOUNT = 100
Currency = constr(pattern=r"^[A-Z]{3}$")

logger = logging.getLogger("gateway_sandbox")
if not logger.handlers:
    h = logging.StreamHandler()
    h.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"))
    logger.addHandler(h)
    logger.setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # brief wait until the DB accepts connections
    deadline = time.time() + 30
    while True:
        try:
            with repo.engine.connect() as conn:
                conn.execute(text("select 1"))
            break
        except Exception:
            if time.time() > deadline:
                raise
            time.sleep(1)
    repo.init_db()
    yield


app = FastAPI(title="Gateway Sandbox", lifespan=lifespan)
basic = HTTPBasic(auto_error=False)


def gateway_error(status_code: int, description: str, code: str = "BAD_REQUEST_ERROR", **metadata) -> JSONResponse:
    body = {"error": {"code": code, "description": description}}
    if metadata:
        body["error"]["metadata"] = metadata
    return JSONResponse(status_code=status_code, content=body)


class AuthFailed(Exception):
    pass


@app.exception_handler(AuthFailed)
async def _auth_failed(_request: Request, _exc: AuthFailed):
    return gateway_error(401, "Authentication failed")


@app.exception_handler(RequestValidationError)
async def _invalid_request(_request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "request"
    return gateway_error(400, f"{field}: {first.get('msg', 'invalid request')}")


def _keys() -> tuple[str, str]:
    return (
        os.getenv("SANDBOX_KEY_ID", "rzp_test_sandbox"),
        os.getenv("SANDBOX_KEY_SECRET", "sandbox_secret"),
    )


def require_merchant(credentials: Annotated[Optional[HTTPBasicCredentials], Depends(basic)]) -> str:
    """Check HTTP basic credentials against the configured key pair."""
    key_id, key_secret = _keys()
    if credentials is None:
        raise AuthFailed()
    id_ok = secrets.compare_digest(credentials.username.encode(), key_id.encode())
    secret_ok = secrets.compare_digest(credentials.password.encode(), key_secret.encode())
    if not (id_ok and secret_ok):
        raise AuthFailed()
    return credentials.username


def sign(order_id: str, payment_id: str) -> str:
    _, key_secret = _keys()
    return hmac.new(key_secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


class CreateOrderRequest(BaseModel):
    """Request body for order creation.

    Attributes:
        amount: Amount in minor units (paise).
        currency: Three-letter currency code.
        receipt: Merchant receipt, at most 40 characters.
        payment_capture: 1 to auto-capture successful payments.
    """

    amount: int
    currency: Currency
    receipt: Optional[str] = Field(default=None, max_length=40)
    payment_capture: int = 1


class CheckoutRequest(BaseModel):
    outcome: Literal["success", "failure"] = "success"


@app.get("/health")
def health():
    return {"ok": True}


@app.post("/v1/orders")
def create_order(req: CreateOrderRequest, merchant: Annotated[str, Depends(require_merchant)]):
    if req.amount < MIN_AMOUNT:
        return gateway_error(400, "Order amount less than minimum amount allowed")
    order = repo.SandboxRepo().create_order(req.amount, req.currency, req.receipt)
    logger.info("order created", extra={"order_id": order.id, "amount": order.amount, "merchant": merchant})
    return order.to_dict()


@app.get("/v1/orders/{order_id}")
def fetch_order(order_id: str, _merchant: Annotated[str, Depends(require_merchant)]):
    order = repo.SandboxRepo().get_order(order_id)
    if order is None:
        return gateway_error(400, "The id provided does not exist")
    return order.to_dict()


@app.get("/v1/orders/{order_id}/payments")
def fetch_order_payments(order_id: str, _merchant: Annotated[str, Depends(require_merchant)]):
    r = repo.SandboxRepo()
    if r.get_order(order_id) is None:
        return gateway_error(400, "The id provided does not exist")
    items = [p.to_dict() for p in r.list_payments(order_id)]
    return {"entity": "collection", "count": len(items), "items": items}


@app.post("/v1/checkout/{order_id}/complete")
def complete_checkout(order_id: str, req: Optional[CheckoutRequest] = None):
    """Simulate the hosted checkout finishing for ``order_id``.

    Returns:
        dict: ``{razorpay_payment_id, razorpay_order_id, razorpay_signature}``
        on success, ready to be forwarded to the marketplace's
        ``/verify-payment``. A failed attempt answers 400 with the payment
        and order ids in the error metadata.
    """
    outcome = (req or CheckoutRequest()).outcome
    payment = repo.SandboxRepo().record_attempt(order_id, success=outcome == "success")
    if payment is None:
        return gateway_error(400, "Order does not exist or is already paid")

    if outcome == "failure":
        logger.info("checkout failed", extra={"order_id": order_id, "payment_id": payment.id})
        return gateway_error(
            400,
            "Payment failed",
            code="BAD_REQUEST_ERROR",
            payment_id=payment.id,
            order_id=order_id,
        )

    logger.info("checkout completed", extra={"order_id": order_id, "payment_id": payment.id})
    return {
        "razorpay_payment_id": payment.id,
        "razorpay_order_id": order_id,
        "razorpay_signature": sign(order_id, payment.id),
    }


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = rid
    try:
        response = await call_next(request)
    finally:
        logger.info("request handled", extra={"request_id": rid, "path": request.url.path, "method": request.method})
    response.headers["X-Request-ID"] = rid
    return response
