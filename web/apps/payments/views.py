"""HTTP views for the payments app.

Views are kept small: they validate the payload shape (via Pydantic), hand
the fields to the domain service obtained from ``get_payment_service()``,
and map the outcome or the domain error to a JSON response. Errors are
always answered as ``{"error": <message>}``.

Idempotency: when an ``Idempotency-Key`` header is sent to the create
endpoint, the first request is processed and its response stored;
retries with the same payload get the stored response back with an
``Idempotent-Replay: true`` header, without a second gateway call. Reusing
the key with a different payload returns HTTP 409. Server-side failures
release the key so the client can retry.
"""

import logging

from pydantic import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import providers
from .errors import PaymentError
from .idempotency import finalize, get_or_create_idempotent, release
from .models import IDEMPOTENCY_KEY_MAX_LENGTH
from .repository import PaymentLedger
from .schemas import CreateOrderDTO, CreateOrderResponseDTO, PaymentRecordReadDTO, VerifyPaymentDTO

logger = logging.getLogger("payments")


def _error(message: str, status_code: int) -> Response:
    return Response({"error": message}, status=status_code)


def _payload(request) -> dict:
    data = request.data
    return dict(data) if hasattr(data, "keys") else {}


class CreateOrderView(APIView):
    """Create a gateway order for a book purchase.

    Responses:
        - 201 ``{id, amount, currency, key}`` when the gateway order is created.
        - the stored status and body on an idempotent replay.
        - 400 when ``userId`` or ``amount`` is missing, the amount is invalid
          or the ``Idempotency-Key`` is longer than 200 characters.
        - 409 when an ``Idempotency-Key`` is reused with another payload or
          its first request is still in flight.
        - 500 when gateway credentials are not configured.
        - the gateway's status (or 500) when the gateway rejects the order.
    """

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payments_create"

    def post(self, request):
        idem_key = request.headers.get("Idempotency-Key")
        payload = _payload(request)

        # 1) Pydantic validation
        try:
            dto = CreateOrderDTO.model_validate(payload)
        except ValidationError as e:
            return _error(e.errors(include_url=False)[0].get("msg", "invalid payload"), status.HTTP_400_BAD_REQUEST)

        # 2) Idempotency get-or-create
        rec = None
        if idem_key:
            if len(idem_key) > IDEMPOTENCY_KEY_MAX_LENGTH:
                return _error("Idempotency-Key too long", status.HTTP_400_BAD_REQUEST)
            try:
                existing, rec = get_or_create_idempotent(idem_key, payload)
            except ValueError:
                return _error("IDEMPOTENCY_CONFLICT", status.HTTP_409_CONFLICT)
            if existing:
                if not rec.response_status:
                    return _error("IDEMPOTENCY_IN_PROGRESS", status.HTTP_409_CONFLICT)
                resp = Response(rec.response_body, status=rec.response_status)
                resp["Idempotent-Replay"] = "true"
                return resp

        # 3) Domain
        service = providers.get_payment_service()
        try:
            out = service.create_order(dto.book_id, dto.user_id, dto.amount)
        except PaymentError as e:
            if rec:
                if e.status_code >= 500:
                    release(rec)
                else:
                    finalize(rec, e.status_code, {"error": e.message})
            return _error(e.message, e.status_code)
        except Exception:
            logger.exception("create-order failed unexpectedly")
            if rec:
                release(rec)
            return _error("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)

        # 4) Response
        body = CreateOrderResponseDTO(id=out.order_id, amount=out.amount, currency=out.currency, key=out.key_id).model_dump()
        if rec:
            finalize(rec, status.HTTP_201_CREATED, body, order_id=out.order_id)
        return Response(body, status=status.HTTP_201_CREATED)


class VerifyPaymentView(APIView):
    """Verify a completed checkout and finalize the ledger row.

    Responses:
        - 200 ``{success: true, message}`` when the signature is valid.
        - 400 when fields are missing or the signature does not match.
        - 500 ``{error: "Verification failed"}`` on unexpected errors.
    """

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payments_verify"

    def post(self, request):
        try:
            dto = VerifyPaymentDTO.model_validate(_payload(request))
        except ValidationError:
            return _error("Missing payment verification fields", status.HTTP_400_BAD_REQUEST)

        service = providers.get_payment_service()
        try:
            result = service.verify_payment(dto.payment_id, dto.order_id, dto.signature, dto.book_id, dto.user_id)
        except PaymentError as e:
            return _error(e.message, e.status_code)
        except Exception:
            logger.exception("verify-payment failed unexpectedly")
            return _error("Verification failed", status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({"success": result.success, "message": result.message}, status=status.HTTP_200_OK)


class RetrievePaymentView(APIView):
    """Return the ledger row for a gateway order id."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payments_detail"

    def get(self, request, order_id: str):
        record = PaymentLedger().get(order_id)
        if record is None:
            return _error("Payment not found", status.HTTP_404_NOT_FOUND)

        dto = PaymentRecordReadDTO(
            order_id=record.order_id,
            payment_id=record.payment_id,
            book_id=record.book_id,
            user_id=record.user_id,
            amount=record.amount,
            currency=record.currency,
            status=record.status.value,
            receipt=record.receipt,
            created_at=record.created_at,
        )
        return Response(dto.model_dump(mode="json", by_alias=True), status=status.HTTP_200_OK)
