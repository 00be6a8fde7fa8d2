"""HTTP adapter for the payment gateway with a circuit breaker and context headers.

This module implements ``GatewayPort`` against the gateway's REST API using
``httpx``. It adds:

- Request correlation: propagates ``X-Request-ID`` from the ContextVar set
  by the gateway middleware.
- A circuit breaker that stops calling the gateway after repeated
  transport errors or 5xx answers, with HALF_OPEN probing after a timeout.
- An explicit bounded timeout on every call.

Order creation is at-most-once: there is no automatic retry, because a
retried call that already reached the gateway creates a second remote
order. Credentials are sent as HTTP basic auth and never logged or copied
into errors.
"""

import logging
import threading
import time
from typing import Any, List, Optional

import httpx
from django.conf import settings

from gateway.middleware import REQUEST_ID_CTX

from .domain import GatewayConfig, GatewayPort, RemoteOrder
from .errors import ConfigurationError, GatewayError

logger = logging.getLogger("payments")


# ---------------- Circuit Breaker ---------------- #

class CircuitBreaker:
    """Minimal circuit breaker with CLOSED/OPEN/HALF_OPEN states.

    Transitions:
    - CLOSED → OPEN when failures reach ``fail_threshold``.
    - OPEN → HALF_OPEN after ``reset_timeout`` seconds.
    - HALF_OPEN → CLOSED on a successful probe; only one probe may be in
      flight; back to OPEN on failure.

    This implementation is thread-safe via an internal lock.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.RLock()
        self._failures = 0
        self._state = "CLOSED"  # CLOSED | OPEN | HALF_OPEN
        self._opened_at = 0.0
        self._half_open_probe_in_flight = False

    @property
    def state(self) -> str:
        """Current breaker state with time-based transition handling."""
        with self._lock:
            if self._state == "OPEN" and (time.monotonic() - self._opened_at) >= self.reset_timeout:
                self._state = "HALF_OPEN"
                self._half_open_probe_in_flight = False
            return self._state

    def before_call(self) -> str:
        """Check and update state before a protected call.

        Returns:
            str: The state at call time.

        Raises:
            GatewayError: With status 503 if the circuit is OPEN or a
                HALF_OPEN probe is already in flight.
        """
        with self._lock:
            st = self.state
            if st == "OPEN":
                raise GatewayError("Payment gateway temporarily unavailable", status_code=503)
            if st == "HALF_OPEN":
                if self._half_open_probe_in_flight:
                    raise GatewayError("Payment gateway temporarily unavailable", status_code=503)
                self._half_open_probe_in_flight = True
            return st

    def on_success(self):
        """Record a successful call and close/reset the breaker."""
        with self._lock:
            self._failures = 0
            self._state = "CLOSED"
            self._half_open_probe_in_flight = False

    def on_failure(self):
        """Record a failed call and open the breaker if threshold exceeded."""
        with self._lock:
            self._failures += 1
            if self._state == "HALF_OPEN" or (self._failures >= self.fail_threshold and self._state != "OPEN"):
                self._state = "OPEN"
                self._opened_at = time.monotonic()
                self._half_open_probe_in_flight = False

    def on_finish(self):
        """Release any HALF_OPEN probe flag after a call finishes."""
        with self._lock:
            if self._state == "HALF_OPEN":
                self._half_open_probe_in_flight = False


_gateway_cb = CircuitBreaker(
    "gateway",
    getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
    getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
)


# ---------------- Helpers ---------------- #

def _request_headers(extra: Optional[dict] = None) -> dict:
    """Build base headers including X-Request-ID and any extras."""
    headers: dict[str, str] = {"Accept": "application/json"}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def _error_description(resp: httpx.Response) -> str:
    """Extract the gateway's human-readable error description.

    The gateway answers ``{"error": {"code": ..., "description": ...}}``;
    anything else falls back to a generic message.
    """
    try:
        body = resp.json()
    except ValueError:
        return GatewayError.default_message
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("description"):
            return str(err["description"])
        if body.get("detail"):
            return str(body["detail"])
    return GatewayError.default_message


def _json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise GatewayError("Malformed gateway response", status_code=502) from e


def _to_remote_order(data: dict) -> RemoteOrder:
    try:
        return RemoteOrder(
            id=str(data["id"]),
            amount=int(data["amount"]),
            currency=str(data["currency"]),
            receipt=str(data.get("receipt") or ""),
            status=data.get("status"),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise GatewayError("Malformed gateway response", status_code=502) from e


# ---------------- Gateway Adapter ---------------- #

class HttpGatewayClient(GatewayPort):
    """HTTP client for the payment gateway's orders API."""

    def __init__(self, config: GatewayConfig, breaker: CircuitBreaker | None = None):
        self.config = config
        self.breaker = breaker or _gateway_cb

    def _auth(self) -> tuple[str, str]:
        if not self.config.is_complete:
            raise ConfigurationError()
        return (self.config.key_id, self.config.key_secret)

    def _call(self, method: str, path: str, json: Any = None, failure_message: str | None = None) -> httpx.Response:
        """Perform one protected call and return the 2xx response.

        Transport errors and 5xx answers count as circuit failures; 4xx
        answers are business outcomes and do not.

        Raises:
            ConfigurationError: When credentials are missing (no network call).
            GatewayError: For any non-2xx answer or transport error. A
                transport error carries ``failure_message`` (or the
                default create-order message).
        """
        auth = self._auth()
        state = self.breaker.before_call()
        headers = _request_headers({"X-Circuit-State": state})
        url = f"{self.config.base_url.rstrip('/')}{path}"

        try:
            with httpx.Client(timeout=self.config.timeout, auth=auth) as client:
                try:
                    resp = client.request(method, url, json=json, headers=headers)
                except httpx.RequestError as e:
                    self.breaker.on_failure()
                    logger.error("gateway unreachable", extra={"path": path, "error": type(e).__name__})
                    raise GatewayError(failure_message) from e

                if 200 <= resp.status_code < 300:
                    self.breaker.on_success()
                    return resp

                if resp.status_code >= 500:
                    self.breaker.on_failure()
                else:
                    self.breaker.on_success()
                description = _error_description(resp)
                logger.error(
                    "gateway call failed",
                    extra={"path": path, "status_code": resp.status_code, "description": description},
                )
                raise GatewayError(description, status_code=resp.status_code)
        finally:
            self.breaker.on_finish()

    def create_remote_order(self, amount: int, currency: str, receipt: str) -> RemoteOrder:
        """Create an order on the gateway.

        Args:
            amount: Amount in minor units, positive integer.
            currency: Currency code, e.g. 'INR'.
            receipt: Receipt of at most 40 characters.

        Returns:
            RemoteOrder: The gateway-confirmed order.

        Raises:
            ConfigurationError: When either credential is missing.
            GatewayError: With the gateway's status and description on a
                non-2xx answer, 500 on transport errors, 503 while the
                circuit is open.
        """
        payload = {"amount": amount, "currency": currency, "receipt": receipt, "payment_capture": 1}
        resp = self._call("POST", "/v1/orders", json=payload)
        return _to_remote_order(_json(resp))

    def fetch_remote_order(self, order_id: str) -> RemoteOrder:
        """Fetch the current gateway-side view of an order."""
        resp = self._call("GET", f"/v1/orders/{order_id}", failure_message="Failed to fetch order")
        return _to_remote_order(_json(resp))

    def fetch_order_payments(self, order_id: str) -> List[dict]:
        """List the payment attempts recorded by the gateway for an order."""
        resp = self._call("GET", f"/v1/orders/{order_id}/payments", failure_message="Failed to list order payments")
        body = _json(resp)
        items = body.get("items") if isinstance(body, dict) else None
        return list(items or [])
