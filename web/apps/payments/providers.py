"""Service provider helpers for wiring PaymentService with its ports.

``get_gateway_config`` builds the immutable ``GatewayConfig`` from Django
settings once per process; the cached value is dropped when a related
setting changes (as happens under the test ``settings`` fixture).

``get_payment_service`` returns a ``PaymentService`` wired with the HTTP
gateway adapter when ``settings.USE_HTTP_ADAPTERS`` is truthy, and with the
in-process ``GatewayStub`` otherwise. The ledger is always the ORM-backed
``PaymentLedger``.
"""

from functools import lru_cache

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver

from .adapters import GatewayStub
from .domain import GatewayConfig, PaymentService
from .http_adapters import HttpGatewayClient
from .repository import PaymentLedger

GATEWAY_SETTINGS = {
    "RAZORPAY_KEY_ID",
    "RAZORPAY_KEY_SECRET",
    "GATEWAY_BASE_URL",
    "GATEWAY_TIMEOUT_SECS",
    "PAYMENT_CURRENCY",
    "RECEIPT_MAX_LENGTH",
}


@lru_cache(maxsize=1)
def get_gateway_config() -> GatewayConfig:
    """Return the process-wide gateway configuration."""
    return GatewayConfig(
        key_id=getattr(settings, "RAZORPAY_KEY_ID", "") or "",
        key_secret=getattr(settings, "RAZORPAY_KEY_SECRET", "") or "",
        base_url=getattr(settings, "GATEWAY_BASE_URL", "https://api.razorpay.com"),
        timeout=float(getattr(settings, "GATEWAY_TIMEOUT_SECS", 10.0)),
        currency=getattr(settings, "PAYMENT_CURRENCY", "INR"),
        receipt_max_length=int(getattr(settings, "RECEIPT_MAX_LENGTH", 40)),
    )


@receiver(setting_changed)
def _reset_gateway_config(sender, setting, **kwargs):
    if setting in GATEWAY_SETTINGS:
        get_gateway_config.cache_clear()


def get_gateway(config: GatewayConfig | None = None):
    """Return the gateway port selected by ``settings.USE_HTTP_ADAPTERS``."""
    config = config or get_gateway_config()
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        return HttpGatewayClient(config)
    return GatewayStub(config)


def get_payment_service() -> PaymentService:
    """Return a configured PaymentService instance.

    Returns:
        PaymentService: A service wired with the gateway port and the
        ORM-backed ledger.
    """
    config = get_gateway_config()
    return PaymentService(config=config, gateway=get_gateway(config), ledger=PaymentLedger())
