import pytest

GATEWAY_KEY_ID = "rzp_test_key"
GATEWAY_KEY_SECRET = "test_secret"


@pytest.fixture(autouse=True)
def gateway_settings(settings):
    """Stub gateway with known credentials for every test."""
    settings.USE_HTTP_ADAPTERS = False
    settings.RAZORPAY_KEY_ID = GATEWAY_KEY_ID
    settings.RAZORPAY_KEY_SECRET = GATEWAY_KEY_SECRET
    settings.GATEWAY_BASE_URL = "http://gateway.test"
    return settings


@pytest.fixture(autouse=True)
def _reset_shared_state():
    # throttle counters and circuit breaker state must not leak between tests
    from django.core.cache import cache
    from apps.payments.http_adapters import _gateway_cb

    cache.clear()
    _gateway_cb.on_success()
    yield
    cache.clear()
