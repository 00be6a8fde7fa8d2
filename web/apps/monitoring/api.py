from django.db import connection
from django.http import JsonResponse

from apps.payments.providers import get_gateway_config


def health_view(_request):
    db_ok = False
    try:
        with connection.cursor() as cur:
            cur.execute("SELECT 1;")
        db_ok = True
    except Exception:
        db_ok = False

    gateway_configured = get_gateway_config().is_complete
    code = 200 if db_ok else 503
    return JsonResponse(
        {
            "ok": db_ok,
            "components": {
                "db": {"ok": db_ok},
                "gateway": {"configured": gateway_configured},
            },
        },
        status=code,
    )
