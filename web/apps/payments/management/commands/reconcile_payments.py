import time
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.payments.errors import PaymentError
from apps.payments.http_adapters import HttpGatewayClient
from apps.payments.providers import get_gateway_config
from apps.payments.repository import PaymentLedger


def _captured_payment_id(payments: list) -> str | None:
    for p in payments:
        if p.get("status") == "captured" and p.get("id"):
            return str(p["id"])
    return None


class Command(BaseCommand):
    help = "Ask the gateway about ledger rows still 'created' and record the ones it reports as paid"

    def add_arguments(self, parser):
        parser.add_argument("--max", type=int, default=50)
        parser.add_argument("--sleep", type=float, default=0.2)
        parser.add_argument("--older-than-minutes", type=int, default=15)

    def handle(self, *args, **opts):
        cutoff = timezone.now() - timedelta(minutes=opts["older_than_minutes"])
        ledger = PaymentLedger()
        rows = ledger.stale_created(cutoff, limit=opts["max"])

        if not rows:
            self.stdout.write(self.style.SUCCESS("No pending payments to reconcile."))
            return

        client = HttpGatewayClient(get_gateway_config())
        for row in rows:
            try:
                remote = client.fetch_remote_order(row.order_id)
                if remote.status != "paid":
                    self.stdout.write(f"{row.order_id}: gateway status {remote.status}, left as created")
                    continue
                payment_id = _captured_payment_id(client.fetch_order_payments(row.order_id))
                if not payment_id:
                    self.stdout.write(self.style.WARNING(f"{row.order_id}: paid but no captured payment listed"))
                    continue
                ledger.mark_paid(row.order_id, payment_id)
                self.stdout.write(self.style.SUCCESS(f"Updated {row.order_id} -> paid ({payment_id})"))
            except PaymentError as e:
                self.stdout.write(self.style.WARNING(f"{row.order_id}: {e.message}"))
            if opts["sleep"]:
                time.sleep(opts["sleep"])
