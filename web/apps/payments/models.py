from django.db import models

IDEMPOTENCY_KEY_MAX_LENGTH = 200


class PaymentRecordModel(models.Model):
    """Ledger row for one gateway order, keyed by the gateway order id."""

    class Status(models.TextChoices):
        CREATED = "created"
        PAID = "paid"
        FAILED = "failed"

    order_id = models.CharField(max_length=64, unique=True)
    payment_id = models.CharField(max_length=64, null=True, blank=True)

    # Opaque references into the catalog / user collections
    book_id = models.CharField(max_length=64, null=True, blank=True)
    user_id = models.CharField(max_length=64, null=True, blank=True)

    # Minor units; null only on rows created by the verification upsert
    amount = models.PositiveBigIntegerField(null=True, blank=True)
    currency = models.CharField(max_length=3, default="INR")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.CREATED)
    receipt = models.CharField(max_length=40, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "payment_records"
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["status", "created_at"], name="payment_status_created_idx")]


class IdempotencyKey(models.Model):
    """Stored outcome of a create-order request sent with an ``Idempotency-Key``.

    ``response_status`` is 0 while the first request is still in flight.
    """

    key = models.CharField(max_length=IDEMPOTENCY_KEY_MAX_LENGTH, primary_key=True)
    request_hash = models.CharField(max_length=64)
    response_status = models.PositiveSmallIntegerField(default=0)
    response_body = models.JSONField(default=dict)
    order_id = models.CharField(max_length=64, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "idempotency_keys"
