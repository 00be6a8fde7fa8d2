from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="PaymentRecordModel",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("order_id", models.CharField(max_length=64, unique=True)),
                ("payment_id", models.CharField(blank=True, max_length=64, null=True)),
                ("book_id", models.CharField(blank=True, max_length=64, null=True)),
                ("user_id", models.CharField(blank=True, max_length=64, null=True)),
                ("amount", models.PositiveBigIntegerField(blank=True, null=True)),
                ("currency", models.CharField(default="INR", max_length=3)),
                ("status", models.CharField(
                    choices=[("created", "Created"), ("paid", "Paid"), ("failed", "Failed")],
                    default="created",
                    max_length=16,
                )),
                ("receipt", models.CharField(blank=True, max_length=40, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "payment_records",
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddIndex(
            model_name="paymentrecordmodel",
            index=models.Index(fields=["status", "created_at"], name="payment_status_created_idx"),
        ),
        migrations.CreateModel(
            name="IdempotencyKey",
            fields=[
                ("key", models.CharField(max_length=200, primary_key=True, serialize=False)),
                ("request_hash", models.CharField(max_length=64)),
                ("response_status", models.PositiveSmallIntegerField(default=0)),
                ("response_body", models.JSONField(default=dict)),
                ("order_id", models.CharField(blank=True, max_length=64, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "idempotency_keys",
            },
        ),
    ]
