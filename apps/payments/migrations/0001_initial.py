import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("mosques", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("provider", models.CharField(max_length=50)),
                ("reference", models.CharField(db_index=True, max_length=100)),
                ("raw_payload", models.JSONField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="PaymentProvider",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "provider_type",
                    models.CharField(choices=[("billplz", "Billplz"), ("toyyibpay", "ToyyibPay")], max_length=20),
                ),
                ("billplz_api_key", models.CharField(blank=True, max_length=255, null=True)),
                ("billplz_x_signature_key", models.CharField(blank=True, max_length=255, null=True)),
                ("billplz_collection_id", models.CharField(blank=True, max_length=100, null=True)),
                ("toyyibpay_secret_key", models.CharField(blank=True, max_length=255, null=True)),
                ("toyyibpay_category_code", models.CharField(blank=True, max_length=100, null=True)),
                ("is_active", models.BooleanField(default=False)),
                ("is_sandbox", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "mosque",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payment_providers",
                        to="mosques.mosque",
                    ),
                ),
            ],
            options={
                "ordering": ["provider_type"],
            },
        ),
        migrations.AddConstraint(
            model_name="paymentprovider",
            constraint=models.UniqueConstraint(fields=("mosque", "provider_type"), name="unique_payment_provider_per_mosque"),
        ),
        migrations.AddConstraint(
            model_name="paymentprovider",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_active", True)),
                fields=("mosque",),
                name="single_active_payment_provider_per_mosque",
            ),
        ),
    ]
