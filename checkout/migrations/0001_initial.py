import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CryptoPayment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("transaction_id", models.CharField(max_length=64, unique=True)),
                ("order_id", models.CharField(db_index=True, max_length=32)),
                ("idempotency_key", models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ("listing_id", models.CharField(blank=True, max_length=64, null=True)),
                ("amount_cents", models.PositiveIntegerField()),
                ("base_amount_cents", models.PositiveIntegerField()),
                ("tax_amount_cents", models.PositiveIntegerField(default=0)),
                ("tax_rate_percentage", models.DecimalField(decimal_places=4, default=0, max_digits=8)),
                ("currency", models.CharField(default="USD", max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("submitted", "Submitted"),
                            ("confirmed", "Confirmed"),
                            ("complete", "Complete"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("receiving_address", models.CharField(max_length=42)),
                ("token_address", models.CharField(blank=True, max_length=42, null=True)),
                ("transaction_hash", models.CharField(blank=True, max_length=66, null=True)),
                ("asset_symbol", models.CharField(blank=True, max_length=8, null=True)),
                ("asset_amount", models.CharField(blank=True, max_length=40, null=True)),
                ("asset_price_usd", models.DecimalField(blank=True, decimal_places=8, max_digits=18, null=True)),
                ("price_source", models.CharField(blank=True, max_length=32, null=True)),
                ("quoted_at", models.DateTimeField(blank=True, null=True)),
                ("company", models.CharField(blank=True, max_length=255, null=True)),
                ("address", models.CharField(max_length=255)),
                ("address_line_2", models.CharField(blank=True, max_length=255, null=True)),
                ("city", models.CharField(max_length=128)),
                ("state", models.CharField(max_length=128)),
                ("zipcode", models.CharField(max_length=32)),
                ("country", models.CharField(max_length=64)),
                ("order_items", models.TextField(default="Custom Card")),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("include_display_case", models.BooleanField(default=False)),
                ("display_case_quantity", models.PositiveIntegerField(default=1)),
                ("card_finish", models.CharField(default="matte", max_length=32)),
                ("pounds", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("length", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("width", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("height", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "buyer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="crypto_payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "crypto_payments",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            amount_cents=models.F("base_amount_cents") + models.F("tax_amount_cents")
                        ),
                        name="crypto_payment_total_is_base_plus_tax",
                    ),
                ],
            },
        ),
    ]
