from django.conf import settings
from django.db import models
from django.utils import timezone

from checkout.lifecycle import PaymentStatus


class CryptoPayment(models.Model):
    # Dimension fields are written only from the admin surface.
    DIMENSION_FIELDS = ('pounds', 'length', 'width', 'height')

    transaction_id = models.CharField(max_length=64, unique=True)
    order_id = models.CharField(max_length=32, db_index=True)
    idempotency_key = models.CharField(max_length=128, unique=True, blank=True, null=True)
    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='crypto_payments',
    )
    listing_id = models.CharField(max_length=64, blank=True, null=True)

    amount_cents = models.PositiveIntegerField()
    base_amount_cents = models.PositiveIntegerField()
    tax_amount_cents = models.PositiveIntegerField(default=0)
    tax_rate_percentage = models.DecimalField(max_digits=8, decimal_places=4, default=0)
    currency = models.CharField(max_length=3, default='USD')

    status = models.CharField(
        max_length=16,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    receiving_address = models.CharField(max_length=42)
    token_address = models.CharField(max_length=42, blank=True, null=True)
    # EVM tx hash is 66 chars (0x + 64 hex).
    transaction_hash = models.CharField(max_length=66, blank=True, null=True)

    asset_symbol = models.CharField(max_length=8, blank=True, null=True)
    asset_amount = models.CharField(max_length=40, blank=True, null=True)
    asset_price_usd = models.DecimalField(max_digits=18, decimal_places=8, blank=True, null=True)
    price_source = models.CharField(max_length=32, blank=True, null=True)
    quoted_at = models.DateTimeField(blank=True, null=True)

    company = models.CharField(max_length=255, blank=True, null=True)
    address = models.CharField(max_length=255)
    address_line_2 = models.CharField(max_length=255, blank=True, null=True)
    city = models.CharField(max_length=128)
    state = models.CharField(max_length=128)
    zipcode = models.CharField(max_length=32)
    country = models.CharField(max_length=64)

    order_items = models.TextField(default='Custom Card')
    quantity = models.PositiveIntegerField(default=1)
    include_display_case = models.BooleanField(default=False)
    display_case_quantity = models.PositiveIntegerField(default=1)
    card_finish = models.CharField(max_length=32, default='matte')

    pounds = models.DecimalField(max_digits=8, decimal_places=2, blank=True, null=True)
    length = models.DecimalField(max_digits=8, decimal_places=2, blank=True, null=True)
    width = models.DecimalField(max_digits=8, decimal_places=2, blank=True, null=True)
    height = models.DecimalField(max_digits=8, decimal_places=2, blank=True, null=True)

    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    confirmed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = 'crypto_payments'
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_cents=models.F('base_amount_cents') + models.F('tax_amount_cents')),
                name='crypto_payment_total_is_base_plus_tax',
            ),
        ]

    def __str__(self) -> str:
        return f'{self.order_id} ({self.transaction_id})'

    def save(self, *args, **kwargs):
        if self.amount_cents != self.base_amount_cents + self.tax_amount_cents:
            raise ValueError('amount_cents must equal base_amount_cents + tax_amount_cents')
        super().save(*args, **kwargs)

    @property
    def has_quote(self) -> bool:
        return bool(self.asset_amount)

    @property
    def tax_calculation_source(self):
        return (self.metadata or {}).get('tax_calculation_source')

    def mark_status(self, status: str, tx_hash: str = None, confirmed_at=None) -> None:
        self.status = status
        if tx_hash:
            self.transaction_hash = tx_hash
        if PaymentStatus.stamps_confirmation(status):
            self.confirmed_at = confirmed_at or timezone.now()
