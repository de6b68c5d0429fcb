from rest_framework import serializers

from checkout.models import CryptoPayment


class CryptoPaymentAdminSerializer(serializers.ModelSerializer):
    tax_calculation_source = serializers.CharField(read_only=True, allow_null=True)

    class Meta:
        model = CryptoPayment
        fields = [
            'id',
            'order_id',
            'transaction_id',
            'company',
            'address',
            'address_line_2',
            'city',
            'state',
            'zipcode',
            'country',
            'order_items',
            'quantity',
            'pounds',
            'length',
            'width',
            'height',
            'amount_cents',
            'base_amount_cents',
            'tax_amount_cents',
            'tax_rate_percentage',
            'tax_calculation_source',
            'status',
            'transaction_hash',
            'asset_symbol',
            'asset_amount',
            'created_at',
            'confirmed_at',
        ]
        read_only_fields = fields
