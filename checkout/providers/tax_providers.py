"""
Sales-tax providers: TaxJar first, Stripe Tax as fallback.
"""
from decimal import Decimal
from typing import Any, Dict

import httpx
import stripe
from loguru import logger

from checkout.pricing import dollars_to_cents, fraction_to_percent, round_rate, to_decimal

from .base import ProviderError, TaxProvider, TaxQuote, TaxRequest

# Every order ships from the warehouse.
ORIGIN_ADDRESS = {
    'from_country': 'US',
    'from_zip': '89108',
    'from_state': 'NV',
    'from_city': 'Las Vegas',
}

# Stripe's "general - tangible goods" code.
STRIPE_GENERAL_TAX_CODE = 'txcd_99999999'


class TaxJarProvider(TaxProvider):
    """Primary provider using the TaxJar ``/taxes`` endpoint."""

    SOURCE = 'taxjar_api'

    @property
    def name(self) -> str:
        return 'taxjar'

    def _build_payload(self, request: TaxRequest) -> Dict[str, Any]:
        destination = request.destination
        return {
            **ORIGIN_ADDRESS,
            'to_country': destination.country,
            'to_zip': destination.zipcode,
            'to_state': destination.state,
            'to_city': destination.city,
            'to_street': destination.street,
            'amount': float(request.taxable_amount),
            'shipping': float(request.shipping),
            'line_items': [
                {
                    'id': item.id,
                    'quantity': item.quantity,
                    'unit_price': float(item.unit_price),
                }
                for item in request.line_items
            ],
        }

    def attempt(self, request: TaxRequest) -> TaxQuote:
        api_key = self.config.get('taxjar_api_key', '')
        if not api_key:
            raise ProviderError('TaxJar API key not configured')

        url = f"{self.config.get('taxjar_api_url', 'https://api.taxjar.com/v2').rstrip('/')}/taxes"
        try:
            response = httpx.post(
                url,
                json=self._build_payload(request),
                headers={'Authorization': f'Bearer {api_key}'},
                timeout=self.timeout,
            )
            response.raise_for_status()
            tax = response.json()['tax']
        except httpx.HTTPError as exc:
            raise ProviderError(f'TaxJar request failed: {exc}') from exc
        except (ValueError, KeyError, TypeError) as exc:
            raise ProviderError(f'Malformed TaxJar response: {exc}') from exc

        rate = tax.get('rate')
        if rate is None:
            rate = (tax.get('breakdown') or {}).get('combined_tax_rate')
        amount = tax.get('amount_to_collect')
        if rate is None or amount is None:
            raise ProviderError('TaxJar response missing rate or amount_to_collect')

        logger.debug(
            'TaxJar quote: rate={} amount_to_collect={} taxable_amount={}',
            rate, amount, tax.get('taxable_amount'))

        try:
            return TaxQuote(
                rate_percent=fraction_to_percent(rate),
                amount_cents=dollars_to_cents(amount),
                source=self.SOURCE,
                details={'breakdown': tax.get('breakdown')},
            )
        except ArithmeticError as exc:
            raise ProviderError(f'Malformed TaxJar amounts: {exc}') from exc


class StripeTaxProvider(TaxProvider):
    """Fallback provider using Stripe Tax calculations."""

    SOURCE = 'stripe_tax'

    @property
    def name(self) -> str:
        return 'stripe'

    def attempt(self, request: TaxRequest) -> TaxQuote:
        api_key = self.config.get('stripe_secret_key', '')
        if not api_key:
            raise ProviderError('Stripe secret key not configured')

        destination = request.destination
        address = {
            'country': destination.country,
            'state': destination.state,
            'city': destination.city,
            'postal_code': destination.zipcode,
            'line1': destination.street,
        }
        if destination.line2:
            address['line2'] = destination.line2

        try:
            calculation = stripe.tax.Calculation.create(
                api_key=api_key,
                currency='usd',
                line_items=[
                    {
                        'amount': request.taxable_cents,
                        'reference': 'crypto_payment_fallback',
                        'tax_code': STRIPE_GENERAL_TAX_CODE,
                        'tax_behavior': 'exclusive',
                    },
                ],
                customer_details={
                    'address': address,
                    'address_source': 'shipping',
                },
            )
            tax_cents = int(calculation.tax_amount_exclusive)
        except stripe.StripeError as exc:
            raise ProviderError(f'Stripe Tax request failed: {exc}') from exc
        except (AttributeError, TypeError, ValueError) as exc:
            raise ProviderError(f'Malformed Stripe Tax response: {exc}') from exc

        if tax_cents <= 0 or request.taxable_cents <= 0:
            return TaxQuote(rate_percent=round_rate(0), amount_cents=0, source=self.SOURCE)

        rate = to_decimal(tax_cents) / Decimal(request.taxable_cents) * 100
        return TaxQuote(
            rate_percent=round_rate(rate),
            amount_cents=tax_cents,
            source=self.SOURCE,
        )
