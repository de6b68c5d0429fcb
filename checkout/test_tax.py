from decimal import Decimal
from unittest.mock import Mock, patch

import httpx
import stripe
from django.test import SimpleTestCase

from checkout.address import CanonicalAddress
from checkout.config import get_checkout_settings
from checkout.errors import TaxPayloadMismatch
from checkout.pricing import dollars_to_cents, fraction_to_percent
from checkout.providers import LineItem, ProviderError, TaxProvider, TaxQuote
from checkout.providers.tax_providers import StripeTaxProvider, TaxJarProvider
from checkout.tax import build_tax_request, destination_from_address, quote_tax

ADDRESS = CanonicalAddress(
    address='10 Example Rd', city='Springfield', state='IL', zipcode='62704', country='US')

ONE_CARD = [LineItem(id='card-001', quantity=1, unit_price=Decimal('9.00'))]


def provider(name, quote=None, error=None):
    mock = Mock(spec=TaxProvider)
    mock.name = name
    if error is not None:
        mock.attempt.side_effect = error
    else:
        mock.attempt.return_value = quote
    return mock


class QuoteTaxTests(SimpleTestCase):

    def setUp(self) -> None:
        self.config = get_checkout_settings()

    def test_payload_mismatch_fails_before_any_provider_call(self):
        primary = provider('taxjar', TaxQuote(Decimal('9.75'), 88, 'taxjar_api'))
        mismatched = [LineItem(id='card-001', quantity=1, unit_price=Decimal('8.00'))]

        with self.assertRaises(TaxPayloadMismatch):
            quote_tax(ADDRESS, 900, mismatched, self.config, providers=[primary])

        self.assertEqual(primary.attempt.call_count, 0)

    @patch('checkout.providers.tax_providers.httpx.post')
    def test_payload_mismatch_never_reaches_taxjar(self, post_mock):
        two_cards = [LineItem(id='card-001', quantity=2, unit_price=Decimal('9.00'))]

        with self.assertRaises(TaxPayloadMismatch):
            quote_tax(ADDRESS, 900, two_cards, self.config)

        post_mock.assert_not_called()

    def test_first_successful_provider_wins(self):
        primary = provider('taxjar', error=ProviderError('down'))
        fallback = provider('stripe', TaxQuote(Decimal('8.0000'), 72, 'stripe_tax'))
        unused = provider('other', TaxQuote(Decimal('1'), 9, 'other'))

        quote = quote_tax(ADDRESS, 900, ONE_CARD, self.config, providers=[primary, fallback, unused])

        self.assertEqual(quote.amount_cents, 72)
        self.assertEqual(quote.source, 'stripe_tax')
        request = primary.attempt.call_args.args[0]
        self.assertEqual(fallback.attempt.call_args.args[0], request)
        unused.attempt.assert_not_called()

    def test_unexpected_exception_falls_through(self):
        primary = provider('taxjar', error=RuntimeError('boom'))
        fallback = provider('stripe', TaxQuote(Decimal('5'), 45, 'stripe_tax'))

        quote = quote_tax(ADDRESS, 900, ONE_CARD, self.config, providers=[primary, fallback])

        self.assertEqual(quote.amount_cents, 45)

    def test_all_failing_yields_zero_tax(self):
        providers = [
            provider('taxjar', error=ProviderError('down')),
            provider('stripe', error=ProviderError('down')),
        ]

        quote = quote_tax(ADDRESS, 900, ONE_CARD, self.config, providers=providers)

        self.assertEqual(quote.amount_cents, 0)
        self.assertEqual(quote.rate_percent, Decimal('0'))
        self.assertIsNone(quote.source)

    def test_negative_tax_is_ignored(self):
        providers = [
            provider('taxjar', TaxQuote(Decimal('1'), -5, 'taxjar_api')),
            provider('stripe', TaxQuote(Decimal('2'), 18, 'stripe_tax')),
        ]

        quote = quote_tax(ADDRESS, 900, ONE_CARD, self.config, providers=providers)

        self.assertEqual(quote.amount_cents, 18)


class TaxJarProviderTests(SimpleTestCase):

    def setUp(self) -> None:
        self.provider = TaxJarProvider({'taxjar_api_key': 'key', 'timeout': 3})
        self.request = build_tax_request(destination_from_address(ADDRESS), 900, ONE_CARD)

    def _response(self, tax):
        response = Mock()
        response.raise_for_status.return_value = None
        response.json.return_value = {'tax': tax}
        return response

    @patch('checkout.providers.tax_providers.httpx.post')
    def test_top_level_rate(self, post_mock):
        post_mock.return_value = self._response({'rate': 0.0975, 'amount_to_collect': 0.88})

        quote = self.provider.attempt(self.request)

        self.assertEqual(quote.rate_percent, Decimal('9.75'))
        self.assertEqual(quote.amount_cents, 88)
        self.assertEqual(quote.source, 'taxjar_api')
        self.assertEqual(post_mock.call_args.kwargs['timeout'], 3.0)
        self.assertEqual(post_mock.call_args.kwargs['headers'], {'Authorization': 'Bearer key'})

    @patch('checkout.providers.tax_providers.httpx.post')
    def test_breakdown_rate_fallback(self, post_mock):
        post_mock.return_value = self._response({
            'amount_to_collect': 0.56,
            'breakdown': {'combined_tax_rate': 0.0625},
        })

        quote = self.provider.attempt(self.request)

        self.assertEqual(quote.rate_percent, Decimal('6.25'))
        self.assertEqual(quote.amount_cents, 56)

    @patch('checkout.providers.tax_providers.httpx.post')
    def test_malformed_response(self, post_mock):
        post_mock.return_value = self._response({'amount_to_collect': 0.56})

        with self.assertRaises(ProviderError):
            self.provider.attempt(self.request)

    @patch('checkout.providers.tax_providers.httpx.post', side_effect=httpx.ReadTimeout('slow'))
    def test_timeout_is_provider_error(self, post_mock):
        with self.assertRaises(ProviderError):
            self.provider.attempt(self.request)

    def test_missing_key(self):
        with self.assertRaises(ProviderError):
            TaxJarProvider({}).attempt(self.request)


class StripeTaxProviderTests(SimpleTestCase):

    def setUp(self) -> None:
        self.provider = StripeTaxProvider({'stripe_secret_key': 'sk_test'})
        self.request = build_tax_request(destination_from_address(ADDRESS), 900, ONE_CARD)

    @patch('checkout.providers.tax_providers.stripe.tax.Calculation.create')
    def test_rate_derived_from_exclusive_amount(self, create_mock):
        create_mock.return_value = Mock(tax_amount_exclusive=88)

        quote = self.provider.attempt(self.request)

        self.assertEqual(quote.amount_cents, 88)
        self.assertEqual(quote.rate_percent, Decimal('9.7778'))
        self.assertEqual(quote.source, 'stripe_tax')
        line_item = create_mock.call_args.kwargs['line_items'][0]
        self.assertEqual(line_item['tax_code'], 'txcd_99999999')
        self.assertEqual(line_item['tax_behavior'], 'exclusive')

    @patch('checkout.providers.tax_providers.stripe.tax.Calculation.create')
    def test_zero_exclusive_amount(self, create_mock):
        create_mock.return_value = Mock(tax_amount_exclusive=0)

        quote = self.provider.attempt(self.request)

        self.assertEqual(quote.amount_cents, 0)
        self.assertEqual(quote.rate_percent, Decimal('0'))

    @patch('checkout.providers.tax_providers.stripe.tax.Calculation.create',
           side_effect=stripe.APIConnectionError('down'))
    def test_stripe_error_is_provider_error(self, create_mock):
        with self.assertRaises(ProviderError):
            self.provider.attempt(self.request)


class MoneyRoundingTests(SimpleTestCase):

    def test_dollars_round_to_nearest_cent(self):
        self.assertEqual(dollars_to_cents(0.88), 88)
        self.assertEqual(dollars_to_cents('0.875'), 88)
        self.assertEqual(dollars_to_cents('0.874'), 87)
        self.assertEqual(dollars_to_cents(1.005), 101)

    def test_percent_has_four_places(self):
        self.assertEqual(fraction_to_percent(0.0975), Decimal('9.7500'))
        self.assertEqual(fraction_to_percent('0.123456'), Decimal('12.3456'))
