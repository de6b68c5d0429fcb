import json
from decimal import Decimal
from unittest.mock import Mock, patch

import httpx
import stripe
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import Client, TestCase, override_settings
from django.urls import reverse

from checkout.lifecycle import PaymentStatus
from checkout.models import CryptoPayment

RECEIVING_ADDRESS = '0x9aE153b6C37D812e1BE8C55Ff0dd73c879cb34F8'

FORM_ADDRESS = {
    'email': 'buyer@example.com',
    'name': 'Test Buyer',
    'line1': '10 Example Rd',
    'city': 'Springfield',
    'state': 'IL',
    'postal_code': '62704',
    'country': 'US',
}


def taxjar_response(rate=0.0975, amount_to_collect=0.88, **extra):
    response = Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = {
        'tax': {
            'rate': rate,
            'amount_to_collect': amount_to_collect,
            'taxable_amount': 9.0,
            **extra,
        }
    }
    return response


def make_payment(**overrides) -> CryptoPayment:
    fields = {
        'transaction_id': 'crypto_1700000000000_abc123def',
        'order_id': '923000123',
        'amount_cents': 964,
        'base_amount_cents': 900,
        'tax_amount_cents': 64,
        'tax_rate_percentage': Decimal('7.1111'),
        'receiving_address': RECEIVING_ADDRESS,
        'address': '10 Example Rd',
        'city': 'Springfield',
        'state': 'IL',
        'zipcode': '62704',
        'country': 'US',
    }
    fields.update(overrides)
    return CryptoPayment.objects.create(**fields)


@override_settings(CHECKOUT_RECEIVING_ADDRESS=RECEIVING_ADDRESS, CHECKOUT_UNIT_PRICE_CENTS=900)
class CryptoPaymentCreateViewTests(TestCase):

    def _post(self, payload, **extra):
        return self.client.post(
            reverse('checkout:create'),
            data=json.dumps(payload),
            content_type='application/json',
            **extra,
        )

    @patch('checkout.providers.tax_providers.httpx.post')
    def test_create_applies_taxjar_quote(self, post_mock):
        post_mock.return_value = taxjar_response()

        response = self._post({'shippingAddress': FORM_ADDRESS, 'quantity': 1})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['baseAmount'], 900)
        self.assertEqual(body['taxAmount'], 88)
        self.assertEqual(body['amount'], 988)
        self.assertEqual(body['shippingAmount'], 0)
        self.assertEqual(body['taxRate'], 9.75)
        self.assertEqual(body['receivingAddress'], RECEIVING_ADDRESS)
        self.assertIn('$9.88 USD', body['message'])

        record = CryptoPayment.objects.get()
        self.assertEqual(record.pk, body['paymentId'])
        self.assertEqual(record.transaction_id, body['transactionId'])
        self.assertEqual(record.base_amount_cents, 900)
        self.assertEqual(record.tax_amount_cents, 88)
        self.assertEqual(record.amount_cents, 988)
        self.assertEqual(record.tax_rate_percentage, Decimal('9.75'))
        self.assertEqual(record.status, PaymentStatus.PENDING)
        self.assertEqual(record.address, '10 Example Rd')
        self.assertEqual(record.zipcode, '62704')
        self.assertEqual(record.metadata['tax_calculation_source'], 'taxjar_api')
        self.assertEqual(record.metadata['payment_method'], 'crypto')
        self.assertIsNone(record.pounds)
        self.assertIsNone(record.confirmed_at)
        self.assertTrue(record.order_id.startswith('923'))

        sent = post_mock.call_args.kwargs['json']
        self.assertEqual(sent['amount'], 9.0)
        self.assertEqual(sent['shipping'], 0)
        self.assertEqual(sent['to_zip'], '62704')
        self.assertEqual(sent['from_state'], 'NV')
        self.assertEqual(sent['line_items'], [{'id': 'card-001', 'quantity': 1, 'unit_price': 9.0}])

    @patch('checkout.providers.tax_providers.httpx.post')
    def test_quantity_is_floored_and_clamped(self, post_mock):
        post_mock.return_value = taxjar_response(rate=0, amount_to_collect=0)

        self._post({'shippingAddress': FORM_ADDRESS, 'quantity': 2.7})
        self._post({'shippingAddress': FORM_ADDRESS, 'quantity': -4})

        quantities = sorted(CryptoPayment.objects.values_list('quantity', flat=True))
        self.assertEqual(quantities, [1, 2])
        self.assertEqual(
            sorted(CryptoPayment.objects.values_list('base_amount_cents', flat=True)),
            [900, 1800],
        )

    @patch('checkout.providers.tax_providers.httpx.post')
    def test_logged_in_buyer_without_csrf_token(self, post_mock):
        post_mock.return_value = taxjar_response()
        buyer = get_user_model().objects.create_user(username='buyer', password='pw')
        client = Client(enforce_csrf_checks=True)
        client.force_login(buyer)

        response = client.post(
            reverse('checkout:create'),
            data=json.dumps({'shippingAddress': FORM_ADDRESS}),
            content_type='application/json',
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(CryptoPayment.objects.get().buyer, buyer)

    @patch('checkout.providers.tax_providers.httpx.post')
    def test_oversized_quantity_rejected_before_tax_call(self, post_mock):
        response = self._post({'shippingAddress': FORM_ADDRESS, 'quantity': 1e20})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Quantity is too large.'})
        post_mock.assert_not_called()
        self.assertEqual(CryptoPayment.objects.count(), 0)

    @patch('checkout.providers.tax_providers.httpx.post')
    def test_missing_address_fields_rejected_before_tax_call(self, post_mock):
        address = dict(FORM_ADDRESS, city='  ')

        response = self._post({'shippingAddress': address})

        self.assertEqual(response.status_code, 400)
        self.assertIn('Missing required address fields', response.json()['error'])
        post_mock.assert_not_called()
        self.assertEqual(CryptoPayment.objects.count(), 0)

    def test_missing_shipping_address(self):
        response = self._post({'quantity': 1})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Missing shipping address'})

    @patch('checkout.providers.tax_providers.stripe.tax.Calculation.create')
    @patch('checkout.providers.tax_providers.httpx.post')
    def test_falls_back_to_stripe_tax(self, post_mock, stripe_mock):
        post_mock.side_effect = httpx.ConnectError('taxjar down')
        stripe_mock.return_value = Mock(tax_amount_exclusive=74)

        response = self._post({'shippingAddress': FORM_ADDRESS})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['taxAmount'], 74)
        self.assertEqual(body['amount'], 974)
        self.assertEqual(body['taxRate'], 8.2222)

        kwargs = stripe_mock.call_args.kwargs
        self.assertEqual(kwargs['customer_details']['address']['postal_code'], '62704')
        self.assertEqual(kwargs['customer_details']['address']['line1'], '10 Example Rd')
        self.assertEqual(kwargs['line_items'][0]['tax_behavior'], 'exclusive')
        self.assertEqual(kwargs['line_items'][0]['amount'], 900)

        record = CryptoPayment.objects.get()
        self.assertEqual(record.metadata['tax_calculation_source'], 'stripe_tax')

    @patch('checkout.providers.tax_providers.stripe.tax.Calculation.create')
    @patch('checkout.providers.tax_providers.httpx.post')
    def test_zero_tax_when_both_providers_fail(self, post_mock, stripe_mock):
        post_mock.side_effect = httpx.ReadTimeout('taxjar timed out')
        stripe_mock.side_effect = stripe.APIConnectionError('stripe down')

        response = self._post({'shippingAddress': FORM_ADDRESS})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['taxAmount'], 0)
        self.assertEqual(body['amount'], 900)
        stripe_mock.assert_called_once()

        record = CryptoPayment.objects.get()
        self.assertEqual(record.tax_amount_cents, 0)
        self.assertEqual(record.amount_cents, record.base_amount_cents)
        self.assertNotIn('tax_calculation_source', record.metadata)

    @override_settings(TAXJAR_API_KEY='', STRIPE_SECRET_KEY='')
    def test_missing_tax_credentials_do_not_block_checkout(self):
        response = self._post({'shippingAddress': FORM_ADDRESS})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['taxAmount'], 0)

    @patch('checkout.providers.tax_providers.httpx.post')
    def test_idempotency_key_collapses_retries(self, post_mock):
        post_mock.return_value = taxjar_response()
        payload = {'shippingAddress': FORM_ADDRESS, 'idempotencyKey': 'checkout-attempt-1'}

        first = self._post(payload)
        second = self._post(payload)

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(first.json()['transactionId'], second.json()['transactionId'])
        self.assertEqual(CryptoPayment.objects.count(), 1)
        self.assertEqual(post_mock.call_count, 1)

    @patch('checkout.providers.tax_providers.httpx.post')
    def test_idempotency_key_header(self, post_mock):
        post_mock.return_value = taxjar_response()

        self._post({'shippingAddress': FORM_ADDRESS}, HTTP_IDEMPOTENCY_KEY='hdr-key')
        self._post({'shippingAddress': FORM_ADDRESS}, HTTP_IDEMPOTENCY_KEY='hdr-key')

        self.assertEqual(CryptoPayment.objects.count(), 1)

    @patch('checkout.providers.tax_providers.httpx.post')
    def test_duplicate_submissions_without_key_create_two_rows(self, post_mock):
        post_mock.return_value = taxjar_response()

        self._post({'shippingAddress': FORM_ADDRESS})
        self._post({'shippingAddress': FORM_ADDRESS})

        self.assertEqual(CryptoPayment.objects.count(), 2)

    @patch('checkout.store.CryptoPayment.save', side_effect=DatabaseError('db down'))
    @patch('checkout.providers.tax_providers.httpx.post')
    def test_persistence_failure_returns_500(self, post_mock, save_mock):
        post_mock.return_value = taxjar_response()

        response = self._post({'shippingAddress': FORM_ADDRESS})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'error': 'Failed to create payment record'})

    @patch('checkout.providers.tax_providers.httpx.post')
    def test_order_metadata_is_stored(self, post_mock):
        post_mock.return_value = taxjar_response()
        cart = [{'sku': 'card', 'qty': 1}]

        self._post({
            'shippingAddress': dict(FORM_ADDRESS, company='Acme'),
            'listingId': 'listing-42',
            'includeDisplayCase': True,
            'cardFinish': 'holo',
            'customImageUrl': 'https://cdn.example.com/art.png',
            'cartItems': cart,
        })

        record = CryptoPayment.objects.get()
        self.assertEqual(record.company, 'Acme')
        self.assertEqual(record.listing_id, 'listing-42')
        self.assertTrue(record.include_display_case)
        self.assertEqual(record.card_finish, 'holo')
        self.assertEqual(record.metadata['custom_image_url'], 'https://cdn.example.com/art.png')
        self.assertEqual(record.metadata['cart_items'], cart)


class CryptoPaymentStatusViewTests(TestCase):

    def setUp(self) -> None:
        self.payment = make_payment()

    def _put(self, payload):
        return self.client.put(
            reverse('checkout:status'),
            data=json.dumps(payload),
            content_type='application/json',
        )

    def test_submitted_records_hash(self):
        tx_hash = '0x' + 'ab' * 32

        response = self._put({
            'transactionId': self.payment.transaction_id,
            'status': 'submitted',
            'transactionHash': tx_hash,
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'success': True})
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.SUBMITTED)
        self.assertEqual(self.payment.transaction_hash, tx_hash)
        self.assertIsNone(self.payment.confirmed_at)

    def test_complete_stamps_confirmation_time(self):
        response = self._put({
            'transactionId': self.payment.transaction_id,
            'status': 'complete',
            'confirmedAt': '2026-01-02T03:04:05Z',
        })

        self.assertEqual(response.status_code, 200)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETE)
        self.assertEqual(self.payment.confirmed_at.isoformat(), '2026-01-02T03:04:05+00:00')

    def test_stale_update_is_last_write_wins(self):
        self._put({'transactionId': self.payment.transaction_id, 'status': 'complete'})
        response = self._put({'transactionId': self.payment.transaction_id, 'status': 'processing'})

        self.assertEqual(response.status_code, 200)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.PROCESSING)

    def test_post_is_accepted(self):
        response = self.client.post(
            reverse('checkout:status'),
            data=json.dumps({'transactionId': self.payment.transaction_id, 'status': 'failed'}),
            content_type='application/json',
        )

        self.assertEqual(response.status_code, 200)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.FAILED)

    def test_invalid_status_rejected(self):
        response = self._put({'transactionId': self.payment.transaction_id, 'status': 'refunded'})

        self.assertEqual(response.status_code, 400)
        self.assertIn('Invalid status', response.json()['error'])

    def test_unknown_transaction(self):
        response = self._put({'transactionId': 'crypto_missing', 'status': 'submitted'})

        self.assertEqual(response.status_code, 404)

    def test_missing_transaction_id(self):
        response = self._put({'status': 'submitted'})

        self.assertEqual(response.status_code, 400)


@override_settings(CHECKOUT_CHAIN_ID=84532)
class CryptoPaymentQuoteViewTests(TestCase):

    def setUp(self) -> None:
        self.payment = make_payment()

    def _quote(self, payload=None):
        return self.client.post(
            reverse('checkout:quote', args=[self.payment.transaction_id]),
            data=json.dumps(payload or {}),
            content_type='application/json',
        )

    def test_testnet_quote_uses_fixed_price(self):
        response = self._quote()

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['asset'], 'ETH')
        self.assertEqual(body['amount'], '0.003213')
        self.assertEqual(body['priceSource'], 'fixed')
        self.assertEqual(Decimal(body['priceUsd']), Decimal('3000'))
        self.assertEqual(body['totalUsd'], '9.64')

    def test_quote_is_cached(self):
        first = self._quote().json()

        with patch('checkout.views.quote_asset_amount', side_effect=AssertionError('re-quoted')):
            second = self._quote().json()

        self.assertEqual(first['amount'], second['amount'])
        self.assertEqual(first['quotedAt'], second['quotedAt'])

    def test_usdc_quote_records_token(self):
        response = self._quote({'asset': 'usdc'})

        body = response.json()
        self.assertEqual(body['asset'], 'USDC')
        self.assertEqual(body['amount'], '9.640000')
        self.assertEqual(body['priceSource'], 'stablecoin_peg')
        self.assertTrue(body['tokenAddress'])

    def test_unsupported_asset(self):
        response = self._quote({'asset': 'DOGE'})

        self.assertEqual(response.status_code, 400)

    def test_detail_includes_cached_quote(self):
        self._quote()

        response = self.client.get(reverse('checkout:detail', args=[self.payment.transaction_id]))

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['status'], 'pending')
        self.assertEqual(body['quote']['amount'], '0.003213')


class CreditsCheckoutViewTests(TestCase):

    def setUp(self) -> None:
        self.user = get_user_model().objects.create_user('buyer', password='secret-pass-123')

    def _post(self, payload):
        return self.client.post(
            reverse('checkout:credits-checkout'),
            data=json.dumps(payload),
            content_type='application/json',
        )

    def test_requires_login(self):
        response = self._post({'usd': 10})

        self.assertEqual(response.status_code, 403)

    @patch('checkout.credits.stripe.checkout.Session.create')
    def test_creates_checkout_session(self, session_mock):
        session_mock.return_value = Mock(id='cs_test_1', url='https://checkout.stripe.com/c/pay/cs_test_1')
        self.client.force_login(self.user)

        response = self._post({'usd': 25})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['url'], 'https://checkout.stripe.com/c/pay/cs_test_1')
        self.assertEqual(body['credits'], 10000)
        kwargs = session_mock.call_args.kwargs
        self.assertEqual(kwargs['line_items'][0]['price_data']['unit_amount'], 2500)
        self.assertEqual(kwargs['metadata']['credits'], '10000')

    def test_rejects_below_minimum(self):
        self.client.force_login(self.user)

        response = self._post({'usd': 5})

        self.assertEqual(response.status_code, 400)
        self.assertIn('Minimum', response.json()['error'])

    @patch('checkout.credits.stripe.checkout.Session.create',
           side_effect=stripe.APIConnectionError('stripe down'))
    def test_stripe_failure(self, session_mock):
        self.client.force_login(self.user)

        response = self._post({'usd': 10})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'error': 'Checkout failed'})
