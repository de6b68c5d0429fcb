import csv
import io
import json
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from checkout.export import CSV_HEADERS
from checkout.models import CryptoPayment
from checkout.tests import make_payment


def read_csv(response):
    return list(csv.reader(io.StringIO(response.content.decode())))


class AdminPaymentViewsTests(TestCase):

    def setUp(self) -> None:
        User = get_user_model()
        self.staff = User.objects.create_user(username='reviewer', password='pw', is_staff=True)
        self.buyer = User.objects.create_user(username='buyer', password='pw')
        self.springfield = make_payment(company='Acme Cards')
        self.denver = make_payment(
            transaction_id='crypto_1700000000001_zzz999yyy',
            order_id='923111456',
            city='Denver',
            state='CO',
            zipcode='80202',
            company=None,
            amount_cents=988,
            tax_amount_cents=88,
            tax_rate_percentage=Decimal('9.75'),
        )

    def test_requires_staff(self):
        self.client.force_login(self.buyer)

        response = self.client.get(reverse('checkout:admin-payments'))

        self.assertEqual(response.status_code, 403)

    def test_requires_login(self):
        response = self.client.get(reverse('checkout:admin-payments-export'))

        self.assertEqual(response.status_code, 403)

    def test_lists_every_payment(self):
        self.client.force_login(self.staff)

        response = self.client.get(reverse('checkout:admin-payments'))

        self.assertEqual(response.status_code, 200)
        order_ids = {row['order_id'] for row in response.json()}
        self.assertEqual(order_ids, {'923000123', '923111456'})

    def test_search_matches_substring_case_insensitively(self):
        self.client.force_login(self.staff)

        response = self.client.get(reverse('checkout:admin-payments'), {'search': 'acme'})

        rows = response.json()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['order_id'], '923000123')

    def test_search_by_order_id_fragment(self):
        self.client.force_login(self.staff)

        response = self.client.get(reverse('checkout:admin-payments'), {'search': '111'})

        self.assertEqual([row['city'] for row in response.json()], ['Denver'])

    def test_patch_only_touches_given_dimension(self):
        self.springfield.length = Decimal('7.00')
        self.springfield.save()
        self.client.force_login(self.staff)

        response = self.client.patch(
            reverse('checkout:admin-payment-dimensions', args=[self.springfield.pk]),
            data=json.dumps({'pounds': '2.5'}),
            content_type='application/json',
        )

        self.assertEqual(response.status_code, 200)
        self.springfield.refresh_from_db()
        self.assertEqual(self.springfield.pounds, Decimal('2.5'))
        self.assertEqual(self.springfield.length, Decimal('7'))
        self.assertIsNone(self.springfield.width)
        self.assertIsNone(self.springfield.height)

    def test_patch_rejects_negative_dimension(self):
        self.client.force_login(self.staff)

        response = self.client.patch(
            reverse('checkout:admin-payment-dimensions', args=[self.springfield.pk]),
            data=json.dumps({'width': -1}),
            content_type='application/json',
        )

        self.assertEqual(response.status_code, 400)
        self.springfield.refresh_from_db()
        self.assertIsNone(self.springfield.width)

    def test_patch_accepts_form_encoded_body(self):
        self.client.force_login(self.staff)

        response = self.client.patch(
            reverse('checkout:admin-payment-dimensions', args=[self.springfield.pk]),
            data='pounds=1.5&height=4',
            content_type='application/x-www-form-urlencoded',
        )

        self.assertEqual(response.status_code, 200)
        self.springfield.refresh_from_db()
        self.assertEqual(self.springfield.pounds, Decimal('1.5'))
        self.assertEqual(self.springfield.height, Decimal('4'))

    def test_patch_rejects_dimension_wider_than_column(self):
        self.client.force_login(self.staff)

        response = self.client.patch(
            reverse('checkout:admin-payment-dimensions', args=[self.springfield.pk]),
            data=json.dumps({'length': 1e9}),
            content_type='application/json',
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'length is too large'})
        self.springfield.refresh_from_db()
        self.assertIsNone(self.springfield.length)

    def test_patch_rejects_other_fields(self):
        self.client.force_login(self.staff)

        response = self.client.patch(
            reverse('checkout:admin-payment-dimensions', args=[self.springfield.pk]),
            data=json.dumps({'amount_cents': 1}),
            content_type='application/json',
        )

        self.assertEqual(response.status_code, 400)
        self.springfield.refresh_from_db()
        self.assertEqual(self.springfield.amount_cents, 964)

    def test_patch_unknown_payment(self):
        self.client.force_login(self.staff)

        response = self.client.patch(
            reverse('checkout:admin-payment-dimensions', args=[99999]),
            data=json.dumps({'pounds': 1}),
            content_type='application/json',
        )

        self.assertEqual(response.status_code, 404)

    def test_export_matches_filtered_view(self):
        self.client.force_login(self.staff)

        listed = self.client.get(reverse('checkout:admin-payments'), {'search': 'denver'}).json()
        response = self.client.get(reverse('checkout:admin-payments-export'), {'search': 'denver'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertIn('attachment; filename="crypto-payments-', response['Content-Disposition'])
        rows = read_csv(response)
        self.assertEqual(rows[0], CSV_HEADERS)
        self.assertEqual([row[0] for row in rows[1:]], [row['order_id'] for row in listed])

    def test_export_row_format(self):
        self.client.force_login(self.staff)

        response = self.client.get(reverse('checkout:admin-payments-export'), {'search': '923111456'})

        row = dict(zip(CSV_HEADERS, read_csv(response)[1]))
        self.assertEqual(row['Company'], '')
        self.assertEqual(row['City'], 'Denver')
        self.assertEqual(row['Amount'], '$9.88')
        self.assertEqual(row['Tax Rate'], '9.75%')
        self.assertEqual(row['Status'], 'pending')
        self.assertEqual(row['Pounds'], '')
        self.assertEqual(row['Created At'], self.denver.created_at.date().isoformat())

    def test_export_quotes_every_field(self):
        self.client.force_login(self.staff)

        response = self.client.get(reverse('checkout:admin-payments-export'))

        first_line = response.content.decode().splitlines()[0]
        self.assertTrue(first_line.startswith('"Order ID","Company"'))
        self.assertEqual(len(read_csv(response)), 3)


class CryptoPaymentModelAdminTests(TestCase):

    def setUp(self) -> None:
        self.admin_user = get_user_model().objects.create_superuser(
            username='admin', email='admin@example.com', password='pw')
        self.payment = make_payment()
        self.client.force_login(self.admin_user)

    def test_changelist_renders(self):
        response = self.client.get(reverse('admin:checkout_cryptopayment_changelist'))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, '923000123')

    def test_export_action(self):
        response = self.client.post(
            reverse('admin:checkout_cryptopayment_changelist'),
            {'action': 'export_csv', '_selected_action': [self.payment.pk]},
        )

        self.assertEqual(response.status_code, 200)
        rows = read_csv(response)
        self.assertEqual(rows[0], CSV_HEADERS)
        self.assertEqual(rows[1][0], '923000123')

    def test_no_delete_permission(self):
        response = self.client.post(
            reverse('admin:checkout_cryptopayment_delete', args=[self.payment.pk]),
            {'post': 'yes'},
        )

        self.assertEqual(response.status_code, 403)
        self.assertTrue(CryptoPayment.objects.filter(pk=self.payment.pk).exists())
