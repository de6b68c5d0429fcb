"""
Search and CSV export for the admin review surface.

The CSV is always written from the same queryset the search produced, so an
export matches what the reviewer is looking at.
"""
import csv
from typing import IO, Iterable

from django.db.models import Q, QuerySet

from checkout.models import CryptoPayment
from checkout.pricing import format_usd

SEARCH_FIELDS = ('order_id', 'company', 'city', 'country')

CSV_HEADERS = [
    'Order ID', 'Company', 'Address', 'Address Line 2', 'City', 'State',
    'Zipcode', 'Country', 'Order Items', 'Pounds', 'Length', 'Width', 'Height',
    'Amount', 'Tax Rate', 'Status', 'Transaction Hash', 'Created At',
]


def search_payments(queryset: QuerySet, term: str) -> QuerySet:
    term = (term or '').strip()
    if not term:
        return queryset
    condition = Q()
    for name in SEARCH_FIELDS:
        condition |= Q(**{f'{name}__icontains': term})
    return queryset.filter(condition)


def _blank(value) -> str:
    return '' if value is None else str(value)


def csv_row(payment: CryptoPayment) -> list:
    return [
        payment.order_id,
        _blank(payment.company),
        payment.address,
        _blank(payment.address_line_2),
        payment.city,
        payment.state,
        payment.zipcode,
        payment.country,
        _blank(payment.order_items),
        _blank(payment.pounds),
        _blank(payment.length),
        _blank(payment.width),
        _blank(payment.height),
        format_usd(payment.amount_cents),
        f'{payment.tax_rate_percentage.normalize():f}%',
        payment.status,
        _blank(payment.transaction_hash),
        payment.created_at.date().isoformat() if payment.created_at else '',
    ]


def write_csv(payments: Iterable[CryptoPayment], stream: IO[str]) -> int:
    writer = csv.writer(stream, quoting=csv.QUOTE_ALL)
    writer.writerow(CSV_HEADERS)
    count = 0
    for payment in payments:
        writer.writerow(csv_row(payment))
        count += 1
    return count
