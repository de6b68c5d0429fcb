"""
Money arithmetic and payment identifiers.

Money is carried as integer cents. Conversions from dollars or derived rates
go through :class:`~decimal.Decimal` and round half-up, never truncate.
"""
import math
import random
import string
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[int, float, str, Decimal]

CENT = Decimal('0.01')
RATE_PLACES = Decimal('0.0001')
ASSET_PLACES = Decimal('0.000001')

# Upper bound of the integer cents columns.
MAX_AMOUNT_CENTS = 2_147_483_647

ORDER_ID_PREFIX = '923'
_BASE36 = string.digits + string.ascii_lowercase


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.88 from dragging in binary noise.
    return Decimal(str(value))


def dollars_to_cents(amount: Number) -> int:
    return int((to_decimal(amount) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def cents_to_dollars(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def round_rate(rate: Number) -> Decimal:
    return to_decimal(rate).quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def fraction_to_percent(rate: Number) -> Decimal:
    """0.0975 -> Decimal('9.7500')"""
    return round_rate(to_decimal(rate) * 100)


def clamp_quantity(quantity) -> int:
    try:
        value = float(quantity)
    except (TypeError, ValueError):
        return 1
    if math.isnan(value) or math.isinf(value):
        return 1
    return max(1, math.floor(value))


def format_usd(cents: int) -> str:
    return f'${cents_to_dollars(cents)}'


def usd_to_asset(usd_cents: int, price_per_unit: Number, places: Decimal = ASSET_PLACES) -> str:
    """
    Convert a USD amount in cents to an asset quantity string.

    The result is quantized to ``places`` rounding half away from zero, so
    964 cents at $3000 yields ``'0.003213'``.
    """
    price = to_decimal(price_per_unit)
    if price <= 0:
        raise ValueError('Asset price must be positive.')
    amount = (Decimal(usd_cents) / 100) / price
    return str(amount.quantize(places, rounding=ROUND_HALF_UP))


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_transaction_id() -> str:
    suffix = ''.join(random.choice(_BASE36) for _ in range(9))
    return f'crypto_{_now_ms()}_{suffix}'


def generate_order_id() -> str:
    # Display id only; collisions are possible and tolerated.
    return f'{ORDER_ID_PREFIX}{str(_now_ms())[-3:]}{random.randrange(1000):03d}'
