"""
Payment record store.

Every write touches a single row. Status writes are last-write-wins with no
concurrency token; backwards transitions are logged and still applied.
"""
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone
from loguru import logger

from checkout.errors import CheckoutValidationError, PaymentNotFound, PersistenceError
from checkout.lifecycle import is_regression, is_valid_status
from checkout.models import CryptoPayment
from checkout.quotes import AssetQuote


def create_payment(**fields: Any) -> CryptoPayment:
    """
    Insert one payment row.

    Raises:
        PersistenceError: when the insert fails; nothing is left behind
    """
    try:
        with transaction.atomic():
            payment = CryptoPayment(**fields)
            payment.save(force_insert=True)
    except IntegrityError as exc:
        existing = find_by_idempotency_key(fields.get('idempotency_key'))
        if existing is not None:
            logger.info('idempotent replay for key {}', existing.idempotency_key)
            return existing
        logger.error('failed to persist crypto payment {}: {}', fields.get('transaction_id'), exc)
        raise PersistenceError('Failed to create payment record') from exc
    except (DatabaseError, ValueError) as exc:
        logger.error('failed to persist crypto payment {}: {}', fields.get('transaction_id'), exc)
        raise PersistenceError('Failed to create payment record') from exc
    return payment


def find_by_idempotency_key(key: Optional[str]) -> Optional[CryptoPayment]:
    if not key:
        return None
    return CryptoPayment.objects.filter(idempotency_key=key).first()


def get_by_transaction_id(transaction_id: str) -> CryptoPayment:
    try:
        return CryptoPayment.objects.get(transaction_id=transaction_id)
    except CryptoPayment.DoesNotExist as exc:
        raise PaymentNotFound(f'Unknown transaction: {transaction_id}') from exc


def update_status(
    transaction_id: str,
    status: str,
    transaction_hash: Optional[str] = None,
    confirmed_at: Optional[datetime] = None,
) -> CryptoPayment:
    if not is_valid_status(status):
        raise CheckoutValidationError(f'Invalid status: {status}')

    payment = get_by_transaction_id(transaction_id)
    previous = payment.status
    if is_regression(previous, status):
        logger.warning(
            'stale status update for {}: {} -> {} (applied, last write wins)',
            transaction_id, previous, status)

    payment.mark_status(status, tx_hash=transaction_hash, confirmed_at=confirmed_at)
    try:
        payment.save(update_fields=['status', 'transaction_hash', 'confirmed_at', 'updated_at'])
    except DatabaseError as exc:
        logger.error('failed to update status for {}: {}', transaction_id, exc)
        raise PersistenceError('Failed to update payment status') from exc

    logger.info('payment {} status {} -> {} tx={}', transaction_id, previous, status, transaction_hash)
    return payment


def _parse_dimension(name: str, value: Any) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise CheckoutValidationError(f'{name} must be numeric') from exc
    if not parsed.is_finite() or parsed < 0:
        raise CheckoutValidationError(f'{name} must be a non-negative number')
    field = CryptoPayment._meta.get_field(name)
    limit = Decimal(10) ** (field.max_digits - field.decimal_places)
    if parsed < limit:
        parsed = parsed.quantize(Decimal(1).scaleb(-field.decimal_places), rounding=ROUND_HALF_UP)
    # 999999.995 only reaches the limit after rounding.
    if parsed >= limit:
        raise CheckoutValidationError(f'{name} is too large')
    return parsed


def update_dimensions(payment_id: int, dimensions: Mapping[str, Any]) -> CryptoPayment:
    """
    Write only the dimension keys present in ``dimensions``.

    Omitted keys keep their stored value; an explicit ``None`` clears one.
    """
    unknown = set(dimensions) - set(CryptoPayment.DIMENSION_FIELDS)
    if unknown:
        raise CheckoutValidationError(f"Only package dimensions can be edited: {', '.join(sorted(unknown))}")

    values: Dict[str, Optional[Decimal]] = {
        name: _parse_dimension(name, value) for name, value in dimensions.items()
    }

    try:
        payment = CryptoPayment.objects.get(pk=payment_id)
    except CryptoPayment.DoesNotExist as exc:
        raise PaymentNotFound(f'Unknown payment: {payment_id}') from exc

    if not values:
        return payment

    for name, value in values.items():
        setattr(payment, name, value)
    try:
        payment.save(update_fields=[*values.keys(), 'updated_at'])
    except DatabaseError as exc:
        logger.error('failed to update dimensions for payment {}: {}', payment_id, exc)
        raise PersistenceError('Failed to update package dimensions') from exc

    logger.info('payment {} dimensions updated: {}', payment.order_id, sorted(values))
    return payment


def save_quote(payment: CryptoPayment, quote: AssetQuote) -> CryptoPayment:
    """Store the first quote for a payment; an existing quote is kept."""
    try:
        with transaction.atomic():
            locked = CryptoPayment.objects.select_for_update().get(pk=payment.pk)
            if locked.has_quote:
                return locked
            locked.asset_symbol = quote.symbol
            locked.asset_amount = quote.amount
            locked.asset_price_usd = quote.price_usd
            locked.price_source = quote.source
            locked.token_address = quote.token_address
            locked.quoted_at = timezone.now()
            locked.save(update_fields=[
                'asset_symbol', 'asset_amount', 'asset_price_usd', 'price_source',
                'token_address', 'quoted_at', 'updated_at',
            ])
    except DatabaseError as exc:
        logger.error('failed to store quote for {}: {}', payment.transaction_id, exc)
        raise PersistenceError('Failed to store price quote') from exc
    return locked
