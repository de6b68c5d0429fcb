"""
Checkout views: crypto payment creation, status reporting and quotes.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.authentication import SessionAuthentication
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from checkout import store
from checkout.address import normalize_address
from checkout.config import get_checkout_settings
from checkout.credits import start_credits_checkout
from checkout.errors import (
    CheckoutError,
    CheckoutValidationError,
    PaymentNotFound,
    PersistenceError,
)
from checkout.lifecycle import PaymentStatus
from checkout.models import CryptoPayment
from checkout.pricing import (
    MAX_AMOUNT_CENTS,
    cents_to_dollars,
    clamp_quantity,
    format_usd,
    generate_order_id,
    generate_transaction_id,
)
from checkout.providers import LineItem
from checkout.quotes import NATIVE_ASSET, SUPPORTED_ASSETS, quote_asset_amount
from checkout.tax import quote_tax

LINE_ITEM_ID = 'card-001'


class CryptoPaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    listing_id: Optional[str] = Field(default=None, alias='listingId')
    quantity: Any = 1
    include_display_case: bool = Field(default=False, alias='includeDisplayCase')
    display_case_quantity: int = Field(default=1, ge=1, alias='displayCaseQuantity')
    card_finish: str = Field(default='matte', alias='cardFinish')
    shipping_address: Optional[dict] = Field(default=None, alias='shippingAddress')
    order_items: str = Field(default='Custom Card', alias='orderItems')
    custom_image_url: Optional[str] = Field(default=None, alias='customImageUrl')
    cart_items: Optional[List[Any]] = Field(default=None, alias='cartItems')
    idempotency_key: Optional[str] = Field(default=None, alias='idempotencyKey', max_length=128)


class StatusUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    transaction_id: str = Field(alias='transactionId', min_length=1)
    status: str
    transaction_hash: Optional[str] = Field(default=None, alias='transactionHash', max_length=66)
    confirmed_at: Optional[datetime] = Field(default=None, alias='confirmedAt')


class QuoteRequest(BaseModel):
    asset: str = NATIVE_ASSET


class BuyerSessionAuthentication(SessionAuthentication):
    """
    Attach a logged-in buyer to the request without the CSRF check.

    Creation is open to anonymous buyers, so a session only labels the row.
    """

    def enforce_csrf(self, request):
        return


def _error(message: str, http_status: int) -> Response:
    return Response({'error': message}, status=http_status)


def _parse(model, data):
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        logger.debug('pydantic validation failed: {}', exc)
        first = exc.errors()[0]
        location = '.'.join(str(part) for part in first.get('loc', ()))
        raise CheckoutValidationError(
            f'Invalid field {location}: {first.get("msg")}' if location else 'Invalid request body.'
        ) from exc


def _payment_response(payment: CryptoPayment) -> dict:
    return {
        'success': True,
        'transactionId': payment.transaction_id,
        'orderId': payment.order_id,
        'amount': payment.amount_cents,
        'baseAmount': payment.base_amount_cents,
        'shippingAmount': 0,
        'taxAmount': payment.tax_amount_cents,
        'taxRate': float(payment.tax_rate_percentage),
        'receivingAddress': payment.receiving_address,
        'paymentId': payment.pk,
        'message': (
            f'Please send {format_usd(payment.amount_cents)} USD worth of crypto '
            'to the address below.'
        ),
    }


def _quote_response(payment: CryptoPayment) -> dict:
    return {
        'transactionId': payment.transaction_id,
        'asset': payment.asset_symbol,
        'amount': payment.asset_amount,
        'priceUsd': str(payment.asset_price_usd) if payment.asset_price_usd is not None else None,
        'priceSource': payment.price_source,
        'quotedAt': payment.quoted_at.isoformat() if payment.quoted_at else None,
        'totalUsd': str(cents_to_dollars(payment.amount_cents)),
        'receivingAddress': payment.receiving_address,
        'tokenAddress': payment.token_address,
    }


class CryptoPaymentCreateView(APIView):
    """
    Create a crypto payment with tax applied.

    The address is validated before any external call. Tax failures degrade
    to zero tax; only validation (400) and persistence (500) errors surface.
    """
    authentication_classes = [BuyerSessionAuthentication]
    permission_classes: list = []

    def post(self, request, *args, **kwargs):
        config = get_checkout_settings()
        try:
            body = _parse(CryptoPaymentRequest, request.data)
            address = normalize_address(body.shipping_address)
        except CheckoutValidationError as exc:
            logger.info('crypto payment rejected: {}', exc.message)
            return _error(exc.message, status.HTTP_400_BAD_REQUEST)

        idempotency_key = body.idempotency_key or request.headers.get('Idempotency-Key') or None
        existing = store.find_by_idempotency_key(idempotency_key)
        if existing is not None:
            logger.info('idempotent replay for key {} -> {}', idempotency_key, existing.transaction_id)
            return Response(_payment_response(existing), status=status.HTTP_200_OK)

        try:
            quantity = clamp_quantity(body.quantity)
            unit_price = cents_to_dollars(config.unit_price_cents)
            base_amount_cents = config.unit_price_cents * quantity
            if base_amount_cents > MAX_AMOUNT_CENTS:
                raise CheckoutValidationError('Quantity is too large.')
            line_items = [LineItem(id=LINE_ITEM_ID, quantity=quantity, unit_price=unit_price)]

            tax_quote = quote_tax(address, base_amount_cents, line_items, config)
            total_amount_cents = base_amount_cents + tax_quote.amount_cents
            if total_amount_cents > MAX_AMOUNT_CENTS:
                raise CheckoutValidationError('Quantity is too large.')

            metadata = {'payment_method': 'crypto'}
            if tax_quote.source:
                metadata['tax_calculation_source'] = tax_quote.source
            if body.custom_image_url:
                metadata['custom_image_url'] = body.custom_image_url
            if body.cart_items:
                metadata['cart_items'] = body.cart_items
            if body.listing_id:
                metadata['listing_id'] = body.listing_id

            buyer = request.user if request.user and request.user.is_authenticated else None
            payment = store.create_payment(
                transaction_id=generate_transaction_id(),
                order_id=generate_order_id(),
                idempotency_key=idempotency_key,
                buyer=buyer,
                listing_id=body.listing_id,
                amount_cents=total_amount_cents,
                base_amount_cents=base_amount_cents,
                tax_amount_cents=tax_quote.amount_cents,
                tax_rate_percentage=tax_quote.rate_percent,
                currency='USD',
                status=PaymentStatus.PENDING,
                receiving_address=config.receiving_address,
                order_items=body.order_items,
                quantity=quantity,
                include_display_case=body.include_display_case,
                display_case_quantity=body.display_case_quantity,
                card_finish=body.card_finish,
                pounds=None,
                length=None,
                width=None,
                height=None,
                metadata=metadata,
                **address.as_record(),
            )
        except CheckoutValidationError as exc:
            logger.info('crypto payment rejected: {}', exc.message)
            return _error(exc.message, status.HTTP_400_BAD_REQUEST)
        except PersistenceError as exc:
            return _error(str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
        except Exception as exc:
            logger.exception('crypto payment creation error: {}', exc)
            return _error('Payment creation failed', status.HTTP_500_INTERNAL_SERVER_ERROR)

        logger.info(
            'crypto payment saved: id={} transaction_id={} base={} tax={} ({}%) total={} source={}',
            payment.pk, payment.transaction_id, payment.base_amount_cents,
            payment.tax_amount_cents, payment.tax_rate_percentage, payment.amount_cents,
            tax_quote.source)
        return Response(_payment_response(payment), status=status.HTTP_200_OK)


class CryptoPaymentStatusView(APIView):
    """Record a client-observed status transition (advisory, last write wins)."""
    authentication_classes: list = []
    permission_classes: list = []

    def post(self, request, *args, **kwargs):
        try:
            body = _parse(StatusUpdateRequest, request.data)
            store.update_status(
                body.transaction_id,
                body.status,
                transaction_hash=body.transaction_hash,
                confirmed_at=body.confirmed_at,
            )
        except CheckoutValidationError as exc:
            logger.info('status update rejected: {}', exc.message)
            return _error(exc.message, status.HTTP_400_BAD_REQUEST)
        except PaymentNotFound as exc:
            logger.info('status update for unknown payment: {}', exc)
            return _error('Payment not found', status.HTTP_404_NOT_FOUND)
        except PersistenceError as exc:
            return _error(str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response({'success': True}, status=status.HTTP_200_OK)

    def put(self, request, *args, **kwargs):
        return self.post(request, *args, **kwargs)


class CryptoPaymentDetailView(APIView):
    authentication_classes: list = []
    permission_classes: list = []

    def get(self, request, transaction_id, *args, **kwargs):
        try:
            payment = store.get_by_transaction_id(transaction_id)
        except PaymentNotFound:
            return _error('Payment not found', status.HTTP_404_NOT_FOUND)
        return Response(
            {
                **_payment_response(payment),
                'status': payment.status,
                'transactionHash': payment.transaction_hash,
                'confirmedAt': payment.confirmed_at.isoformat() if payment.confirmed_at else None,
                'quote': _quote_response(payment) if payment.has_quote else None,
            },
            status=status.HTTP_200_OK,
        )


class CryptoPaymentQuoteView(APIView):
    """
    Quote the asset amount for a payment.

    The first quote is cached on the row and returned on every later call,
    so the amount shown is the amount sent.
    """
    authentication_classes: list = []
    permission_classes: list = []

    def post(self, request, transaction_id, *args, **kwargs):
        try:
            body = _parse(QuoteRequest, request.data or {})
            asset = body.asset.upper()
            if asset not in SUPPORTED_ASSETS:
                raise CheckoutValidationError(f'Unsupported asset: {body.asset}')
            payment = store.get_by_transaction_id(transaction_id)
        except CheckoutValidationError as exc:
            return _error(exc.message, status.HTTP_400_BAD_REQUEST)
        except PaymentNotFound:
            return _error('Payment not found', status.HTTP_404_NOT_FOUND)

        if payment.has_quote:
            logger.debug('reusing cached quote for {}: {} {}',
                         payment.transaction_id, payment.asset_amount, payment.asset_symbol)
            return Response(_quote_response(payment), status=status.HTTP_200_OK)

        try:
            quote = quote_asset_amount(payment.amount_cents, asset, get_checkout_settings())
            payment = store.save_quote(payment, quote)
        except PersistenceError as exc:
            return _error(str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)

        logger.info('quoted {} {} for {} (${} via {})', payment.asset_amount, payment.asset_symbol,
                    payment.transaction_id, payment.asset_price_usd, payment.price_source)
        return Response(_quote_response(payment), status=status.HTTP_200_OK)


class CreditsCheckoutView(APIView):
    authentication_classes = [SessionAuthentication]
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        try:
            checkout = start_credits_checkout(request.user, request.data.get('usd'))
        except CheckoutValidationError as exc:
            return _error(exc.message, status.HTTP_400_BAD_REQUEST)
        except CheckoutError as exc:
            return _error(str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response(
            {'url': checkout.url, 'credits': checkout.credits, 'usd': checkout.usd},
            status=status.HTTP_200_OK,
        )
