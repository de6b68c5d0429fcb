"""
Credits purchase through a Stripe Checkout session.

$1 buys 400 credits, with a $10 minimum. Crediting the account happens in
the card processor's webhook flow, outside this service.
"""
from dataclasses import dataclass

import stripe
from django.conf import settings
from loguru import logger

from checkout.errors import CheckoutError, CheckoutValidationError

CREDITS_PER_USD = 400
MIN_PURCHASE_USD = 10
MAX_PURCHASE_USD = 1000

PACKS = (
    {'usd': 10, 'credits': 4000, 'tag': 'Starter'},
    {'usd': 25, 'credits': 10000, 'tag': 'Popular'},
    {'usd': 50, 'credits': 20000, 'tag': 'Best Value'},
)


@dataclass(frozen=True)
class CreditsCheckout:
    session_id: str
    url: str
    usd: int
    credits: int


def credits_for(usd) -> int:
    if isinstance(usd, bool) or not isinstance(usd, int):
        raise CheckoutValidationError('usd must be a whole number of dollars')
    if usd < MIN_PURCHASE_USD:
        raise CheckoutValidationError(f'Minimum purchase is ${MIN_PURCHASE_USD}')
    if usd > MAX_PURCHASE_USD:
        raise CheckoutValidationError(f'Maximum purchase is ${MAX_PURCHASE_USD}')
    return usd * CREDITS_PER_USD


def start_credits_checkout(user, usd) -> CreditsCheckout:
    credits = credits_for(usd)
    api_key = getattr(settings, 'STRIPE_SECRET_KEY', '')
    if not api_key:
        raise CheckoutError('Stripe secret key not configured')

    try:
        session = stripe.checkout.Session.create(
            api_key=api_key,
            mode='payment',
            line_items=[
                {
                    'price_data': {
                        'currency': 'usd',
                        'unit_amount': usd * 100,
                        'product_data': {'name': f'{credits} credits'},
                    },
                    'quantity': 1,
                },
            ],
            success_url=settings.CREDITS_SUCCESS_URL,
            cancel_url=settings.CREDITS_CANCEL_URL,
            client_reference_id=str(user.pk),
            metadata={
                'kind': 'credits',
                'user_id': str(user.pk),
                'credits': str(credits),
            },
        )
    except stripe.StripeError as exc:
        logger.error('credits checkout failed for user {}: {}', user.pk, exc)
        raise CheckoutError('Checkout failed') from exc

    logger.info('credits checkout {} started for user {}: ${} -> {} credits',
                session.id, user.pk, usd, credits)
    return CreditsCheckout(session_id=session.id, url=session.url, usd=usd, credits=credits)
