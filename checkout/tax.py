"""
Tax quoting across an ordered chain of providers.

Tax failure never blocks checkout: when every provider fails the order is
taxed at zero and the quote carries no source tag. This degradation is
silent to the buyer and only visible in logs and on the stored row.
"""
from decimal import Decimal
from typing import Iterable, List, Optional

from loguru import logger

from checkout.address import CanonicalAddress
from checkout.config import CheckoutSettings
from checkout.errors import TaxPayloadMismatch
from checkout.pricing import CENT, round_rate
from checkout.providers import (
    Destination,
    LineItem,
    ProviderError,
    ProviderFactory,
    TaxProvider,
    TaxQuote,
    TaxRequest,
)

ZERO_TAX = TaxQuote(rate_percent=round_rate(0), amount_cents=0, source=None)


def destination_from_address(address: CanonicalAddress) -> Destination:
    return Destination(
        street=address.address,
        city=address.city,
        state=address.state,
        zipcode=address.zipcode,
        country=address.country,
        line2=address.address_line_2,
    )


def build_tax_request(
    destination: Destination,
    taxable_cents: int,
    line_items: List[LineItem],
) -> TaxRequest:
    """
    Build a provider request, enforcing amount == sum(line items).

    Raises:
        TaxPayloadMismatch: when the amounts disagree at cent precision
    """
    taxable_amount = (Decimal(taxable_cents) / 100).quantize(CENT)
    line_total = sum((item.total for item in line_items), Decimal('0')).quantize(CENT)
    if taxable_amount != line_total:
        raise TaxPayloadMismatch('Tax payload mismatch: amount must equal sum(line_items).')

    return TaxRequest(
        destination=destination,
        taxable_amount=taxable_amount,
        taxable_cents=taxable_cents,
        line_items=list(line_items),
        shipping=Decimal('0'),
    )


def run_tax_chain(request: TaxRequest, providers: Iterable[TaxProvider]) -> TaxQuote:
    for provider in providers:
        try:
            quote = provider.attempt(request)
        except ProviderError as exc:
            logger.warning('tax provider {} failed: {}', provider.name, exc)
            continue
        except Exception as exc:
            logger.exception('tax provider {} raised unexpectedly: {}', provider.name, exc)
            continue

        if quote.amount_cents < 0:
            logger.warning('tax provider {} returned negative tax {}, ignoring',
                           provider.name, quote.amount_cents)
            continue

        logger.info('tax quoted by {}: rate={}% amount_cents={}',
                    provider.name, quote.rate_percent, quote.amount_cents)
        return quote

    logger.warning(
        'all tax providers failed for {} {} {}; charging zero tax',
        request.destination.country, request.destination.state, request.destination.zipcode)
    return ZERO_TAX


def quote_tax(
    address: CanonicalAddress,
    taxable_cents: int,
    line_items: List[LineItem],
    config: CheckoutSettings,
    providers: Optional[List[TaxProvider]] = None,
) -> TaxQuote:
    """
    Quote sales tax for an order shipped to ``address``.

    The payload invariant is checked before any provider is contacted.
    """
    request = build_tax_request(destination_from_address(address), taxable_cents, line_items)
    if providers is None:
        providers = ProviderFactory.tax_chain(config.tax_providers, config.provider_config())
    return run_tax_chain(request, providers)
