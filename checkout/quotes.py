"""
Asset amount quoting for the crypto leg.

A quote is taken once per payment and stored on the row; the buyer sends
exactly the amount they were shown.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from loguru import logger

from checkout.config import CheckoutSettings
from checkout.pricing import ASSET_PLACES, usd_to_asset
from checkout.providers import PriceProvider, PriceQuote, ProviderError, ProviderFactory

NATIVE_ASSET = 'ETH'
STABLECOIN = 'USDC'
SUPPORTED_ASSETS = (NATIVE_ASSET, STABLECOIN)

USDC_PLACES = Decimal('0.000001')


@dataclass(frozen=True)
class AssetQuote:
    symbol: str
    amount: str
    price_usd: Decimal
    source: str
    token_address: Optional[str] = None


def price_chain_for(config: CheckoutSettings) -> List[PriceProvider]:
    names = ('fixed',) if config.is_testnet else config.price_providers
    return ProviderFactory.price_chain(names, config.provider_config())


def resolve_price(symbol: str, providers: Iterable[PriceProvider], fallback: Decimal) -> PriceQuote:
    for provider in providers:
        try:
            quote = provider.attempt(symbol)
        except ProviderError as exc:
            logger.warning('price provider {} failed for {}: {}', provider.name, symbol, exc)
            continue
        except Exception as exc:
            logger.exception('price provider {} raised unexpectedly for {}: {}', provider.name, symbol, exc)
            continue
        logger.debug('price for {} from {}: {}', symbol, provider.name, quote.price_usd)
        return quote

    logger.warning('all price providers failed for {}; using fixed {}', symbol, fallback)
    return PriceQuote(price_usd=fallback, source='fixed')


def quote_asset_amount(
    usd_cents: int,
    symbol: str,
    config: CheckoutSettings,
    providers: Optional[List[PriceProvider]] = None,
) -> AssetQuote:
    """
    Convert ``usd_cents`` into an amount of ``symbol``.

    ETH is priced through the provider chain; on a testnet only the fixed
    price is used. USDC is pegged at one dollar.
    """
    symbol = symbol.upper()
    if symbol == STABLECOIN:
        return AssetQuote(
            symbol=STABLECOIN,
            amount=usd_to_asset(usd_cents, Decimal('1'), places=USDC_PLACES),
            price_usd=Decimal('1'),
            source='stablecoin_peg',
            token_address=config.usdc_contract or None,
        )
    if symbol != NATIVE_ASSET:
        raise ValueError(f'Unsupported asset: {symbol}')

    if providers is None:
        providers = price_chain_for(config)
    price = resolve_price(symbol, providers, config.fallback_eth_price_usd)
    return AssetQuote(
        symbol=NATIVE_ASSET,
        amount=usd_to_asset(usd_cents, price.price_usd, places=ASSET_PLACES),
        price_usd=price.price_usd,
        source=price.source,
    )
