"""
Checkout configuration, resolved once from Django settings.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Tuple

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from web3 import Web3

# Base Sepolia; the test asset has no market value.
TESTNET_CHAIN_IDS = frozenset({84532})


@dataclass(frozen=True)
class CheckoutSettings:
    app_env: str
    unit_price_cents: int
    receiving_address: str
    chain_id: int
    rpc_url: str
    eth_usd_feed_address: str
    usdc_contract: str
    fallback_eth_price_usd: Decimal
    taxjar_api_key: str
    taxjar_api_url: str
    stripe_secret_key: str
    coingecko_api_url: str
    alchemy_api_key: str
    http_timeout_seconds: float
    tax_degrade_to_zero: bool
    tax_providers: Tuple[str, ...] = field(default_factory=tuple)
    price_providers: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_settings(cls) -> 'CheckoutSettings':
        return cls(
            app_env=getattr(settings, 'APP_ENV', 'local'),
            unit_price_cents=int(getattr(settings, 'CHECKOUT_UNIT_PRICE_CENTS', 900)),
            receiving_address=getattr(settings, 'CHECKOUT_RECEIVING_ADDRESS', ''),
            chain_id=int(getattr(settings, 'CHECKOUT_CHAIN_ID', 84532)),
            rpc_url=getattr(settings, 'CHECKOUT_RPC_URL', ''),
            eth_usd_feed_address=getattr(settings, 'CHECKOUT_ETH_USD_FEED_ADDRESS', ''),
            usdc_contract=getattr(settings, 'CHECKOUT_USDC_CONTRACT', ''),
            fallback_eth_price_usd=Decimal(str(getattr(settings, 'CHECKOUT_FALLBACK_ETH_PRICE_USD', '3000'))),
            taxjar_api_key=getattr(settings, 'TAXJAR_API_KEY', ''),
            taxjar_api_url=getattr(settings, 'TAXJAR_API_URL', 'https://api.taxjar.com/v2'),
            stripe_secret_key=getattr(settings, 'STRIPE_SECRET_KEY', ''),
            coingecko_api_url=getattr(settings, 'COINGECKO_API_URL', 'https://api.coingecko.com/api/v3'),
            alchemy_api_key=getattr(settings, 'ALCHEMY_API_KEY', ''),
            http_timeout_seconds=float(getattr(settings, 'CHECKOUT_HTTP_TIMEOUT_SECONDS', 10.0)),
            tax_degrade_to_zero=bool(getattr(settings, 'CHECKOUT_TAX_DEGRADE_TO_ZERO', False)),
            tax_providers=tuple(getattr(settings, 'CHECKOUT_TAX_PROVIDERS', ('taxjar', 'stripe'))),
            price_providers=tuple(getattr(
                settings, 'CHECKOUT_PRICE_PROVIDERS', ('chainlink', 'coingecko', 'fixed'))),
        )

    @property
    def is_production(self) -> bool:
        return self.app_env == 'production'

    @property
    def is_testnet(self) -> bool:
        return self.chain_id in TESTNET_CHAIN_IDS

    def validate(self) -> None:
        """
        Fail fast on configuration that would break checkout.

        Raises:
            ImproperlyConfigured: on an invalid receiving address, or a
                production deployment without a TaxJar key that has not
                opted into zero-tax degradation
        """
        if not Web3.is_address(self.receiving_address):
            raise ImproperlyConfigured(
                f'CHECKOUT_RECEIVING_ADDRESS is not a valid address: {self.receiving_address!r}')
        if self.unit_price_cents <= 0:
            raise ImproperlyConfigured('CHECKOUT_UNIT_PRICE_CENTS must be positive.')
        if self.is_production and not self.taxjar_api_key and not self.tax_degrade_to_zero:
            raise ImproperlyConfigured(
                'TAXJAR_API_KEY is required in production unless '
                'CHECKOUT_TAX_DEGRADE_TO_ZERO is enabled.')

    def provider_config(self) -> Dict[str, Any]:
        return {
            'taxjar_api_key': self.taxjar_api_key,
            'taxjar_api_url': self.taxjar_api_url,
            'stripe_secret_key': self.stripe_secret_key,
            'rpc_url': self.rpc_url,
            'eth_usd_feed_address': self.eth_usd_feed_address,
            'coingecko_api_url': self.coingecko_api_url,
            'alchemy_api_key': self.alchemy_api_key,
            'fallback_eth_price_usd': self.fallback_eth_price_usd,
            'timeout': self.http_timeout_seconds,
        }


def get_checkout_settings() -> CheckoutSettings:
    return CheckoutSettings.from_settings()
