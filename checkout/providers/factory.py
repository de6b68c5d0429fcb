"""
Factory for building ordered provider chains.
"""
from typing import Any, Dict, Iterable, List, Type

from .base import PriceProvider, QuoteProvider, TaxProvider
from .price_providers import (
    AlchemyPriceProvider,
    ChainlinkPriceProvider,
    CoinGeckoPriceProvider,
    FixedPriceProvider,
)
from .tax_providers import StripeTaxProvider, TaxJarProvider


class ProviderFactory:
    """Create providers by name, keeping fallback order data-driven."""

    _tax_providers: Dict[str, Type[TaxProvider]] = {
        'taxjar': TaxJarProvider,
        'stripe': StripeTaxProvider,
    }

    _price_providers: Dict[str, Type[PriceProvider]] = {
        'chainlink': ChainlinkPriceProvider,
        'coingecko': CoinGeckoPriceProvider,
        'alchemy': AlchemyPriceProvider,
        'fixed': FixedPriceProvider,
    }

    @staticmethod
    def _build(
        registry: Dict[str, Type[QuoteProvider]],
        names: Iterable[str],
        config: Dict[str, Any],
        kind: str,
    ) -> List[QuoteProvider]:
        chain = []
        for name in names:
            key = name.lower().strip()
            provider_class = registry.get(key)
            if provider_class is None:
                supported = ', '.join(registry.keys())
                raise ValueError(
                    f"Unsupported {kind} provider: {name}. "
                    f"Supported providers: {supported}"
                )
            chain.append(provider_class(config))
        return chain

    @classmethod
    def tax_chain(cls, names: Iterable[str], config: Dict[str, Any] = None) -> List[TaxProvider]:
        """
        Build tax providers in fallback order.

        Raises:
            ValueError: If a name is not registered
        """
        return cls._build(cls._tax_providers, names, config or {}, 'tax')

    @classmethod
    def price_chain(cls, names: Iterable[str], config: Dict[str, Any] = None) -> List[PriceProvider]:
        """
        Build price providers in fallback order.

        Raises:
            ValueError: If a name is not registered
        """
        return cls._build(cls._price_providers, names, config or {}, 'price')

    @classmethod
    def register_tax(cls, name: str, provider_class: Type[TaxProvider]) -> None:
        cls._tax_providers[name.lower().strip()] = provider_class

    @classmethod
    def register_price(cls, name: str, provider_class: Type[PriceProvider]) -> None:
        cls._price_providers[name.lower().strip()] = provider_class

    @classmethod
    def supported(cls) -> Dict[str, list]:
        return {
            'tax': list(cls._tax_providers.keys()),
            'price': list(cls._price_providers.keys()),
        }
