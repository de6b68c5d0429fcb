"""
External quote providers for tax and asset prices.
"""
from .base import (
    Destination,
    LineItem,
    PriceProvider,
    PriceQuote,
    ProviderError,
    TaxProvider,
    TaxQuote,
    TaxRequest,
)
from .factory import ProviderFactory

__all__ = [
    'Destination',
    'LineItem',
    'PriceProvider',
    'PriceQuote',
    'ProviderError',
    'TaxProvider',
    'TaxQuote',
    'TaxRequest',
    'ProviderFactory',
]
