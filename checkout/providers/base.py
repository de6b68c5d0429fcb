"""
Quote provider interface.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional


class ProviderError(Exception):
    """Raised by a provider when it cannot produce a quote."""


@dataclass(frozen=True)
class Destination:
    """Ship-to address in the shape tax providers consume."""
    street: str
    city: str
    state: str
    zipcode: str
    country: str
    line2: Optional[str] = None


@dataclass(frozen=True)
class LineItem:
    id: str
    quantity: int
    unit_price: Decimal

    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class TaxRequest:
    """Everything a tax provider needs to price one order."""
    destination: Destination
    taxable_amount: Decimal
    taxable_cents: int
    line_items: List[LineItem] = field(default_factory=list)
    shipping: Decimal = Decimal('0')


@dataclass(frozen=True)
class TaxQuote:
    """Tax rate as a percentage and the tax to collect in cents."""
    rate_percent: Decimal
    amount_cents: int
    source: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class PriceQuote:
    """USD price of one unit of an asset."""
    price_usd: Decimal
    source: str
    details: Optional[Dict[str, Any]] = None


class QuoteProvider(ABC):
    """
    Abstract base class for external quote sources.

    Each source (TaxJar, Stripe Tax, a price feed, ...) implements
    ``attempt`` and either returns a quote or raises :class:`ProviderError`.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the provider.

        Args:
            config: Provider configuration (credentials, URLs, timeout, ...)
        """
        self.config = config

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name used in configuration and logs."""
        pass

    @property
    def timeout(self) -> float:
        return float(self.config.get('timeout', 10.0))


class TaxProvider(QuoteProvider):

    @abstractmethod
    def attempt(self, request: TaxRequest) -> TaxQuote:
        """
        Quote tax for the request.

        Raises:
            ProviderError: on network, API or response-shape failures
        """
        pass


class PriceProvider(QuoteProvider):

    @abstractmethod
    def attempt(self, symbol: str) -> PriceQuote:
        """
        Quote the USD price of ``symbol``.

        Raises:
            ProviderError: on network, API or response-shape failures
        """
        pass
