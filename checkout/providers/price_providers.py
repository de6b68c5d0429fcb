"""
Asset price providers: on-chain feed, price-index APIs and a fixed constant.
"""
from decimal import Decimal

import httpx
from web3 import HTTPProvider, Web3

from checkout.pricing import to_decimal

from .base import PriceProvider, PriceQuote, ProviderError

# Chainlink AggregatorV3Interface subset.
AGGREGATOR_V3_ABI = [
    {
        'inputs': [],
        'name': 'decimals',
        'outputs': [{'internalType': 'uint8', 'name': '', 'type': 'uint8'}],
        'stateMutability': 'view',
        'type': 'function',
    },
    {
        'inputs': [],
        'name': 'latestRoundData',
        'outputs': [
            {'internalType': 'uint80', 'name': 'roundId', 'type': 'uint80'},
            {'internalType': 'int256', 'name': 'answer', 'type': 'int256'},
            {'internalType': 'uint256', 'name': 'startedAt', 'type': 'uint256'},
            {'internalType': 'uint256', 'name': 'updatedAt', 'type': 'uint256'},
            {'internalType': 'uint80', 'name': 'answeredInRound', 'type': 'uint80'},
        ],
        'stateMutability': 'view',
        'type': 'function',
    },
]

COINGECKO_IDS = {
    'ETH': 'ethereum',
    'USDC': 'usd-coin',
}

DEFAULT_FIXED_PRICE_USD = Decimal('3000')


def price_from_round(answer: int, decimals: int) -> Decimal:
    """300000000000 with 8 decimals -> Decimal('3000')"""
    if answer <= 0:
        raise ProviderError(f'Price feed returned non-positive answer: {answer}')
    return Decimal(answer).scaleb(-int(decimals))


def _positive_price(value) -> Decimal:
    try:
        price = to_decimal(value)
    except ArithmeticError as exc:
        raise ProviderError(f'Invalid price: {value!r}') from exc
    if not price.is_finite() or price <= 0:
        raise ProviderError(f'Invalid price: {value}')
    return price


class ChainlinkPriceProvider(PriceProvider):
    """Reads ETH/USD from a Chainlink aggregator contract."""

    @property
    def name(self) -> str:
        return 'chainlink'

    def attempt(self, symbol: str) -> PriceQuote:
        if symbol != 'ETH':
            raise ProviderError(f'No price feed configured for {symbol}')

        rpc_url = self.config.get('rpc_url', '')
        feed_address = self.config.get('eth_usd_feed_address', '')
        if not rpc_url or not feed_address:
            raise ProviderError('Price feed RPC URL or contract address not configured')

        try:
            web3 = Web3(HTTPProvider(rpc_url, request_kwargs={'timeout': self.timeout}))
            contract = web3.eth.contract(
                address=Web3.to_checksum_address(feed_address),
                abi=AGGREGATOR_V3_ABI,
            )
            round_data = contract.functions.latestRoundData().call()
            decimals = contract.functions.decimals().call()
        except Exception as exc:
            raise ProviderError(f'Price feed read failed: {exc}') from exc

        answer = int(round_data[1])
        return PriceQuote(
            price_usd=price_from_round(answer, decimals),
            source=self.name,
            details={'round_id': int(round_data[0]), 'updated_at': int(round_data[3])},
        )


class CoinGeckoPriceProvider(PriceProvider):
    """Spot price from the CoinGecko simple-price endpoint."""

    @property
    def name(self) -> str:
        return 'coingecko'

    def attempt(self, symbol: str) -> PriceQuote:
        coin_id = COINGECKO_IDS.get(symbol)
        if coin_id is None:
            raise ProviderError(f'Unsupported asset for CoinGecko: {symbol}')

        base_url = self.config.get('coingecko_api_url', 'https://api.coingecko.com/api/v3')
        try:
            response = httpx.get(
                f"{base_url.rstrip('/')}/simple/price",
                params={'ids': coin_id, 'vs_currencies': 'usd'},
                timeout=self.timeout,
            )
            response.raise_for_status()
            value = response.json()[coin_id]['usd']
        except httpx.HTTPError as exc:
            raise ProviderError(f'CoinGecko request failed: {exc}') from exc
        except (ValueError, KeyError, TypeError) as exc:
            raise ProviderError(f'Malformed CoinGecko response: {exc}') from exc

        return PriceQuote(price_usd=_positive_price(value), source=self.name)


class AlchemyPriceProvider(PriceProvider):
    """Spot price from the Alchemy Prices API, keyed by token symbol."""

    @property
    def name(self) -> str:
        return 'alchemy'

    def attempt(self, symbol: str) -> PriceQuote:
        api_key = self.config.get('alchemy_api_key', '')
        if not api_key:
            raise ProviderError('Alchemy API key not configured')

        try:
            response = httpx.get(
                f'https://api.g.alchemy.com/prices/v1/{api_key}/tokens/by-symbol',
                params={'symbols': symbol},
                timeout=self.timeout,
            )
            response.raise_for_status()
            prices = response.json()['data'][0]['prices']
            value = next(p['value'] for p in prices if p['currency'].lower() == 'usd')
        except httpx.HTTPError as exc:
            raise ProviderError(f'Alchemy request failed: {exc}') from exc
        except (ValueError, KeyError, TypeError, IndexError, StopIteration) as exc:
            raise ProviderError(f'Malformed Alchemy response: {exc}') from exc

        return PriceQuote(price_usd=_positive_price(value), source=self.name)


class FixedPriceProvider(PriceProvider):
    """Documented constant used on testnets and as the last resort."""

    @property
    def name(self) -> str:
        return 'fixed'

    def attempt(self, symbol: str) -> PriceQuote:
        if symbol != 'ETH':
            raise ProviderError(f'No fixed price for {symbol}')
        price = self.config.get('fallback_eth_price_usd') or DEFAULT_FIXED_PRICE_USD
        return PriceQuote(price_usd=_positive_price(price), source=self.name)
