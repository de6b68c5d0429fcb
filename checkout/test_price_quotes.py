import dataclasses
from decimal import Decimal
from unittest.mock import MagicMock, Mock, patch

import httpx
from django.test import SimpleTestCase

from checkout.config import get_checkout_settings
from checkout.pricing import usd_to_asset
from checkout.providers import PriceProvider, PriceQuote, ProviderError, ProviderFactory
from checkout.providers.price_providers import (
    AlchemyPriceProvider,
    ChainlinkPriceProvider,
    CoinGeckoPriceProvider,
    FixedPriceProvider,
    price_from_round,
)
from checkout.quotes import price_chain_for, quote_asset_amount, resolve_price


def price_provider(name, price=None, error=None):
    mock = Mock(spec=PriceProvider)
    mock.name = name
    if error is not None:
        mock.attempt.side_effect = error
    else:
        mock.attempt.return_value = PriceQuote(price_usd=Decimal(price), source=name)
    return mock


class ConversionTests(SimpleTestCase):

    def test_oracle_answer_scaled_by_decimals(self):
        self.assertEqual(price_from_round(300000000000, 8), Decimal('3000.00'))

    def test_non_positive_answer_rejected(self):
        with self.assertRaises(ProviderError):
            price_from_round(0, 8)

    def test_usd_cents_to_eth(self):
        self.assertEqual(usd_to_asset(964, Decimal('3000')), '0.003213')

    def test_rounds_half_away_from_zero(self):
        # $0.01 at $20,000 is exactly 0.0000005
        self.assertEqual(usd_to_asset(1, Decimal('20000')), '0.000001')
        self.assertEqual(usd_to_asset(1, Decimal('20001')), '0.000000')

    def test_rejects_non_positive_price(self):
        with self.assertRaises(ValueError):
            usd_to_asset(964, Decimal('0'))


class QuoteAssetAmountTests(SimpleTestCase):

    def setUp(self) -> None:
        self.mainnet = dataclasses.replace(get_checkout_settings(), chain_id=8453)
        self.testnet = dataclasses.replace(get_checkout_settings(), chain_id=84532)

    def test_testnet_skips_live_pricing(self):
        chain = price_chain_for(self.testnet)

        self.assertEqual([p.name for p in chain], ['fixed'])

    def test_mainnet_chain_order(self):
        chain = price_chain_for(self.mainnet)

        self.assertEqual([p.name for p in chain], ['chainlink', 'coingecko', 'fixed'])

    def test_first_success_wins(self):
        providers = [
            price_provider('chainlink', '3000'),
            price_provider('coingecko', '2500'),
        ]

        quote = quote_asset_amount(964, 'eth', self.mainnet, providers=providers)

        self.assertEqual(quote.amount, '0.003213')
        self.assertEqual(quote.source, 'chainlink')
        providers[1].attempt.assert_not_called()

    def test_falls_back_in_order(self):
        providers = [
            price_provider('chainlink', error=ProviderError('rpc down')),
            price_provider('coingecko', '2000'),
        ]

        quote = quote_asset_amount(1000, 'ETH', self.mainnet, providers=providers)

        self.assertEqual(quote.amount, '0.005000')
        self.assertEqual(quote.source, 'coingecko')

    def test_all_failing_uses_fixed_constant(self):
        providers = [
            price_provider('chainlink', error=ProviderError('rpc down')),
            price_provider('coingecko', error=ProviderError('rate limited')),
        ]

        quote = quote_asset_amount(964, 'ETH', self.mainnet, providers=providers)

        self.assertEqual(quote.price_usd, Decimal('3000'))
        self.assertEqual(quote.source, 'fixed')

    def test_unexpected_provider_error_moves_to_next(self):
        providers = [
            price_provider('chainlink', error=RuntimeError('boom')),
            price_provider('coingecko', '2000'),
        ]

        quote = quote_asset_amount(1000, 'ETH', self.mainnet, providers=providers)

        self.assertEqual(quote.source, 'coingecko')

    def test_usdc_is_pegged(self):
        quote = quote_asset_amount(988, 'USDC', self.mainnet)

        self.assertEqual(quote.amount, '9.880000')
        self.assertEqual(quote.source, 'stablecoin_peg')
        self.assertEqual(quote.token_address, self.mainnet.usdc_contract)

    def test_unknown_asset(self):
        with self.assertRaises(ValueError):
            quote_asset_amount(964, 'BTC', self.mainnet)


class ChainlinkPriceProviderTests(SimpleTestCase):

    def _provider(self):
        return ChainlinkPriceProvider({
            'rpc_url': 'http://localhost:8545',
            'eth_usd_feed_address': '0x71041dddad3595F9CEd3DcCFBe3D1F4b0a16Bb70',
            'timeout': 5,
        })

    @patch('checkout.providers.price_providers.HTTPProvider')
    @patch('checkout.providers.price_providers.Web3')
    def test_reads_latest_round(self, web3_cls, http_provider_cls):
        contract = MagicMock()
        contract.functions.latestRoundData.return_value.call.return_value = (
            18446744073709551999, 300000000000, 1700000000, 1700000000, 18446744073709551999)
        contract.functions.decimals.return_value.call.return_value = 8
        web3_cls.return_value.eth.contract.return_value = contract

        quote = self._provider().attempt('ETH')

        self.assertEqual(quote.price_usd, Decimal('3000.00'))
        self.assertEqual(quote.source, 'chainlink')
        http_provider_cls.assert_called_once_with('http://localhost:8545', request_kwargs={'timeout': 5.0})

    @patch('checkout.providers.price_providers.HTTPProvider')
    @patch('checkout.providers.price_providers.Web3')
    def test_rpc_failure_is_provider_error(self, web3_cls, http_provider_cls):
        web3_cls.return_value.eth.contract.side_effect = ConnectionError('rpc down')

        with self.assertRaises(ProviderError):
            self._provider().attempt('ETH')

    def test_only_eth_has_a_feed(self):
        with self.assertRaises(ProviderError):
            self._provider().attempt('USDC')


class HttpPriceProviderTests(SimpleTestCase):

    def _response(self, payload):
        response = Mock()
        response.raise_for_status.return_value = None
        response.json.return_value = payload
        return response

    @patch('checkout.providers.price_providers.httpx.get')
    def test_coingecko(self, get_mock):
        get_mock.return_value = self._response({'ethereum': {'usd': 3012.45}})

        quote = CoinGeckoPriceProvider({}).attempt('ETH')

        self.assertEqual(quote.price_usd, Decimal('3012.45'))
        self.assertEqual(get_mock.call_args.kwargs['params'], {'ids': 'ethereum', 'vs_currencies': 'usd'})

    @patch('checkout.providers.price_providers.httpx.get', side_effect=httpx.ConnectTimeout('slow'))
    def test_coingecko_timeout(self, get_mock):
        with self.assertRaises(ProviderError):
            CoinGeckoPriceProvider({}).attempt('ETH')

    @patch('checkout.providers.price_providers.httpx.get')
    def test_coingecko_zero_price_rejected(self, get_mock):
        get_mock.return_value = self._response({'ethereum': {'usd': 0}})

        with self.assertRaises(ProviderError):
            CoinGeckoPriceProvider({}).attempt('ETH')

    @patch('checkout.providers.price_providers.httpx.get')
    def test_coingecko_null_price_falls_through_to_fixed(self, get_mock):
        get_mock.return_value = self._response({'ethereum': {'usd': None}})
        providers = [CoinGeckoPriceProvider({}), FixedPriceProvider({})]

        quote = resolve_price('ETH', providers, Decimal('3000'))

        self.assertEqual(quote.source, 'fixed')
        self.assertEqual(quote.price_usd, Decimal('3000'))

    @patch('checkout.providers.price_providers.httpx.get')
    def test_coingecko_non_numeric_price(self, get_mock):
        get_mock.return_value = self._response({'ethereum': {'usd': 'n/a'}})

        with self.assertRaises(ProviderError):
            CoinGeckoPriceProvider({}).attempt('ETH')

    @patch('checkout.providers.price_providers.httpx.get')
    def test_alchemy(self, get_mock):
        get_mock.return_value = self._response({
            'data': [{'symbol': 'ETH', 'prices': [{'currency': 'usd', 'value': '2999.50'}]}],
        })

        quote = AlchemyPriceProvider({'alchemy_api_key': 'alchemy-key'}).attempt('ETH')

        self.assertEqual(quote.price_usd, Decimal('2999.50'))

    def test_alchemy_requires_key(self):
        with self.assertRaises(ProviderError):
            AlchemyPriceProvider({}).attempt('ETH')

    def test_fixed_price(self):
        quote = FixedPriceProvider({'fallback_eth_price_usd': Decimal('3000')}).attempt('ETH')

        self.assertEqual(quote.price_usd, Decimal('3000'))


class ProviderFactoryTests(SimpleTestCase):

    def test_unknown_provider(self):
        with self.assertRaises(ValueError):
            ProviderFactory.tax_chain(['avalara'])

    def test_names_are_normalised(self):
        chain = ProviderFactory.price_chain([' CoinGecko ', 'FIXED'])

        self.assertEqual([p.name for p in chain], ['coingecko', 'fixed'])
