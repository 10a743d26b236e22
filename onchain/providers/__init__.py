"""
Providers Package - one module per external data source.

Every provider:
- Implements any subset of the capability protocols in ``interfaces``
- Returns an OperationResult from every public method
- Converts its own failures into failed results at the boundary

Quick Start:
    from onchain.providers import CoinGeckoProvider

    async def show_price():
        async with CoinGeckoProvider() as provider:
            result = await provider.get_token_price("eth")
            if result.ok:
                print(result.payload.price_usd)

Adding New Providers:
    class NewProvider(BaseProvider):
        provider_id = ProviderId.NEW
        display_name = "New"

        async def get_token_price(self, token):
            return await self._guard("price", self._fetch_price(token))

    The orchestrator picks it up once it is listed for an operation.
"""

from onchain.providers.base import BaseProvider
from onchain.providers.binance import BinanceProvider
from onchain.providers.browser import BrowserProvider
from onchain.providers.coinbase import CoinbaseProvider
from onchain.providers.coingecko import CoinGeckoProvider
from onchain.providers.coinmarketcap import CoinMarketCapProvider
from onchain.providers.debank import DeBankProvider
from onchain.providers.etherscan import EtherscanProvider
from onchain.providers.helius import HeliusProvider
from onchain.providers.interfaces import (
    BalanceProvider,
    DefiProvider,
    ExchangeProvider,
    GasProvider,
    HistoryProvider,
    MarketProvider,
    MarketTagProvider,
    NftProvider,
    PriceProvider,
    TokenSearchProvider,
    TransactionProvider,
    WalletIntelProvider,
)
from onchain.providers.nansen import NansenProvider
from onchain.providers.polymarket import PolymarketProvider
from onchain.providers.solscan import SolscanProvider
from onchain.providers.zerion import ZerionProvider

__all__ = [
    "BaseProvider",
    "BinanceProvider",
    "BrowserProvider",
    "CoinbaseProvider",
    "CoinGeckoProvider",
    "CoinMarketCapProvider",
    "DeBankProvider",
    "EtherscanProvider",
    "HeliusProvider",
    "NansenProvider",
    "PolymarketProvider",
    "SolscanProvider",
    "ZerionProvider",
    "BalanceProvider",
    "DefiProvider",
    "ExchangeProvider",
    "GasProvider",
    "HistoryProvider",
    "MarketProvider",
    "MarketTagProvider",
    "NftProvider",
    "PriceProvider",
    "TokenSearchProvider",
    "TransactionProvider",
    "WalletIntelProvider",
]
