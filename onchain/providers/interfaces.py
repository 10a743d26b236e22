"""
Capability interfaces.

A provider implements any subset of these. The orchestrator only depends on
the interface an operation needs, checked with ``isinstance``.
"""

from typing import Optional, Protocol, runtime_checkable

from onchain.models import (
    BalanceReport,
    ChainType,
    CexBalanceReport,
    CexHistoryPage,
    DefiReport,
    GasEstimate,
    HistoryPage,
    MarketFilter,
    MarketList,
    MarketOverview,
    MarketTagList,
    NftReport,
    PredictionMarket,
    SmartMoneyHoldings,
    TokenPrice,
    TokenScreener,
    TokenSearchResults,
    TransactionDetail,
    WalletLabels,
)
from onchain.results import OperationResult


@runtime_checkable
class BalanceProvider(Protocol):
    async def get_balances(
        self,
        address: str,
        chain_type: ChainType,
        chains: Optional[list[str]] = None,
    ) -> OperationResult[BalanceReport]: ...


@runtime_checkable
class HistoryProvider(Protocol):
    async def get_history(
        self,
        address: str,
        chain_type: ChainType,
        limit: int = 20,
        cursor: Optional[str] = None,
        chain: Optional[str] = None,
    ) -> OperationResult[HistoryPage]: ...


@runtime_checkable
class PriceProvider(Protocol):
    async def get_token_price(self, token: str) -> OperationResult[TokenPrice]: ...

    async def get_market_overview(self) -> OperationResult[MarketOverview]: ...


@runtime_checkable
class TransactionProvider(Protocol):
    async def get_transaction(
        self,
        tx_hash: str,
        chain: Optional[str] = None,
    ) -> OperationResult[TransactionDetail]: ...


@runtime_checkable
class GasProvider(Protocol):
    async def get_gas_estimate(self, chain: str = "ethereum") -> OperationResult[GasEstimate]: ...


@runtime_checkable
class ExchangeProvider(Protocol):
    async def get_exchange_balances(self) -> OperationResult[CexBalanceReport]: ...

    async def get_exchange_history(
        self,
        limit: int = 50,
        cursor: Optional[str] = None,
        symbol: Optional[str] = None,
    ) -> OperationResult[CexHistoryPage]: ...


@runtime_checkable
class MarketProvider(Protocol):
    async def get_trending_markets(
        self,
        limit: int = 10,
        market_filter: Optional[MarketFilter] = None,
    ) -> OperationResult[MarketList]: ...

    async def search_markets(
        self,
        query: str,
        limit: int = 10,
        market_filter: Optional[MarketFilter] = None,
    ) -> OperationResult[MarketList]: ...

    async def get_market(self, id_or_slug: str) -> OperationResult[PredictionMarket]: ...


@runtime_checkable
class MarketTagProvider(Protocol):
    async def get_market_tags(self, popular: bool = False) -> OperationResult[MarketTagList]: ...


@runtime_checkable
class DefiProvider(Protocol):
    async def get_defi_positions(self, address: str, chain_type: ChainType) -> OperationResult[DefiReport]: ...


@runtime_checkable
class NftProvider(Protocol):
    async def get_nfts(self, address: str, chain_type: ChainType) -> OperationResult[NftReport]: ...


@runtime_checkable
class TokenSearchProvider(Protocol):
    async def search_tokens(self, query: str, limit: int = 10) -> OperationResult[TokenSearchResults]: ...


@runtime_checkable
class WalletIntelProvider(Protocol):
    async def get_wallet_labels(self, address: str, chain: str = "ethereum") -> OperationResult[WalletLabels]: ...

    async def get_smart_money_holdings(
        self,
        chain: str = "solana",
        limit: int = 20,
    ) -> OperationResult[SmartMoneyHoldings]: ...

    async def get_token_screener(
        self,
        chain: str = "solana",
        limit: int = 20,
        timeframe: str = "24h",
    ) -> OperationResult[TokenScreener]: ...
