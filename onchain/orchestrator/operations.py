"""
Static operation table: operation id -> ordered provider plan.
"""

from typing import Any

from onchain.config.capabilities import ProviderId
from onchain.models import ChainType
from onchain.orchestrator.registry import OperationPlan
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


# ============================================================
# INVOKERS
# ============================================================

def _balances(chain_type: ChainType):
    def invoke(provider: BalanceProvider, args: dict[str, Any]):
        return provider.get_balances(args["address"], chain_type, args.get("chains"))
    return invoke


def _history(chain_type: ChainType):
    def invoke(provider: HistoryProvider, args: dict[str, Any]):
        return provider.get_history(
            args["address"],
            chain_type,
            limit=args.get("limit", 20),
            cursor=args.get("cursor"),
            chain=args.get("chain"),
        )
    return invoke


def _token_price(provider: PriceProvider, args: dict[str, Any]):
    return provider.get_token_price(args["token"])


def _market_overview(provider: PriceProvider, args: dict[str, Any]):
    return provider.get_market_overview()


def _transaction(provider: TransactionProvider, args: dict[str, Any]):
    return provider.get_transaction(args["hash"], args.get("chain"))


def _gas(provider: GasProvider, args: dict[str, Any]):
    return provider.get_gas_estimate(args.get("chain") or "ethereum")


def _exchange_balances(provider: ExchangeProvider, args: dict[str, Any]):
    return provider.get_exchange_balances()


def _exchange_history(provider: ExchangeProvider, args: dict[str, Any]):
    return provider.get_exchange_history(
        limit=args.get("limit", 50),
        cursor=args.get("cursor"),
        symbol=args.get("symbol"),
    )


def _trending(provider: MarketProvider, args: dict[str, Any]):
    return provider.get_trending_markets(limit=args.get("limit", 10), market_filter=args.get("market_filter"))


def _search(provider: MarketProvider, args: dict[str, Any]):
    return provider.search_markets(
        args["query"],
        limit=args.get("limit", 10),
        market_filter=args.get("market_filter"),
    )


def _market_detail(provider: MarketProvider, args: dict[str, Any]):
    return provider.get_market(args["id_or_slug"])


def _market_tags(provider: MarketTagProvider, args: dict[str, Any]):
    return provider.get_market_tags(popular=args.get("popular", False))


def _defi_positions(provider: DefiProvider, args: dict[str, Any]):
    return provider.get_defi_positions(args["address"], ChainType.EVM)


def _nfts(chain_type: ChainType):
    def invoke(provider: NftProvider, args: dict[str, Any]):
        return provider.get_nfts(args["address"], chain_type)
    return invoke


def _token_search(provider: TokenSearchProvider, args: dict[str, Any]):
    return provider.search_tokens(args["query"], limit=args.get("limit", 10))


def _wallet_labels(provider: WalletIntelProvider, args: dict[str, Any]):
    return provider.get_wallet_labels(args["address"], chain=args.get("chain") or "ethereum")


def _smart_money(provider: WalletIntelProvider, args: dict[str, Any]):
    return provider.get_smart_money_holdings(chain=args.get("chain") or "solana", limit=args.get("limit", 20))


def _screener(provider: WalletIntelProvider, args: dict[str, Any]):
    return provider.get_token_screener(
        chain=args.get("chain") or "solana",
        limit=args.get("limit", 20),
        timeframe=args.get("timeframe") or "24h",
    )


# ============================================================
# OPERATION TABLE
# ============================================================

_PRICE_PROVIDERS = (ProviderId.COINGECKO, ProviderId.COINMARKETCAP)

_PLANS = (
    OperationPlan(
        "balances.evm", "Wallet balances", BalanceProvider, _balances(ChainType.EVM),
        providers=(ProviderId.ZERION, ProviderId.DEBANK),
        preferred=ProviderId.NANSEN,
        degraded=ProviderId.BROWSER,
    ),
    OperationPlan(
        "balances.solana", "Wallet balances", BalanceProvider, _balances(ChainType.SOLANA),
        providers=(ProviderId.ZERION, ProviderId.HELIUS),
        preferred=ProviderId.NANSEN,
        degraded=ProviderId.BROWSER,
    ),
    OperationPlan(
        "history.evm", "Transaction history", HistoryProvider, _history(ChainType.EVM),
        providers=(ProviderId.ZERION, ProviderId.DEBANK),
    ),
    OperationPlan(
        "history.solana", "Transaction history", HistoryProvider, _history(ChainType.SOLANA),
        providers=(ProviderId.ZERION, ProviderId.HELIUS),
    ),
    OperationPlan(
        "price.token", "Token prices", PriceProvider, _token_price,
        providers=_PRICE_PROVIDERS,
        default_provider=ProviderId.COINGECKO,
    ),
    OperationPlan(
        "market.overview", "Market overview", PriceProvider, _market_overview,
        providers=_PRICE_PROVIDERS,
        default_provider=ProviderId.COINGECKO,
    ),
    OperationPlan(
        "tx.evm", "Transaction lookup", TransactionProvider, _transaction,
        providers=(ProviderId.ETHERSCAN,),
    ),
    OperationPlan(
        "tx.solana", "Solana transaction lookup", TransactionProvider, _transaction,
        providers=(ProviderId.SOLSCAN,),
    ),
    OperationPlan(
        "gas.estimate", "Gas estimates", GasProvider, _gas,
        providers=(ProviderId.ETHERSCAN,),
    ),
    OperationPlan(
        "cex.binance.balances", "Binance balances", ExchangeProvider, _exchange_balances,
        providers=(ProviderId.BINANCE,),
    ),
    OperationPlan(
        "cex.binance.history", "Binance history", ExchangeProvider, _exchange_history,
        providers=(ProviderId.BINANCE,),
    ),
    OperationPlan(
        "cex.coinbase.balances", "Coinbase balances", ExchangeProvider, _exchange_balances,
        providers=(ProviderId.COINBASE,),
    ),
    OperationPlan(
        "cex.coinbase.history", "Coinbase history", ExchangeProvider, _exchange_history,
        providers=(ProviderId.COINBASE,),
    ),
    OperationPlan(
        "markets.trending", "Prediction markets", MarketProvider, _trending,
        providers=(ProviderId.POLYMARKET,),
        default_provider=ProviderId.POLYMARKET,
    ),
    OperationPlan(
        "markets.search", "Prediction market search", MarketProvider, _search,
        providers=(ProviderId.POLYMARKET,),
        default_provider=ProviderId.POLYMARKET,
    ),
    OperationPlan(
        "markets.detail", "Prediction market detail", MarketProvider, _market_detail,
        providers=(ProviderId.POLYMARKET,),
        default_provider=ProviderId.POLYMARKET,
    ),
    OperationPlan(
        "markets.tags", "Prediction market tags", MarketTagProvider, _market_tags,
        providers=(ProviderId.POLYMARKET,),
        default_provider=ProviderId.POLYMARKET,
    ),
    OperationPlan(
        "defi.evm", "DeFi positions", DefiProvider, _defi_positions,
        providers=(ProviderId.DEBANK,),
    ),
    OperationPlan(
        "nfts.evm", "NFTs", NftProvider, _nfts(ChainType.EVM),
        providers=(ProviderId.DEBANK,),
    ),
    OperationPlan(
        "nfts.solana", "Solana NFTs", NftProvider, _nfts(ChainType.SOLANA),
        providers=(ProviderId.HELIUS,),
    ),
    OperationPlan(
        "token.search", "Token search", TokenSearchProvider, _token_search,
        providers=(ProviderId.COINGECKO,),
        default_provider=ProviderId.COINGECKO,
    ),
    OperationPlan(
        "nansen.labels", "Wallet labels", WalletIntelProvider, _wallet_labels,
        providers=(ProviderId.NANSEN,),
    ),
    OperationPlan(
        "nansen.smart_money", "Smart-money holdings", WalletIntelProvider, _smart_money,
        providers=(ProviderId.NANSEN,),
    ),
    OperationPlan(
        "nansen.screener", "Token screener", WalletIntelProvider, _screener,
        providers=(ProviderId.NANSEN,),
    ),
)

DEFAULT_OPERATIONS: dict[str, OperationPlan] = {plan.operation_id: plan for plan in _PLANS}
