"""
Onchain Data Models - Normalized payloads shared by every provider.

Each provider maps its own response shape onto these frozen dataclasses so
that the presentation layer only ever sees one shape per operation.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional


class ChainType(Enum):
    """Address families the CLI understands."""
    EVM = "evm"
    SOLANA = "solana"


class ExplorerChain(Enum):
    """EVM chains reachable through the block explorer API."""
    ETHEREUM = "ethereum"
    POLYGON = "polygon"
    BSC = "bsc"
    ARBITRUM = "arbitrum"
    BASE = "base"
    OPTIMISM = "optimism"
    AVALANCHE = "avalanche"
    FANTOM = "fantom"

    @classmethod
    def parse(cls, value: str) -> "ExplorerChain":
        """Parse a user-supplied chain name (case-insensitive)."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(c.value for c in cls)
            raise ValueError(f"Invalid chain: {value}. Valid chains: {valid}") from None


# ─────────────────────────────────────────────────────────────
# Wallet balances
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TokenBalance:
    """One token position held by a wallet."""
    symbol: str
    name: str
    chain: str
    balance: float
    price_usd: Optional[float] = None
    value_usd: Optional[float] = None
    decimals: Optional[int] = None
    contract_address: Optional[str] = None
    balance_raw: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "chain": self.chain,
            "balance": self.balance,
            "price_usd": self.price_usd,
            "value_usd": self.value_usd,
            "decimals": self.decimals,
            "contract_address": self.contract_address,
            "balance_raw": self.balance_raw,
        }


@dataclass(frozen=True)
class BalanceReport:
    """Wallet balances from a single provider, sorted by USD value."""
    address: str
    chain_type: ChainType
    total_value_usd: float
    balances: tuple[TokenBalance, ...] = ()

    def filtered(self, min_value_usd: float = 0.0, limit: Optional[int] = None) -> "BalanceReport":
        """Drop dust below ``min_value_usd`` and cap the row count."""
        kept = [b for b in self.balances if (b.value_usd or 0.0) >= min_value_usd]
        if limit is not None:
            kept = kept[:limit]
        return replace(self, balances=tuple(kept))

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "chain_type": self.chain_type.value,
            "total_value_usd": self.total_value_usd,
            "balances": [b.to_dict() for b in self.balances],
        }


def sort_by_value(balances: list[TokenBalance]) -> tuple[TokenBalance, ...]:
    """Sort balances by USD value descending, unpriced rows last."""
    return tuple(sorted(balances, key=lambda b: b.value_usd or 0.0, reverse=True))


# ─────────────────────────────────────────────────────────────
# DeFi positions and NFTs
# ─────────────────────────────────────────────────────────────

DEFI_POSITION_TYPES = ("lending", "staking", "liquidity", "farming", "vesting", "other")


@dataclass(frozen=True)
class DefiAsset:
    symbol: str
    amount: float
    value_usd: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {"symbol": self.symbol, "amount": self.amount, "value_usd": self.value_usd}


@dataclass(frozen=True)
class DefiPosition:
    """One protocol position (a lending market, an LP, a stake)."""
    protocol: str
    chain: str
    type: str  # one of DEFI_POSITION_TYPES
    net_value_usd: float
    assets: tuple[DefiAsset, ...] = ()
    health_factor: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "protocol": self.protocol,
            "chain": self.chain,
            "type": self.type,
            "net_value_usd": self.net_value_usd,
            "assets": [a.to_dict() for a in self.assets],
            "health_factor": self.health_factor,
        }


@dataclass(frozen=True)
class DefiReport:
    address: str
    total_value_usd: float
    positions: tuple[DefiPosition, ...] = ()

    def protocol_totals(self) -> list[tuple[str, float]]:
        """Net value per protocol, largest first."""
        totals: dict[str, float] = {}
        for position in self.positions:
            totals[position.protocol] = totals.get(position.protocol, 0.0) + position.net_value_usd
        return sorted(totals.items(), key=lambda item: item[1], reverse=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "total_value_usd": self.total_value_usd,
            "positions": [p.to_dict() for p in self.positions],
        }


@dataclass(frozen=True)
class NftAsset:
    id: str
    name: str
    collection: str
    chain: str
    contract_address: str
    token_id: str
    image_url: Optional[str] = None
    floor_price_usd: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "collection": self.collection,
            "chain": self.chain,
            "contract_address": self.contract_address,
            "token_id": self.token_id,
            "image_url": self.image_url,
            "floor_price_usd": self.floor_price_usd,
        }


@dataclass(frozen=True)
class NftReport:
    """
    NFTs held by a wallet.

    ``estimated_value_usd`` sums collection floor prices and is None when
    the provider reports no floor prices at all.
    """
    address: str
    chain_type: ChainType
    nfts: tuple[NftAsset, ...] = ()
    estimated_value_usd: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "chain_type": self.chain_type.value,
            "nfts": [n.to_dict() for n in self.nfts],
            "estimated_value_usd": self.estimated_value_usd,
        }


# ─────────────────────────────────────────────────────────────
# Portfolio overview
# ─────────────────────────────────────────────────────────────

TOP_ENTRIES = 5


@dataclass(frozen=True)
class PortfolioOverview:
    """
    Tokens, DeFi and NFTs for one wallet in a single view.

    Each section is filled by its own operation. A section whose
    operation failed is None and its message is kept in ``errors``.
    """
    address: str
    chain_type: ChainType
    tokens: Optional[BalanceReport] = None
    defi: Optional[DefiReport] = None
    nfts: Optional[NftReport] = None
    sources: tuple[tuple[str, str], ...] = ()
    errors: tuple[tuple[str, str], ...] = ()

    @property
    def total_value_usd(self) -> float:
        """Tokens plus DeFi. NFT floor estimates are not counted."""
        total = self.tokens.total_value_usd if self.tokens else 0.0
        if self.defi:
            total += self.defi.total_value_usd
        return total

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "address": self.address,
            "chain_type": self.chain_type.value,
            "total_value_usd": self.total_value_usd,
            "tokens": None,
            "defi": None,
            "nfts": None,
            "sources": dict(self.sources),
            "errors": dict(self.errors),
        }
        if self.tokens:
            data["tokens"] = {
                "total_value_usd": self.tokens.total_value_usd,
                "count": len(self.tokens.balances),
                "top_holdings": [
                    {"symbol": b.symbol, "value_usd": b.value_usd} for b in self.tokens.balances[:TOP_ENTRIES]
                ],
            }
        if self.defi:
            data["defi"] = {
                "total_value_usd": self.defi.total_value_usd,
                "position_count": len(self.defi.positions),
                "protocols": [
                    {"name": name, "value_usd": value}
                    for name, value in self.defi.protocol_totals()[:TOP_ENTRIES]
                ],
            }
        if self.nfts:
            data["nfts"] = {
                "count": len(self.nfts.nfts),
                "estimated_value_usd": self.nfts.estimated_value_usd,
            }
        return data


# ─────────────────────────────────────────────────────────────
# Wallet history
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TokenMovement:
    symbol: str
    amount: float
    direction: str  # "in" | "out"
    value_usd: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "amount": self.amount,
            "direction": self.direction,
            "value_usd": self.value_usd,
        }


@dataclass(frozen=True)
class TransactionFee:
    amount: float
    symbol: str
    value_usd: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {"amount": self.amount, "symbol": self.symbol, "value_usd": self.value_usd}


@dataclass(frozen=True)
class WalletTransaction:
    """One entry of a wallet's activity feed."""
    id: str
    hash: str
    chain: str
    timestamp: int
    type: str  # send | receive | swap | approve | contract | other
    status: str  # success | failed | pending
    from_address: str = ""
    to_address: str = ""
    value_usd: Optional[float] = None
    fee: Optional[TransactionFee] = None
    tokens: tuple[TokenMovement, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "hash": self.hash,
            "chain": self.chain,
            "timestamp": self.timestamp,
            "type": self.type,
            "status": self.status,
            "from": self.from_address,
            "to": self.to_address,
            "value_usd": self.value_usd,
            "fee": self.fee.to_dict() if self.fee else None,
            "tokens": [t.to_dict() for t in self.tokens],
        }


@dataclass(frozen=True)
class HistoryPage:
    """
    One page of wallet history.

    ``next_cursor`` is opaque: it is handed back verbatim to the provider
    that produced it and never interpreted here.
    """
    address: str
    chain_type: ChainType
    transactions: tuple[WalletTransaction, ...] = ()
    next_cursor: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "chain_type": self.chain_type.value,
            "transactions": [t.to_dict() for t in self.transactions],
            "next_cursor": self.next_cursor,
        }


# ─────────────────────────────────────────────────────────────
# Transaction detail
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TokenTransfer:
    token_type: str  # ERC20 | ERC721 | SPL
    contract_address: str
    from_address: str
    to_address: str
    amount: Optional[str] = None
    amount_formatted: Optional[float] = None
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    token_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_type": self.token_type,
            "contract_address": self.contract_address,
            "from": self.from_address,
            "to": self.to_address,
            "amount": self.amount,
            "amount_formatted": self.amount_formatted,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "token_id": self.token_id,
        }


@dataclass(frozen=True)
class InternalTransaction:
    """Value moved by a contract call inside a transaction."""
    from_address: str
    to_address: str
    value: str
    value_formatted: float
    type: str = "call"
    gas_used: Optional[int] = None
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.from_address,
            "to": self.to_address,
            "value": self.value,
            "value_formatted": self.value_formatted,
            "type": self.type,
            "gas_used": self.gas_used,
            "is_error": self.is_error,
        }


@dataclass(frozen=True)
class TransactionDetail:
    """Full detail of a single on-chain transaction."""
    hash: str
    chain: str
    block_number: int
    timestamp: int
    status: str  # success | failed | pending
    from_address: str
    to_address: Optional[str]
    value: str
    value_formatted: float
    fee: TransactionFee
    gas_used: Optional[int] = None
    gas_limit: Optional[int] = None
    gas_price: Optional[str] = None
    method_id: Optional[str] = None
    token_transfers: tuple[TokenTransfer, ...] = ()
    internal_transactions: tuple[InternalTransaction, ...] = ()
    explorer_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "chain": self.chain,
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "status": self.status,
            "from": self.from_address,
            "to": self.to_address,
            "value": self.value,
            "value_formatted": self.value_formatted,
            "fee": self.fee.to_dict(),
            "gas_used": self.gas_used,
            "gas_limit": self.gas_limit,
            "gas_price": self.gas_price,
            "method_id": self.method_id,
            "token_transfers": [t.to_dict() for t in self.token_transfers],
            "internal_transactions": [t.to_dict() for t in self.internal_transactions],
            "explorer_url": self.explorer_url,
        }


@dataclass(frozen=True)
class GasEstimate:
    """Gas oracle snapshot, prices in gwei."""
    chain: str
    safe_gwei: float
    propose_gwei: float
    fast_gwei: float
    base_fee_gwei: Optional[float] = None
    gas_used_ratio: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain": self.chain,
            "safe_gwei": self.safe_gwei,
            "propose_gwei": self.propose_gwei,
            "fast_gwei": self.fast_gwei,
            "base_fee_gwei": self.base_fee_gwei,
            "gas_used_ratio": self.gas_used_ratio,
        }


# ─────────────────────────────────────────────────────────────
# Prices
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TokenPrice:
    id: str
    symbol: str
    name: str
    price_usd: float
    change_1h: Optional[float] = None
    change_24h: Optional[float] = None
    change_7d: Optional[float] = None
    change_30d: Optional[float] = None
    market_cap: Optional[float] = None
    market_cap_rank: Optional[int] = None
    volume_24h: Optional[float] = None
    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    max_supply: Optional[float] = None
    ath: Optional[float] = None
    atl: Optional[float] = None
    last_updated: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "name": self.name,
            "price_usd": self.price_usd,
            "change_1h": self.change_1h,
            "change_24h": self.change_24h,
            "change_7d": self.change_7d,
            "change_30d": self.change_30d,
            "market_cap": self.market_cap,
            "market_cap_rank": self.market_cap_rank,
            "volume_24h": self.volume_24h,
            "circulating_supply": self.circulating_supply,
            "total_supply": self.total_supply,
            "max_supply": self.max_supply,
            "ath": self.ath,
            "atl": self.atl,
            "last_updated": self.last_updated,
        }


@dataclass(frozen=True)
class MarketOverview:
    total_market_cap: float
    total_volume_24h: float
    btc_dominance: float
    eth_dominance: Optional[float] = None
    market_cap_change_24h: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_market_cap": self.total_market_cap,
            "total_volume_24h": self.total_volume_24h,
            "btc_dominance": self.btc_dominance,
            "eth_dominance": self.eth_dominance,
            "market_cap_change_24h": self.market_cap_change_24h,
        }


# ─────────────────────────────────────────────────────────────
# Prediction markets
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MarketOutcome:
    name: str
    price: float

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "price": self.price}


YES_OUTCOME_NAMES = frozenset({"yes", "true"})


@dataclass(frozen=True)
class PredictionMarket:
    """A single binary or multi-outcome prediction market."""
    id: str
    question: str
    outcomes: tuple[MarketOutcome, ...] = ()
    volume: float = 0.0
    liquidity: float = 0.0
    end_date: Optional[str] = None
    category: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    tags: tuple[str, ...] = field(default=())

    def yes_probability(self) -> Optional[float]:
        """Price of the "Yes" (or "True") outcome, case-insensitive."""
        for outcome in self.outcomes:
            if outcome.name.strip().lower() in YES_OUTCOME_NAMES:
                return outcome.price
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "volume": self.volume,
            "liquidity": self.liquidity,
            "end_date": self.end_date,
            "category": self.category,
            "slug": self.slug,
            "description": self.description,
            "tags": list(self.tags),
        }


@dataclass(frozen=True)
class MarketList:
    markets: tuple[PredictionMarket, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"markets": [m.to_dict() for m in self.markets]}


@dataclass(frozen=True)
class MarketFilter:
    """Tag include/exclude filter for market listings (lowercase slugs)."""
    include_tags: tuple[str, ...] = ()
    exclude_tags: tuple[str, ...] = ()

    def allows(self, tags: tuple[str, ...]) -> bool:
        lowered = {t.lower() for t in tags}
        if self.exclude_tags and lowered.intersection(self.exclude_tags):
            return False
        if self.include_tags and not lowered.intersection(self.include_tags):
            return False
        return True

    @property
    def is_empty(self) -> bool:
        return not self.include_tags and not self.exclude_tags


# ─────────────────────────────────────────────────────────────
# Centralized exchanges
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CexBalance:
    exchange: str
    asset: str
    free: float
    locked: float
    total: float
    value_usd: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "exchange": self.exchange,
            "asset": self.asset,
            "free": self.free,
            "locked": self.locked,
            "total": self.total,
            "value_usd": self.value_usd,
        }


@dataclass(frozen=True)
class CexBalanceReport:
    exchange: str
    total_value_usd: float
    balances: tuple[CexBalance, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "exchange": self.exchange,
            "total_value_usd": self.total_value_usd,
            "balances": [b.to_dict() for b in self.balances],
        }


@dataclass(frozen=True)
class CexTrade:
    exchange: str
    id: str
    symbol: str
    side: str  # buy | sell
    price: float
    quantity: float
    total: float
    timestamp: float
    fee: Optional[float] = None
    fee_asset: Optional[str] = None
    order_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "exchange": self.exchange,
            "id": self.id,
            "symbol": self.symbol,
            "side": self.side,
            "price": self.price,
            "quantity": self.quantity,
            "total": self.total,
            "timestamp": self.timestamp,
            "fee": self.fee,
            "fee_asset": self.fee_asset,
            "order_id": self.order_id,
        }


@dataclass(frozen=True)
class CexHistoryPage:
    exchange: str
    trades: tuple[CexTrade, ...] = ()
    next_cursor: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "exchange": self.exchange,
            "trades": [t.to_dict() for t in self.trades],
            "next_cursor": self.next_cursor,
        }


def page_trades(
    trades: list[CexTrade],
    limit: int,
) -> tuple[tuple[CexTrade, ...], Optional[str]]:
    """Newest-first slice of ``trades`` plus the cursor for the next page."""
    ordered = sorted(trades, key=lambda t: t.timestamp, reverse=True)[:limit]
    next_cursor = ordered[-1].id if ordered and len(ordered) == limit else None
    return tuple(ordered), next_cursor


# ─────────────────────────────────────────────────────────────
# Token search
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TokenMatch:
    id: str
    symbol: str
    name: str
    market_cap_rank: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "name": self.name,
            "market_cap_rank": self.market_cap_rank,
        }


@dataclass(frozen=True)
class TokenSearchResults:
    query: str
    tokens: tuple[TokenMatch, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"query": self.query, "tokens": [t.to_dict() for t in self.tokens]}


# ─────────────────────────────────────────────────────────────
# Market tags
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MarketTag:
    id: str
    label: str
    slug: str
    event_count: Optional[int] = None  # set only for popular listings

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "label": self.label, "slug": self.slug, "event_count": self.event_count}


@dataclass(frozen=True)
class MarketTagList:
    tags: tuple[MarketTag, ...] = ()
    popular: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"popular": self.popular, "tags": [t.to_dict() for t in self.tags]}


# ─────────────────────────────────────────────────────────────
# Wallet intelligence (Nansen)
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class WalletLabel:
    label: str
    category: str
    definition: str = ""
    is_smart_money: bool = False
    sm_earned_date: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "category": self.category,
            "definition": self.definition,
            "is_smart_money": self.is_smart_money,
            "sm_earned_date": self.sm_earned_date,
        }


@dataclass(frozen=True)
class WalletLabels:
    address: str
    chain: str
    entity: Optional[str] = None
    labels: tuple[WalletLabel, ...] = ()

    def by_category(self) -> dict[str, list[WalletLabel]]:
        grouped: dict[str, list[WalletLabel]] = {}
        for label in self.labels:
            grouped.setdefault(label.category or "other", []).append(label)
        return grouped

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "chain": self.chain,
            "entity": self.entity,
            "labels": [label.to_dict() for label in self.labels],
        }


@dataclass(frozen=True)
class SmartMoneyHolding:
    """A token held by smart-money wallets; percentages are 0-100."""
    chain: str
    token_address: str
    symbol: str
    value_usd: float
    change_24h_percent: float
    holders_count: int
    share_of_holdings_percent: float
    token_age_days: int
    market_cap_usd: Optional[float] = None
    sectors: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain": self.chain,
            "token_address": self.token_address,
            "symbol": self.symbol,
            "sectors": list(self.sectors),
            "value_usd": self.value_usd,
            "change_24h_percent": self.change_24h_percent,
            "holders_count": self.holders_count,
            "share_of_holdings_percent": self.share_of_holdings_percent,
            "token_age_days": self.token_age_days,
            "market_cap_usd": self.market_cap_usd,
        }


@dataclass(frozen=True)
class SmartMoneyHoldings:
    chain: str
    holdings: tuple[SmartMoneyHolding, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"chain": self.chain, "holdings": [h.to_dict() for h in self.holdings]}


@dataclass(frozen=True)
class ScreenerToken:
    chain: str
    token_address: str
    symbol: str
    price_usd: float
    price_change_percent: float
    volume: float
    netflow: float
    token_age_days: Optional[int] = None
    market_cap_usd: Optional[float] = None
    liquidity: Optional[float] = None
    fdv: Optional[float] = None
    buy_volume: Optional[float] = None
    sell_volume: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain": self.chain,
            "token_address": self.token_address,
            "symbol": self.symbol,
            "token_age_days": self.token_age_days,
            "market_cap_usd": self.market_cap_usd,
            "liquidity": self.liquidity,
            "price_usd": self.price_usd,
            "price_change_percent": self.price_change_percent,
            "fdv": self.fdv,
            "buy_volume": self.buy_volume,
            "sell_volume": self.sell_volume,
            "volume": self.volume,
            "netflow": self.netflow,
        }


@dataclass(frozen=True)
class TokenScreener:
    chain: str
    timeframe: str
    tokens: tuple[ScreenerToken, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain": self.chain,
            "timeframe": self.timeframe,
            "tokens": [t.to_dict() for t in self.tokens],
        }
