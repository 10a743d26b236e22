"""
Nansen Provider - wallet balances and wallet intelligence through the `nansen` CLI.

Preferred provider for wallet balances when the CLI is installed, and the
only source of wallet labels, smart-money holdings and the token screener.
It needs no credentials of its own; the CLI manages its own login.
"""

import logging
import re
import shutil
from typing import Any, Callable, Optional

from onchain.config.capabilities import ProviderId
from onchain.exceptions import ChainNotSupportedError, FetchError, OnchainError
from onchain.models import (
    BalanceReport,
    ChainType,
    ScreenerToken,
    SmartMoneyHolding,
    SmartMoneyHoldings,
    TokenBalance,
    TokenScreener,
    WalletLabel,
    WalletLabels,
    sort_by_value,
)
from onchain.providers.base import BaseProvider
from onchain.providers.tooling import ToolRunner
from onchain.results import OperationResult


logger = logging.getLogger(__name__)


# CLI chain id -> Nansen chain name
CHAIN_TO_NANSEN = {
    "eth": "ethereum",
    "ethereum": "ethereum",
    "bsc": "bnb",
    "bnb": "bnb",
    "polygon": "polygon",
    "arb": "arbitrum",
    "arbitrum": "arbitrum",
    "op": "optimism",
    "optimism": "optimism",
    "avax": "avalanche",
    "avalanche": "avalanche",
    "base": "base",
    "zksync": "zksync",
    "linea": "linea",
    "scroll": "scroll",
    "mantle": "mantle",
    "solana": "solana",
}

BALANCE_LIMIT = 100
# Nansen does not report decimals
DEFAULT_DECIMALS = 18

SCREENER_TIMEFRAMES = ("5m", "10m", "1h", "6h", "24h", "7d", "30d")

# Entity names carry a leading emoji
_ENTITY_PREFIX = re.compile(r"^[^\w]+")


def _ratio_to_percent(value: Any) -> float:
    """Nansen reports changes as fractions (0.05 == 5%)."""
    return float(value or 0) * 100


class NansenProvider(BaseProvider):
    """Balances and wallet intelligence via the ``nansen`` CLI."""

    provider_id = ProviderId.NANSEN
    display_name = "Nansen"

    def __init__(
        self,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
        which: Callable[[str], Optional[str]] = shutil.which,
    ) -> None:
        super().__init__(timeout)
        self._runner = ToolRunner("nansen", self.name, which)

    def is_available(self) -> bool:
        return self._runner.is_available()

    def _nansen_chain(self, chain: str) -> str:
        nansen_chain = CHAIN_TO_NANSEN.get(chain.lower())
        if nansen_chain is None:
            raise ChainNotSupportedError(
                f"Chain {chain} not supported by Nansen",
                provider=self.name,
                chain=chain,
                supported_chains=sorted(CHAIN_TO_NANSEN),
            )
        return nansen_chain

    async def _query(self, args: list[str], chain: str) -> Any:
        """Run one CLI command and return its ``data`` member."""
        response = self._expect(await self._runner.run_json(args, timeout=self._timeout), dict, "CLI output")
        if not response.get("success") or not response.get("data"):
            raise FetchError(response.get("error") or "Unknown Nansen error", provider=self.name, chain=chain)
        return response["data"]

    # =========================================================================
    # Balances
    # =========================================================================

    async def get_balances(
        self,
        address: str,
        chain_type: ChainType,
        chains: Optional[list[str]] = None,
    ) -> OperationResult[BalanceReport]:
        return await self._guard("balances", self._fetch_balances(address, chain_type, chains))

    async def _fetch_balances(
        self,
        address: str,
        chain_type: ChainType,
        chains: Optional[list[str]],
    ) -> BalanceReport:
        if chain_type is ChainType.SOLANA:
            chain = "solana"
        else:
            chain = chains[0] if chains else "eth"

        data = await self._query(
            [
                "profiler", "balance",
                "--address", address,
                "--chain", self._nansen_chain(chain),
                "--limit", str(BALANCE_LIMIT),
            ],
            chain,
        )

        balances = []
        total = 0.0
        for item in self._expect(data.get("data"), list, "balances"):
            value = item.get("value_usd")
            if value:
                total += float(value)
            balances.append(TokenBalance(
                symbol=item["token_symbol"],
                name=item.get("token_name") or item["token_symbol"],
                chain=chain,
                balance=float(item["token_amount"]),
                price_usd=item.get("price_usd"),
                value_usd=value,
                decimals=DEFAULT_DECIMALS,
                contract_address=item.get("token_address"),
                balance_raw=str(item["token_amount"]),
            ))

        return BalanceReport(
            address=address,
            chain_type=chain_type,
            total_value_usd=total,
            balances=sort_by_value(balances),
        )

    # =========================================================================
    # Wallet intelligence
    # =========================================================================

    async def get_wallet_labels(self, address: str, chain: str = "ethereum") -> OperationResult[WalletLabels]:
        return await self._guard("wallet labels", self._fetch_labels(address, chain))

    async def _fetch_labels(self, address: str, chain: str) -> WalletLabels:
        nansen_chain = self._nansen_chain(chain)
        rows = self._expect(
            await self._query(["profiler", "labels", "--address", address, "--chain", nansen_chain], chain),
            list,
            "labels",
        )

        entity = None
        labels: dict[str, WalletLabel] = {}
        for row in rows:
            if entity is None and row.get("fullname"):
                entity = _ENTITY_PREFIX.sub("", row["fullname"]).strip() or None
            name = row["label"]
            if name in labels:
                continue
            category = row.get("category") or "other"
            labels[name] = WalletLabel(
                label=name,
                category=category,
                definition=row.get("definition") or "",
                is_smart_money=category == "behavioral" and "Smart" in name,
                sm_earned_date=row.get("smEarnedDate"),
            )

        return WalletLabels(address=address, chain=nansen_chain, entity=entity, labels=tuple(labels.values()))

    async def get_smart_money_holdings(
        self,
        chain: str = "solana",
        limit: int = 20,
    ) -> OperationResult[SmartMoneyHoldings]:
        return await self._guard("smart-money holdings", self._fetch_smart_money(chain, limit))

    async def _fetch_smart_money(self, chain: str, limit: int) -> SmartMoneyHoldings:
        nansen_chain = self._nansen_chain(chain)
        data = await self._query(
            ["smart-money", "holdings", "--chain", nansen_chain, "--limit", str(limit)],
            chain,
        )

        holdings = tuple(
            SmartMoneyHolding(
                chain=row.get("chain") or nansen_chain,
                token_address=row["token_address"],
                symbol=row["token_symbol"],
                value_usd=float(row.get("value_usd") or 0),
                change_24h_percent=_ratio_to_percent(row.get("balance_24h_percent_change")),
                holders_count=int(row.get("holders_count") or 0),
                share_of_holdings_percent=_ratio_to_percent(row.get("share_of_holdings_percent")),
                token_age_days=int(row.get("token_age_days") or 0),
                market_cap_usd=row.get("market_cap_usd"),
                sectors=tuple(row.get("token_sectors") or ()),
            )
            for row in self._expect(data.get("data"), list, "holdings")
        )
        return SmartMoneyHoldings(chain=nansen_chain, holdings=holdings)

    async def get_token_screener(
        self,
        chain: str = "solana",
        limit: int = 20,
        timeframe: str = "24h",
    ) -> OperationResult[TokenScreener]:
        return await self._guard("token screener", self._fetch_screener(chain, limit, timeframe))

    async def _fetch_screener(self, chain: str, limit: int, timeframe: str) -> TokenScreener:
        if timeframe not in SCREENER_TIMEFRAMES:
            raise OnchainError(
                f"Unknown timeframe {timeframe!r}; use one of {', '.join(SCREENER_TIMEFRAMES)}",
                provider=self.name,
            )
        nansen_chain = self._nansen_chain(chain)
        data = await self._query(
            ["token", "screener", "--chain", nansen_chain, "--limit", str(limit), "--timeframe", timeframe],
            chain,
        )

        tokens = tuple(
            ScreenerToken(
                chain=row.get("chain") or nansen_chain,
                token_address=row["token_address"],
                symbol=row["token_symbol"],
                price_usd=float(row.get("price_usd") or 0),
                price_change_percent=_ratio_to_percent(row.get("price_change")),
                volume=float(row.get("volume") or 0),
                netflow=float(row.get("netflow") or 0),
                token_age_days=row.get("token_age_days"),
                market_cap_usd=row.get("market_cap_usd"),
                liquidity=row.get("liquidity"),
                fdv=row.get("fdv"),
                buy_volume=row.get("buy_volume"),
                sell_volume=row.get("sell_volume"),
            )
            for row in self._expect(data.get("data"), list, "screener")
        )
        return TokenScreener(chain=nansen_chain, timeframe=timeframe, tokens=tokens)
