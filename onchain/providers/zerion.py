"""
Zerion Provider - wallet balances and history for EVM and Solana.

Auth: HTTP Basic with the API key as username and an empty password.
"""

import base64
import logging
from datetime import datetime
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

import aiohttp

from onchain.config.capabilities import ProviderId
from onchain.models import (
    BalanceReport,
    ChainType,
    HistoryPage,
    TokenBalance,
    TokenMovement,
    TransactionFee,
    WalletTransaction,
    sort_by_value,
)
from onchain.providers.base import BaseProvider
from onchain.results import OperationResult


logger = logging.getLogger(__name__)


ZERION_API_BASE = "https://api.zerion.io/v1"

# Zerion chain id -> short chain id used across the CLI
ZERION_TO_CHAIN = {
    "ethereum": "eth",
    "binance-smart-chain": "bsc",
    "polygon": "polygon",
    "arbitrum": "arb",
    "optimism": "op",
    "avalanche": "avax",
    "base": "base",
    "zksync-era": "zksync",
    "linea": "linea",
    "scroll": "scroll",
    "blast": "blast",
    "mantle": "mantle",
    "manta": "manta",
    "mode": "mode",
    "gnosis": "gnosis",
    "fantom": "fantom",
    "celo": "celo",
    "aurora": "aurora",
    "moonbeam": "moonbeam",
    "moonriver": "moonriver",
    "cronos": "cronos",
    "harmony": "harmony",
    "metis": "metis",
    "boba": "boba",
    "solana": "solana",
}
CHAIN_TO_ZERION = {v: k for k, v in ZERION_TO_CHAIN.items()}

OPERATION_TYPES = {
    "send": "send",
    "receive": "receive",
    "trade": "swap",
    "approve": "approve",
    "execute": "contract",
    "deploy": "contract",
    "mint": "contract",
    "burn": "contract",
}


def _chain_from_zerion(zerion_chain_id: Optional[str]) -> str:
    return ZERION_TO_CHAIN.get(zerion_chain_id or "", "eth")


def _parse_mined_at(value: Optional[str]) -> int:
    if not value:
        return 0
    return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())


def _next_cursor(links: Optional[dict[str, Any]]) -> Optional[str]:
    """Extract ``page[after]`` from the ``links.next`` URL."""
    next_url = (links or {}).get("next")
    if not next_url:
        return None
    values = parse_qs(urlparse(next_url).query).get("page[after]")
    return values[0] if values else None


class ZerionProvider(BaseProvider):
    """Zerion portfolio API."""

    provider_id = ProviderId.ZERION
    display_name = "Zerion"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(timeout, session)
        self._api_key = api_key

    def _auth_headers(self) -> dict[str, str]:
        encoded = base64.b64encode(f"{self._api_key}:".encode()).decode()
        return {"Authorization": f"Basic {encoded}"}

    # ─────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────

    async def get_balances(
        self,
        address: str,
        chain_type: ChainType,
        chains: Optional[list[str]] = None,
    ) -> OperationResult[BalanceReport]:
        if not self._api_key:
            return self._not_configured("Zerion balances")
        return await self._guard("balances", self._fetch_balances(address, chain_type, chains))

    async def _fetch_balances(
        self,
        address: str,
        chain_type: ChainType,
        chains: Optional[list[str]],
    ) -> BalanceReport:
        params = {
            "filter[positions]": "only_simple",
            "currency": "usd",
            "filter[trash]": "only_non_trash",
            "sort": "-value",
        }
        zerion_chains = [CHAIN_TO_ZERION[c] for c in chains or [] if c in CHAIN_TO_ZERION]
        if zerion_chains:
            params["filter[chain_ids]"] = ",".join(zerion_chains)

        data = self._expect(
            await self._request_json(
                "GET",
                f"{ZERION_API_BASE}/wallets/{address}/positions/",
                params=params,
                headers=self._auth_headers(),
            ),
            dict,
            "positions response",
        )

        balances = []
        total = 0.0
        for position in self._expect(data.get("data"), list, "positions"):
            attrs = position["attributes"]
            info = attrs["fungible_info"]
            implementations = info.get("implementations") or []
            impl = implementations[0] if implementations else None
            quantity = attrs["quantity"]

            value = attrs.get("value")
            if value:
                total += value

            balances.append(TokenBalance(
                symbol=info["symbol"],
                name=info["name"],
                chain=_chain_from_zerion(impl["chain_id"]) if impl else "eth",
                balance=float(quantity["float"]),
                price_usd=attrs.get("price"),
                value_usd=value,
                decimals=quantity.get("decimals"),
                contract_address=impl.get("address") if impl else None,
                balance_raw=quantity.get("int"),
            ))

        # The API sorts nulls first with sort=-value
        return BalanceReport(
            address=address,
            chain_type=chain_type,
            total_value_usd=total,
            balances=sort_by_value(balances),
        )

    # ─────────────────────────────────────────────────────────────
    # History
    # ─────────────────────────────────────────────────────────────

    async def get_history(
        self,
        address: str,
        chain_type: ChainType,
        limit: int = 20,
        cursor: Optional[str] = None,
        chain: Optional[str] = None,
    ) -> OperationResult[HistoryPage]:
        if not self._api_key:
            return self._not_configured("Zerion history")
        return await self._guard("history", self._fetch_history(address, chain_type, limit, cursor, chain))

    async def _fetch_history(
        self,
        address: str,
        chain_type: ChainType,
        limit: int,
        cursor: Optional[str],
        chain: Optional[str],
    ) -> HistoryPage:
        params: dict[str, Any] = {"currency": "usd", "page[size]": limit}
        if cursor:
            params["page[after]"] = cursor
        if chain and chain in CHAIN_TO_ZERION:
            params["filter[chain_ids]"] = CHAIN_TO_ZERION[chain]

        data = self._expect(
            await self._request_json(
                "GET",
                f"{ZERION_API_BASE}/wallets/{address}/transactions/",
                params=params,
                headers=self._auth_headers(),
            ),
            dict,
            "transactions response",
        )

        rows = self._expect(data.get("data"), list, "transactions")
        transactions = tuple(self._normalize_transaction(tx) for tx in rows)
        return HistoryPage(
            address=address,
            chain_type=chain_type,
            transactions=transactions,
            next_cursor=_next_cursor(data.get("links")),
        )

    def _normalize_transaction(self, tx: dict[str, Any]) -> WalletTransaction:
        attrs = tx["attributes"]

        status = {"confirmed": "success", "failed": "failed"}.get(attrs.get("status"), "pending")

        fee = None
        if attrs.get("fee"):
            fee = TransactionFee(
                amount=float(attrs["fee"]["quantity"]["float"]),
                symbol=attrs["fee"]["fungible_info"]["symbol"],
                value_usd=attrs["fee"].get("value"),
            )

        transfers = attrs.get("transfers") or []
        tokens = tuple(
            TokenMovement(
                symbol=t["fungible_info"]["symbol"],
                amount=float(t["quantity"]["float"]),
                direction=t["direction"],
                value_usd=t.get("value"),
            )
            for t in transfers
        )

        outgoing = [t for t in transfers if t["direction"] == "out"]
        value_usd = sum(t.get("value") or 0.0 for t in outgoing) if outgoing else None

        chain_ref = ((tx.get("relationships") or {}).get("chain") or {}).get("data") or {}
        chain_id = chain_ref.get("id")

        return WalletTransaction(
            id=tx["id"],
            hash=attrs["hash"],
            chain=_chain_from_zerion(chain_id),
            timestamp=_parse_mined_at(attrs.get("mined_at")),
            type=OPERATION_TYPES.get(attrs.get("operation_type"), "other"),
            status=status,
            from_address=attrs.get("sent_from") or "",
            to_address=attrs.get("sent_to") or "",
            value_usd=value_usd,
            fee=fee,
            tokens=tokens,
        )
