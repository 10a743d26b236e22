"""
Helius Provider - Solana balances, history and NFTs.

Balances combine two RPC calls (native SOL and SPL token accounts) with
Jupiter prices and Helius token metadata. Prices and metadata are
enrichment only: when either lookup fails the balances are still returned,
unpriced or with placeholder names.
"""

import logging
from typing import Any, Optional

import aiohttp

from onchain.config.capabilities import ProviderId
from onchain.exceptions import ChainNotSupportedError, FetchError, OnchainError
from onchain.models import (
    BalanceReport,
    ChainType,
    HistoryPage,
    NftAsset,
    NftReport,
    TokenBalance,
    TokenMovement,
    TransactionFee,
    WalletTransaction,
    sort_by_value,
)
from onchain.providers.base import BaseProvider
from onchain.results import OperationResult


logger = logging.getLogger(__name__)


HELIUS_API_BASE = "https://api.helius.xyz/v0"
HELIUS_RPC_BASE = "https://mainnet.helius-rpc.com/"
JUPITER_PRICE_API = "https://price.jup.ag/v6/price"

SPL_TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
SOL_MINT = "So11111111111111111111111111111111111111112"
LAMPORTS_PER_SOL = 1e9


class HeliusProvider(BaseProvider):
    """Helius RPC + enhanced transactions API (Solana only)."""

    provider_id = ProviderId.HELIUS
    display_name = "Helius"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(timeout, session)
        self._api_key = api_key

    def _require_solana(self, chain_type: ChainType) -> None:
        if chain_type is not ChainType.SOLANA:
            raise ChainNotSupportedError(
                "Helius only supports Solana addresses",
                provider=self.name,
                chain=chain_type.value,
                supported_chains=[ChainType.SOLANA.value],
            )

    async def _rpc(self, request_id: int, method: str, params: list[Any]) -> Any:
        data = await self._request_json(
            "POST",
            HELIUS_RPC_BASE,
            params={"api-key": self._api_key},
            json_body={"jsonrpc": "2.0", "id": request_id, "method": method, "params": params},
        )
        data = self._expect(data, dict, f"{method} response")
        if data.get("error"):
            raise FetchError(
                f"Helius RPC error: {data['error'].get('message', data['error'])}",
                provider=self.name,
                chain="solana",
            )
        return data.get("result")

    # ─────────────────────────────────────────────────────────────
    # Enrichment
    # ─────────────────────────────────────────────────────────────

    async def _token_prices(self, mints: list[str]) -> dict[str, float]:
        try:
            data = await self._request_json("GET", JUPITER_PRICE_API, params={"ids": ",".join(mints)})
        except OnchainError as e:
            logger.info(f"[{self.name}] Jupiter prices unavailable: {e.message}")
            return {}
        return {
            mint: float(entry["price"])
            for mint, entry in (data.get("data") or {}).items()
            if entry and entry.get("price") is not None
        }

    async def _token_metadata(self, mints: list[str]) -> dict[str, dict[str, Any]]:
        try:
            data = await self._request_json(
                "POST",
                f"{HELIUS_API_BASE}/token-metadata",
                params={"api-key": self._api_key},
                json_body={"mintAccounts": mints},
            )
        except OnchainError as e:
            logger.info(f"[{self.name}] token metadata unavailable: {e.message}")
            return {}
        return {meta["mint"]: meta for meta in data or [] if meta.get("mint")}

    @staticmethod
    def _symbol_and_name(meta: Optional[dict[str, Any]]) -> tuple[str, str]:
        meta = meta or {}
        off_chain = ((meta.get("offChainMetadata") or {}).get("metadata")) or {}
        on_chain = (((meta.get("onChainMetadata") or {}).get("metadata") or {}).get("data")) or {}
        legacy = meta.get("legacyMetadata") or {}
        symbol = off_chain.get("symbol") or on_chain.get("symbol") or legacy.get("symbol") or "UNKNOWN"
        name = off_chain.get("name") or on_chain.get("name") or legacy.get("name") or "Unknown Token"
        return symbol, name

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
            return self._not_configured("Helius balances")
        return await self._guard("balances", self._fetch_balances(address, chain_type))

    async def _fetch_balances(self, address: str, chain_type: ChainType) -> BalanceReport:
        self._require_solana(chain_type)

        sol_result = await self._rpc(1, "getBalance", [address])
        token_result = await self._rpc(
            2,
            "getTokenAccountsByOwner",
            [address, {"programId": SPL_TOKEN_PROGRAM}, {"encoding": "jsonParsed"}],
        )

        lamports = int((sol_result or {}).get("value", 0))
        sol_amount = lamports / LAMPORTS_PER_SOL

        accounts = []
        for account in (token_result or {}).get("value") or []:
            info = account["account"]["data"]["parsed"]["info"]
            if (info["tokenAmount"].get("uiAmount") or 0) > 0:
                accounts.append(info)
        mints = [info["mint"] for info in accounts]

        prices = await self._token_prices([SOL_MINT, *mints])
        metadata = await self._token_metadata(mints) if mints else {}

        total = 0.0
        sol_price = prices.get(SOL_MINT)
        sol_value = sol_amount * sol_price if sol_price else None
        if sol_value:
            total += sol_value

        balances = [TokenBalance(
            symbol="SOL",
            name="Solana",
            chain="solana",
            balance=sol_amount,
            price_usd=sol_price,
            value_usd=sol_value,
            decimals=9,
            balance_raw=str(lamports),
        )]

        for info in accounts:
            mint = info["mint"]
            amount = float(info["tokenAmount"]["uiAmount"])
            price = prices.get(mint)
            value = amount * price if price else None
            if value:
                total += value
            symbol, name = self._symbol_and_name(metadata.get(mint))
            balances.append(TokenBalance(
                symbol=symbol,
                name=name,
                chain="solana",
                balance=amount,
                price_usd=price,
                value_usd=value,
                decimals=info["tokenAmount"].get("decimals"),
                contract_address=mint,
                balance_raw=info["tokenAmount"].get("amount"),
            ))

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
            return self._not_configured("Helius history")
        return await self._guard("history", self._fetch_history(address, chain_type, limit, cursor))

    async def _fetch_history(
        self,
        address: str,
        chain_type: ChainType,
        limit: int,
        cursor: Optional[str],
    ) -> HistoryPage:
        self._require_solana(chain_type)

        params: dict[str, Any] = {"api-key": self._api_key, "limit": limit}
        if cursor:
            params["before"] = cursor

        data = self._expect(
            await self._request_json(
                "GET",
                f"{HELIUS_API_BASE}/addresses/{address}/transactions",
                params=params,
            ),
            list,
            "transactions response",
        )

        transactions = tuple(self._normalize_transaction(tx, address) for tx in data)
        return HistoryPage(
            address=address,
            chain_type=chain_type,
            transactions=transactions,
            next_cursor=data[-1]["signature"] if data else None,
        )

    @staticmethod
    def _normalize_transaction(tx: dict[str, Any], address: str) -> WalletTransaction:
        native = tx.get("nativeTransfers") or []
        token = tx.get("tokenTransfers") or []
        tx_type = (tx.get("type") or "").lower()

        if tx_type in ("transfer", "sol_transfer"):
            kind = "send" if any(t["fromUserAccount"] == address for t in native) else "receive"
        elif "swap" in tx_type:
            kind = "swap"
        elif tx_type == "token_transfer":
            kind = "send" if any(t["fromUserAccount"] == address for t in token) else "receive"
        else:
            kind = "other"

        tokens = [
            TokenMovement(
                symbol="SOL",
                amount=t["amount"] / LAMPORTS_PER_SOL,
                direction="out" if t["fromUserAccount"] == address else "in",
            )
            for t in native
        ]
        tokens.extend(
            TokenMovement(
                symbol=f"{t['mint'][:6]}...",
                amount=float(t["tokenAmount"]),
                direction="out" if t["fromUserAccount"] == address else "in",
            )
            for t in token
        )

        return WalletTransaction(
            id=tx["signature"],
            hash=tx["signature"],
            chain="solana",
            timestamp=int(tx["timestamp"]),
            type=kind,
            status="failed" if tx.get("transactionError") else "success",
            from_address=tx.get("feePayer", ""),
            to_address=native[0]["toUserAccount"] if native else "",
            fee=TransactionFee(amount=tx.get("fee", 0) / LAMPORTS_PER_SOL, symbol="SOL"),
            tokens=tuple(tokens),
        )

    # ─────────────────────────────────────────────────────────────
    # NFTs
    # ─────────────────────────────────────────────────────────────

    async def get_nfts(self, address: str, chain_type: ChainType) -> OperationResult[NftReport]:
        if not self._api_key:
            return self._not_configured("Solana NFTs")
        return await self._guard("nfts", self._fetch_nfts(address, chain_type))

    async def _fetch_nfts(self, address: str, chain_type: ChainType) -> NftReport:
        self._require_solana(chain_type)

        data = self._expect(
            await self._request_json(
                "GET",
                f"{HELIUS_API_BASE}/addresses/{address}/nfts",
                params={"api-key": self._api_key},
            ),
            dict,
            "NFT response",
        )

        nfts = []
        for item in data.get("nfts") or []:
            content = item.get("content") or {}
            collection = next(
                (g for g in item.get("grouping") or [] if g.get("group_key") == "collection"),
                {},
            )
            nfts.append(NftAsset(
                id=item["id"],
                name=(content.get("metadata") or {}).get("name") or f"#{item['id'][:8]}",
                collection=(
                    (collection.get("collection_metadata") or {}).get("name")
                    or collection.get("group_value")
                    or "Unknown"
                ),
                chain="solana",
                contract_address=collection.get("group_value") or "",
                token_id=item["id"],
                image_url=(content.get("links") or {}).get("image"),
            ))

        # Helius does not report floor prices
        return NftReport(address=address, chain_type=chain_type, nfts=tuple(nfts))
