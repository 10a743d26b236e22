"""
DeBank Provider - EVM wallet balances, history, DeFi positions and NFTs.

History pagination: the cursor is the ``time_at`` of the last item of the
previous page, passed back as ``start_time``.
"""

import logging
from typing import Any, Optional

import aiohttp

from onchain.config.capabilities import ProviderId
from onchain.exceptions import ChainNotSupportedError
from onchain.models import (
    BalanceReport,
    ChainType,
    DefiAsset,
    DefiPosition,
    DefiReport,
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


DEBANK_API_BASE = "https://pro-openapi.debank.com/v1"

CATEGORY_TYPES = {
    "send": "send",
    "receive": "receive",
    "swap": "swap",
    "trade": "swap",
    "approve": "approve",
}

# First match wins, in this order
POSITION_TYPES = (
    ("lending", "lending"),
    ("staked", "staking"),
    ("liquidity", "liquidity"),
    ("farming", "farming"),
    ("reward", "farming"),
    ("vesting", "vesting"),
    ("locked", "vesting"),
)


def position_type(detail_types: list[str]) -> str:
    for detail_type, position in POSITION_TYPES:
        if detail_type in detail_types:
            return position
    return "other"


class DeBankProvider(BaseProvider):
    """DeBank Cloud OpenAPI (EVM only)."""

    provider_id = ProviderId.DEBANK
    display_name = "DeBank"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(timeout, session)
        self._api_key = api_key

    def _auth_headers(self) -> dict[str, str]:
        return {"AccessKey": self._api_key or ""}

    def _require_evm(self, chain_type: ChainType) -> None:
        if chain_type is not ChainType.EVM:
            raise ChainNotSupportedError(
                "DeBank only supports EVM addresses",
                provider=self.name,
                chain=chain_type.value,
                supported_chains=[ChainType.EVM.value],
            )

    async def get_balances(
        self,
        address: str,
        chain_type: ChainType,
        chains: Optional[list[str]] = None,
    ) -> OperationResult[BalanceReport]:
        if not self._api_key:
            return self._not_configured("DeBank balances")
        return await self._guard("balances", self._fetch_balances(address, chain_type, chains))

    async def _fetch_balances(
        self,
        address: str,
        chain_type: ChainType,
        chains: Optional[list[str]],
    ) -> BalanceReport:
        self._require_evm(chain_type)

        if chains:
            url = f"{DEBANK_API_BASE}/user/token_list"
            params = {"id": address, "chain_ids": ",".join(chains), "is_all": "false"}
        else:
            url = f"{DEBANK_API_BASE}/user/all_token_list"
            params = {"id": address, "is_all": "true"}

        tokens = self._expect(
            await self._request_json("GET", url, params=params, headers=self._auth_headers()),
            list,
            "token list",
        )

        balances = []
        total = 0.0
        for token in tokens:
            amount = float(token["amount"])
            if amount <= 0:
                continue
            price = token.get("price")
            value = amount * price if price else None
            if value:
                total += value
            raw = token.get("raw_amount_hex_str") or str(token.get("raw_amount", 0))
            balances.append(TokenBalance(
                symbol=token["symbol"],
                name=token["name"],
                chain=token["chain"],
                balance=amount,
                price_usd=price,
                value_usd=value,
                decimals=token.get("decimals"),
                contract_address=token.get("id"),
                balance_raw=raw,
            ))

        return BalanceReport(
            address=address,
            chain_type=chain_type,
            total_value_usd=total,
            balances=sort_by_value(balances),
        )

    async def get_history(
        self,
        address: str,
        chain_type: ChainType,
        limit: int = 20,
        cursor: Optional[str] = None,
        chain: Optional[str] = None,
    ) -> OperationResult[HistoryPage]:
        if not self._api_key:
            return self._not_configured("DeBank history")
        return await self._guard("history", self._fetch_history(address, chain_type, limit, cursor, chain))

    async def _fetch_history(
        self,
        address: str,
        chain_type: ChainType,
        limit: int,
        cursor: Optional[str],
        chain: Optional[str],
    ) -> HistoryPage:
        self._require_evm(chain_type)

        params: dict[str, Any] = {"id": address, "page_count": limit}
        if chain:
            url = f"{DEBANK_API_BASE}/user/history_list"
            params["chain_id"] = chain
        else:
            url = f"{DEBANK_API_BASE}/user/all_history_list"
        if cursor:
            params["start_time"] = cursor

        data = self._expect(
            await self._request_json("GET", url, params=params, headers=self._auth_headers()),
            dict,
            "history response",
        )

        history = self._expect(data.get("history_list"), list, "history list")
        token_dict = data.get("token_dict") or {}
        transactions = tuple(self._normalize_item(item, token_dict) for item in history)

        next_cursor = str(history[-1]["time_at"]) if history else None
        return HistoryPage(
            address=address,
            chain_type=chain_type,
            transactions=transactions,
            next_cursor=next_cursor,
        )

    def _normalize_item(self, item: dict[str, Any], token_dict: dict[str, Any]) -> WalletTransaction:
        tokens = []
        for key, direction in (("sends", "out"), ("receives", "in")):
            for movement in item.get(key) or []:
                info = token_dict.get(movement["token_id"]) or {}
                price = info.get("price")
                tokens.append(TokenMovement(
                    symbol=info.get("symbol", "UNKNOWN"),
                    amount=float(movement["amount"]),
                    direction=direction,
                    value_usd=movement["amount"] * price if price else None,
                ))

        tx = item.get("tx") or {}
        fee = None
        if tx.get("usd_gas_fee"):
            fee = TransactionFee(
                amount=float(tx.get("eth_gas_fee") or 0),
                symbol="ETH",
                value_usd=tx["usd_gas_fee"],
            )

        return WalletTransaction(
            id=item["id"],
            hash=item["id"].split("_")[0],
            chain=item["chain"],
            timestamp=int(item["time_at"]),
            type=CATEGORY_TYPES.get(item.get("cate_id"), "other"),
            status="success" if tx.get("status") == 1 else "failed",
            from_address=tx.get("from_addr", ""),
            to_address=tx.get("to_addr", ""),
            fee=fee,
            tokens=tuple(tokens),
        )

    # ─────────────────────────────────────────────────────────────
    # DeFi positions
    # ─────────────────────────────────────────────────────────────

    async def get_defi_positions(self, address: str, chain_type: ChainType) -> OperationResult[DefiReport]:
        if not self._api_key:
            return self._not_configured("DeFi positions")
        return await self._guard("defi positions", self._fetch_defi(address, chain_type))

    async def _fetch_defi(self, address: str, chain_type: ChainType) -> DefiReport:
        self._require_evm(chain_type)

        protocols = self._expect(
            await self._request_json(
                "GET",
                f"{DEBANK_API_BASE}/user/all_complex_protocol_list",
                params={"id": address},
                headers=self._auth_headers(),
            ),
            list,
            "protocol list",
        )

        positions = []
        total = 0.0
        for protocol in protocols:
            for item in protocol.get("portfolio_item_list") or []:
                net_value = float((item.get("stats") or {}).get("net_usd_value") or 0.0)
                total += net_value
                detail = item.get("detail") or {}
                tokens = [
                    *(detail.get("supply_token_list") or []),
                    *(detail.get("token_list") or []),
                    *(detail.get("reward_token_list") or []),
                ]
                positions.append(DefiPosition(
                    protocol=protocol["name"],
                    chain=protocol.get("chain") or "",
                    type=position_type(item.get("detail_types") or []),
                    net_value_usd=net_value,
                    assets=tuple(
                        DefiAsset(
                            symbol=token["symbol"],
                            amount=float(token["amount"]),
                            value_usd=float(token["amount"]) * token["price"] if token.get("price") else None,
                        )
                        for token in tokens
                    ),
                    health_factor=detail.get("health_rate"),
                ))

        return DefiReport(address=address, total_value_usd=total, positions=tuple(positions))

    # ─────────────────────────────────────────────────────────────
    # NFTs
    # ─────────────────────────────────────────────────────────────

    async def get_nfts(self, address: str, chain_type: ChainType) -> OperationResult[NftReport]:
        if not self._api_key:
            return self._not_configured("NFTs")
        return await self._guard("nfts", self._fetch_nfts(address, chain_type))

    async def _fetch_nfts(self, address: str, chain_type: ChainType) -> NftReport:
        self._require_evm(chain_type)

        items = self._expect(
            await self._request_json(
                "GET",
                f"{DEBANK_API_BASE}/user/all_nft_list",
                params={"id": address},
                headers=self._auth_headers(),
            ),
            list,
            "NFT list",
        )

        nfts = []
        floor_total: Optional[float] = None
        for item in items:
            collection = item.get("collection") or {}
            floor = collection.get("floor_price")
            if floor:
                floor_total = (floor_total or 0.0) + float(floor)
            nfts.append(NftAsset(
                id=item["id"],
                name=item.get("name") or f"#{item['inner_id']}",
                collection=collection.get("name") or "Unknown",
                chain=item.get("chain") or "",
                contract_address=item.get("contract_id") or "",
                token_id=str(item["inner_id"]),
                image_url=item.get("thumbnail_url") or item.get("content"),
                floor_price_usd=float(floor) if floor else None,
            ))

        return NftReport(
            address=address,
            chain_type=chain_type,
            nfts=tuple(nfts),
            estimated_value_usd=floor_total,
        )
