"""
Binance Provider - spot balances and trade history.

Signed endpoints take a millisecond ``timestamp`` and an HMAC-SHA256
``signature`` of the query string, with the API key in ``X-MBX-APIKEY``.
"""

import hashlib
import hmac
import logging
import time
from typing import Any, Optional
from urllib.parse import urlencode

import aiohttp

from onchain.config.capabilities import ProviderId
from onchain.exceptions import OnchainError
from onchain.models import (
    CexBalance,
    CexBalanceReport,
    CexHistoryPage,
    CexTrade,
    page_trades,
)
from onchain.providers.base import BaseProvider
from onchain.results import OperationResult


logger = logging.getLogger(__name__)


BINANCE_API_BASE = "https://api.binance.com"
DEFAULT_SYMBOLS = ("BTCUSDT", "ETHUSDT", "SOLUSDT", "BNBUSDT")
STABLECOINS = frozenset({"USDT", "USDC", "BUSD", "DAI"})


class BinanceProvider(BaseProvider):
    """Binance spot account (read-only key)."""

    provider_id = ProviderId.BINANCE
    display_name = "Binance"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(timeout, session)
        self._api_key = api_key
        self._api_secret = api_secret

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._api_secret)

    def _sign(self, params: dict[str, Any]) -> dict[str, Any]:
        """Add timestamp and signature to ``params``."""
        signed = dict(params)
        signed["timestamp"] = str(int(time.time() * 1000))
        query_string = urlencode(signed)
        signed["signature"] = hmac.new(
            (self._api_secret or "").encode(),
            query_string.encode(),
            hashlib.sha256,
        ).hexdigest()
        return signed

    async def _signed_get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self._request_json(
            "GET",
            f"{BINANCE_API_BASE}{path}",
            params=self._sign(params or {}),
            headers={"X-MBX-APIKEY": self._api_key or ""},
        )

    # ─────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────

    async def get_exchange_balances(self) -> OperationResult[CexBalanceReport]:
        if not self.is_configured:
            return self._not_configured("Binance balances")
        return await self._guard("balances", self._fetch_balances())

    async def _fetch_balances(self) -> CexBalanceReport:
        account = self._expect(await self._signed_get("/api/v3/account"), dict, "account response")
        prices = await self._usd_prices()

        balances = []
        for row in account["balances"]:
            free = float(row["free"])
            locked = float(row["locked"])
            total = free + locked
            if total <= 0:
                continue
            price = prices.get(row["asset"])
            balances.append(CexBalance(
                exchange=self.name,
                asset=row["asset"],
                free=free,
                locked=locked,
                total=total,
                value_usd=total * price if price else None,
            ))

        balances.sort(key=lambda b: b.value_usd or 0.0, reverse=True)
        return CexBalanceReport(
            exchange=self.name,
            total_value_usd=sum(b.value_usd or 0.0 for b in balances),
            balances=tuple(balances),
        )

    async def _usd_prices(self) -> dict[str, float]:
        """Asset -> USD price from USDT pairs; empty when the ticker is unavailable."""
        prices = {asset: 1.0 for asset in STABLECOINS}
        try:
            tickers = self._expect(
                await self._request_json("GET", f"{BINANCE_API_BASE}/api/v3/ticker/price"),
                list,
                "ticker response",
            )
        except OnchainError as e:
            logger.info(f"[{self.name}] price ticker unavailable: {e.message}")
            return prices

        for item in tickers:
            symbol = item["symbol"]
            if symbol.endswith("USDT") and symbol != "USDT":
                prices.setdefault(symbol[: -len("USDT")], float(item["price"]))
        return prices

    # ─────────────────────────────────────────────────────────────
    # Trade history
    # ─────────────────────────────────────────────────────────────

    async def get_exchange_history(
        self,
        limit: int = 50,
        cursor: Optional[str] = None,
        symbol: Optional[str] = None,
    ) -> OperationResult[CexHistoryPage]:
        if not self.is_configured:
            return self._not_configured("Binance history")
        return await self._guard("history", self._fetch_history(limit, cursor, symbol))

    async def _fetch_history(
        self,
        limit: int,
        cursor: Optional[str],
        symbol: Optional[str],
    ) -> CexHistoryPage:
        symbols = [symbol.upper()] if symbol else list(DEFAULT_SYMBOLS)

        trades: list[CexTrade] = []
        for pair in symbols:
            params: dict[str, Any] = {"symbol": pair, "limit": str(limit)}
            if cursor:
                params["fromId"] = cursor
            try:
                rows = self._expect(await self._signed_get("/api/v3/myTrades", params), list, "trades response")
            except OnchainError as e:
                logger.info(f"[{self.name}] skipping {pair}: {e.message}")
                continue
            trades.extend(self._to_trade(row) for row in rows)

        page, next_cursor = page_trades(trades, limit)
        return CexHistoryPage(exchange=self.name, trades=page, next_cursor=next_cursor)

    def _to_trade(self, row: dict[str, Any]) -> CexTrade:
        return CexTrade(
            exchange=self.name,
            id=str(row["id"]),
            symbol=row["symbol"],
            side="buy" if row.get("isBuyer") else "sell",
            price=float(row["price"]),
            quantity=float(row["qty"]),
            total=float(row["quoteQty"]),
            timestamp=row["time"] / 1000,
            fee=float(row["commission"]) if row.get("commission") is not None else None,
            fee_asset=row.get("commissionAsset"),
            order_id=str(row["orderId"]) if row.get("orderId") is not None else None,
        )
