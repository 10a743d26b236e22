"""
Coinbase Provider - consumer account balances and transaction history.

Authenticates against the Coinbase App API with a CDP key: every request
carries a fresh ES256 JWT bound to its method and path.
"""

import logging
import secrets
import time
from datetime import datetime
from typing import Any, Optional

import aiohttp
import jwt

from onchain.config.capabilities import ProviderId
from onchain.exceptions import ConfigurationError, OnchainError
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


COINBASE_HOST = "api.coinbase.com"
COINBASE_API_BASE = f"https://{COINBASE_HOST}"
JWT_TTL_SECONDS = 120
MAX_TRANSACTIONS_PER_ACCOUNT = 25

SELL_TYPES = frozenset({"sell", "send", "fiat_withdrawal"})
BUY_TYPES = frozenset({"buy", "receive", "fiat_deposit"})
TRADE_TYPES = SELL_TYPES | BUY_TYPES | {"trade"}


def normalize_pem(pem: str) -> str:
    """Turn literal ``\\n`` sequences (common in env vars) into newlines."""
    return pem.replace("\\n", "\n")


def build_jwt(key_id: str, private_key_pem: str, method: str, path: str, now: Optional[int] = None) -> str:
    """Signed bearer token for one request."""
    issued = int(time.time()) if now is None else now
    payload = {
        "iss": "cdp",
        "nbf": issued,
        "exp": issued + JWT_TTL_SECONDS,
        "sub": key_id,
        "uri": f"{method} {COINBASE_HOST}{path}",
    }
    headers = {"kid": key_id, "nonce": secrets.token_hex(16), "typ": "JWT"}
    return jwt.encode(payload, normalize_pem(private_key_pem), algorithm="ES256", headers=headers)


def classify_side(tx_type: str, amount: float) -> str:
    if tx_type in SELL_TYPES:
        return "sell"
    if tx_type in BUY_TYPES:
        return "buy"
    return "sell" if amount < 0 else "buy"


class CoinbaseProvider(BaseProvider):

    provider_id = ProviderId.COINBASE
    display_name = "Coinbase"

    def __init__(
        self,
        api_key_id: Optional[str] = None,
        api_key_secret: Optional[str] = None,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(timeout, session)
        self._api_key_id = api_key_id
        self._api_key_secret = api_key_secret

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key_id and self._api_key_secret)

    def _auth_headers(self, path: str) -> dict[str, str]:
        try:
            token = build_jwt(self._api_key_id or "", self._api_key_secret or "", "GET", path)
        except (jwt.PyJWTError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid Coinbase API key secret: {e}",
                provider=self.name,
                config_key="coinbase_api_key_secret",
                original_error=e,
            ) from e
        return {"Authorization": f"Bearer {token}"}

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self._request_json(
            "GET",
            f"{COINBASE_API_BASE}{path}",
            params=params,
            headers=self._auth_headers(path),
        )

    async def _accounts(self) -> list[dict[str, Any]]:
        data = self._expect(await self._get("/v2/accounts", {"limit": "300"}), dict, "accounts response")
        return self._expect(data.get("data"), list, "accounts")

    # ─────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────

    async def get_exchange_balances(self) -> OperationResult[CexBalanceReport]:
        if not self.is_configured:
            return self._not_configured("Coinbase balances")
        return await self._guard("balances", self._fetch_balances())

    async def _fetch_balances(self) -> CexBalanceReport:
        accounts = await self._accounts()

        crypto_assets = {
            a["currency"]["code"]
            for a in accounts
            if float(a["balance"]["amount"]) > 0 and a["currency"].get("type") == "crypto"
        }
        prices = {}
        for asset in sorted(crypto_assets):
            price = await self._spot_price(asset)
            if price is not None:
                prices[asset] = price

        balances = []
        for account in accounts:
            total = float(account["balance"]["amount"])
            if total <= 0:
                continue
            currency = account["currency"]
            code = currency["code"]
            if currency.get("type") == "fiat":
                value_usd = total if code == "USD" else None
            else:
                value_usd = total * prices[code] if code in prices else None
            balances.append(CexBalance(
                exchange=self.name,
                asset=code,
                free=total,
                locked=0.0,
                total=total,
                value_usd=value_usd,
            ))

        balances.sort(key=lambda b: b.value_usd or 0.0, reverse=True)
        return CexBalanceReport(
            exchange=self.name,
            total_value_usd=sum(b.value_usd or 0.0 for b in balances),
            balances=tuple(balances),
        )

    async def _spot_price(self, asset: str) -> Optional[float]:
        try:
            data = self._expect(await self._get(f"/v2/prices/{asset}-USD/spot"), dict, "spot price")
            return float(self._expect(data.get("data"), dict, "spot price")["amount"])
        except (OnchainError, KeyError, ValueError) as e:
            logger.info(f"[{self.name}] no spot price for {asset}: {e!r}")
            return None

    # ─────────────────────────────────────────────────────────────
    # Transaction history
    # ─────────────────────────────────────────────────────────────

    async def get_exchange_history(
        self,
        limit: int = 50,
        cursor: Optional[str] = None,
        symbol: Optional[str] = None,
    ) -> OperationResult[CexHistoryPage]:
        if not self.is_configured:
            return self._not_configured("Coinbase history")
        return await self._guard("history", self._fetch_history(limit, cursor))

    async def _fetch_history(self, limit: int, cursor: Optional[str]) -> CexHistoryPage:
        accounts = await self._accounts()

        trades: list[CexTrade] = []
        for account in accounts:
            has_balance = float(account["balance"]["amount"]) > 0
            if not has_balance and account["currency"].get("type") != "crypto":
                continue

            params = {"limit": str(min(limit, MAX_TRANSACTIONS_PER_ACCOUNT))}
            if cursor:
                params["starting_after"] = cursor
            try:
                data = self._expect(
                    await self._get(f"/v2/accounts/{account['id']}/transactions", params),
                    dict,
                    "transactions response",
                )
            except OnchainError as e:
                logger.info(f"[{self.name}] skipping account {account['id']}: {e.message}")
                continue

            trades.extend(
                self._to_trade(tx) for tx in data.get("data") or [] if tx.get("type") in TRADE_TYPES
            )

        page, next_cursor = page_trades(trades, limit)
        return CexHistoryPage(exchange=self.name, trades=page, next_cursor=next_cursor)

    def _to_trade(self, tx: dict[str, Any]) -> CexTrade:
        signed_amount = float(tx["amount"]["amount"])
        quantity = abs(signed_amount)
        native = abs(float(tx["native_amount"]["amount"]))
        created = datetime.fromisoformat(tx["created_at"].replace("Z", "+00:00"))
        return CexTrade(
            exchange=self.name,
            id=tx["id"],
            symbol=f"{tx['amount']['currency']}/{tx['native_amount']['currency']}",
            side=classify_side(tx["type"], signed_amount),
            price=native / quantity if quantity > 0 else 0.0,
            quantity=quantity,
            total=native,
            timestamp=created.timestamp(),
        )
