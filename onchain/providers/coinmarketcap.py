"""
CoinMarketCap Provider - alternative price and market source (key required).
"""

import logging
from typing import Any, Optional

import aiohttp

from onchain.config.capabilities import ProviderId
from onchain.exceptions import FetchError
from onchain.models import MarketOverview, TokenPrice
from onchain.providers.base import BaseProvider
from onchain.results import OperationResult


logger = logging.getLogger(__name__)


CMC_API_BASE = "https://pro-api.coinmarketcap.com/v1"


class CoinMarketCapProvider(BaseProvider):

    provider_id = ProviderId.COINMARKETCAP
    display_name = "CoinMarketCap"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(timeout, session)
        self._api_key = api_key

    def _auth_headers(self) -> dict[str, str]:
        return {"X-CMC_PRO_API_KEY": self._api_key or ""}

    async def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        data = await self._request_json(
            "GET",
            f"{CMC_API_BASE}{path}",
            params=params,
            headers=self._auth_headers(),
        )
        data = self._expect(data, dict, "response")
        status = data.get("status") or {}
        if status.get("error_code", 0) != 0:
            raise FetchError(status.get("error_message") or "Unknown error", provider=self.name)
        return data

    async def get_token_price(self, token: str) -> OperationResult[TokenPrice]:
        if not self._api_key:
            return self._not_configured("CoinMarketCap prices")
        return await self._guard("price", self._fetch_price(token))

    async def _fetch_price(self, token: str) -> TokenPrice:
        symbol = token.strip().upper()
        data = await self._get("/cryptocurrency/quotes/latest", {"symbol": symbol, "convert": "USD"})

        coin = (data.get("data") or {}).get(symbol)
        if not coin:
            raise FetchError(f'Token "{token}" not found', provider=self.name, status_code=404)

        quote = coin["quote"]["USD"]
        return TokenPrice(
            id=coin["slug"],
            symbol=coin["symbol"],
            name=coin["name"],
            price_usd=quote["price"],
            change_1h=quote.get("percent_change_1h"),
            change_24h=quote.get("percent_change_24h"),
            change_7d=quote.get("percent_change_7d"),
            change_30d=quote.get("percent_change_30d"),
            market_cap=quote.get("market_cap"),
            market_cap_rank=coin.get("cmc_rank"),
            volume_24h=quote.get("volume_24h"),
            circulating_supply=coin.get("circulating_supply"),
            total_supply=coin.get("total_supply"),
            max_supply=coin.get("max_supply"),
            last_updated=quote.get("last_updated"),
        )

    async def get_market_overview(self) -> OperationResult[MarketOverview]:
        if not self._api_key:
            return self._not_configured("CoinMarketCap market data")
        return await self._guard("market overview", self._fetch_overview())

    async def _fetch_overview(self) -> MarketOverview:
        data = await self._get("/global-metrics/quotes/latest", {"convert": "USD"})
        body = data["data"]
        # Older API versions return flat totals, newer ones nest them under quote.USD.
        usd = (body.get("quote") or {}).get("USD") or body
        return MarketOverview(
            total_market_cap=usd["total_market_cap"],
            total_volume_24h=usd["total_volume_24h"],
            btc_dominance=body["btc_dominance"],
            eth_dominance=body.get("eth_dominance"),
            market_cap_change_24h=usd.get("total_market_cap_yesterday_percentage_change"),
        )
