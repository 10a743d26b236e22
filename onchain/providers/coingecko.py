"""
CoinGecko Provider - token prices, token search and global market data.

Works without a key (free tier). A configured key switches to the Pro API
base URL and header; it never changes whether the provider is usable.
"""

import logging
from typing import Any, Optional

import aiohttp

from onchain.config.capabilities import ProviderId
from onchain.exceptions import FetchError
from onchain.models import MarketOverview, TokenMatch, TokenPrice, TokenSearchResults
from onchain.providers.base import BaseProvider
from onchain.results import OperationResult


logger = logging.getLogger(__name__)


COINGECKO_API_BASE = "https://api.coingecko.com/api/v3"
COINGECKO_PRO_API_BASE = "https://pro-api.coingecko.com/api/v3"

# Common symbol -> CoinGecko id
TOKEN_ID_MAP = {
    "btc": "bitcoin",
    "eth": "ethereum",
    "sol": "solana",
    "bnb": "binancecoin",
    "xrp": "ripple",
    "ada": "cardano",
    "doge": "dogecoin",
    "dot": "polkadot",
    "matic": "matic-network",
    "shib": "shiba-inu",
    "avax": "avalanche-2",
    "link": "chainlink",
    "atom": "cosmos",
    "uni": "uniswap",
    "ltc": "litecoin",
    "xlm": "stellar",
    "etc": "ethereum-classic",
    "near": "near",
    "apt": "aptos",
    "arb": "arbitrum",
    "op": "optimism",
    "sui": "sui",
    "inj": "injective-protocol",
    "sei": "sei-network",
    "tia": "celestia",
    "jup": "jupiter-exchange-solana",
    "wif": "dogwifcoin",
    "pepe": "pepe",
    "bonk": "bonk",
    "usdt": "tether",
    "usdc": "usd-coin",
    "dai": "dai",
    "busd": "binance-usd",
    "wbtc": "wrapped-bitcoin",
    "weth": "weth",
    "steth": "staked-ether",
}


def resolve_token_id(token: str) -> str:
    lower = token.strip().lower()
    return TOKEN_ID_MAP.get(lower, lower)


def _usd(block: Optional[dict[str, Any]], key: str) -> Optional[float]:
    value = (block or {}).get(key)
    if isinstance(value, dict):
        return value.get("usd")
    return value


class CoinGeckoProvider(BaseProvider):

    provider_id = ProviderId.COINGECKO
    display_name = "CoinGecko"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(timeout, session)
        self._api_key = api_key

    @property
    def is_pro(self) -> bool:
        return bool(self._api_key)

    @property
    def api_base(self) -> str:
        return COINGECKO_PRO_API_BASE if self.is_pro else COINGECKO_API_BASE

    def _tier_headers(self) -> Optional[dict[str, str]]:
        return {"x-cg-pro-api-key": self._api_key} if self._api_key else None

    async def get_token_price(self, token: str) -> OperationResult[TokenPrice]:
        return await self._guard("price", self._fetch_price(token))

    async def _fetch_price(self, token: str) -> TokenPrice:
        token_id = resolve_token_id(token)
        try:
            data = await self._request_json(
                "GET",
                f"{self.api_base}/coins/{token_id}",
                params={
                    "localization": "false",
                    "tickers": "false",
                    "community_data": "false",
                    "developer_data": "false",
                    "sparkline": "false",
                },
                headers=self._tier_headers(),
            )
        except FetchError as e:
            if e.status_code == 404:
                raise FetchError(f'Token "{token}" not found', provider=self.name, status_code=404) from e
            raise
        data = self._expect(data, dict, "coin response")

        market = data.get("market_data") or {}
        return TokenPrice(
            id=data["id"],
            symbol=data["symbol"].upper(),
            name=data["name"],
            price_usd=_usd(market, "current_price") or 0.0,
            change_1h=_usd(market, "price_change_percentage_1h_in_currency"),
            change_24h=market.get("price_change_percentage_24h"),
            change_7d=market.get("price_change_percentage_7d"),
            change_30d=market.get("price_change_percentage_30d"),
            market_cap=_usd(market, "market_cap"),
            market_cap_rank=market.get("market_cap_rank"),
            volume_24h=_usd(market, "total_volume"),
            circulating_supply=market.get("circulating_supply"),
            total_supply=market.get("total_supply"),
            max_supply=market.get("max_supply"),
            ath=_usd(market, "ath"),
            atl=_usd(market, "atl"),
            last_updated=data.get("last_updated"),
        )

    async def get_market_overview(self) -> OperationResult[MarketOverview]:
        return await self._guard("market overview", self._fetch_overview())

    async def _fetch_overview(self) -> MarketOverview:
        data = self._expect(
            await self._request_json("GET", f"{self.api_base}/global", headers=self._tier_headers()),
            dict,
            "global response",
        )
        body = data["data"]
        dominance = body["market_cap_percentage"]
        return MarketOverview(
            total_market_cap=body["total_market_cap"]["usd"],
            total_volume_24h=body["total_volume"]["usd"],
            btc_dominance=dominance["btc"],
            eth_dominance=dominance.get("eth"),
            market_cap_change_24h=body.get("market_cap_change_percentage_24h_usd"),
        )

    async def search_tokens(self, query: str, limit: int = 10) -> OperationResult[TokenSearchResults]:
        return await self._guard("token search", self._search(query, limit))

    async def _search(self, query: str, limit: int) -> TokenSearchResults:
        data = self._expect(
            await self._request_json(
                "GET",
                f"{self.api_base}/search",
                params={"query": query},
                headers=self._tier_headers(),
            ),
            dict,
            "search response",
        )
        coins = self._expect(data.get("coins") or [], list, "search coins")
        return TokenSearchResults(
            query=query,
            tokens=tuple(
                TokenMatch(
                    id=coin["id"],
                    symbol=coin["symbol"].upper(),
                    name=coin["name"],
                    market_cap_rank=coin.get("market_cap_rank"),
                )
                for coin in coins[:limit]
            ),
        )
