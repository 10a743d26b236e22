"""
Polymarket Provider - prediction markets (public API, no credentials).

Listings come from the Gamma events API; a market that is not an event
slug is looked up on the CLOB API by condition id. Popular tags are
ranked by how many of the top active events carry them.
"""

import dataclasses
import json
import logging
from typing import Any, Optional

import aiohttp

from onchain.config.capabilities import ProviderId
from onchain.exceptions import FetchError
from onchain.models import MarketFilter, MarketList, MarketOutcome, MarketTag, MarketTagList, PredictionMarket
from onchain.providers.base import BaseProvider
from onchain.results import OperationResult


logger = logging.getLogger(__name__)


GAMMA_API_BASE = "https://gamma-api.polymarket.com"
CLOB_API_BASE = "https://clob.polymarket.com"

DEFAULT_OUTCOMES = ["Yes", "No"]
DEFAULT_PRICES = [0.5, 0.5]
# Over-fetch when a tag filter may drop events
FILTER_FETCH_MULTIPLIER = 3
# Active events sampled to rank popular tags
POPULAR_TAG_SAMPLE = 100


def parse_json_list(value: Any, default: list[Any]) -> list[Any]:
    """Gamma returns some arrays JSON-encoded as strings."""
    if not value:
        return list(default)
    if isinstance(value, list):
        return value
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return list(default)
    return parsed if isinstance(parsed, list) else list(default)


def event_tags(event: dict[str, Any]) -> tuple[str, ...]:
    tags = []
    for tag in event.get("tags") or []:
        if isinstance(tag, dict):
            slug = tag.get("slug") or tag.get("label")
        else:
            slug = tag
        if slug:
            tags.append(str(slug).lower())
    return tuple(tags)


def _float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def markets_from_event(event: dict[str, Any]) -> list[PredictionMarket]:
    """Flatten one Gamma event into its markets."""
    tags = event_tags(event)
    markets = []
    for market in event.get("markets") or []:
        names = parse_json_list(market.get("outcomes"), DEFAULT_OUTCOMES)
        prices = [_float(p) for p in parse_json_list(market.get("outcomePrices"), DEFAULT_PRICES)]
        outcomes = tuple(
            MarketOutcome(name=str(name), price=prices[i] if i < len(prices) else 0.5)
            for i, name in enumerate(names)
        )
        markets.append(PredictionMarket(
            id=str(market["id"]),
            question=market.get("question") or event.get("title") or "",
            outcomes=outcomes,
            volume=_float(market.get("volume") if market.get("volume") is not None else event.get("volume")),
            liquidity=_float(
                market.get("liquidity") if market.get("liquidity") is not None else event.get("liquidity")
            ),
            end_date=market.get("endDate") or event.get("endDate"),
            category=event.get("category"),
            slug=event.get("slug"),
            description=market.get("description") or event.get("description"),
            tags=tags,
        ))
    return markets


class PolymarketProvider(BaseProvider):

    provider_id = ProviderId.POLYMARKET
    display_name = "Polymarket"

    def __init__(
        self,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
        default_filter: Optional[MarketFilter] = None,
    ) -> None:
        super().__init__(timeout, session)
        self._default_filter = default_filter or MarketFilter()

    async def get_trending_markets(
        self,
        limit: int = 10,
        market_filter: Optional[MarketFilter] = None,
    ) -> OperationResult[MarketList]:
        params = {
            "active": "true",
            "closed": "false",
            "order": "volume",
            "ascending": "false",
        }
        return await self._guard("trending", self._list_markets(params, limit, market_filter))

    async def search_markets(
        self,
        query: str,
        limit: int = 10,
        market_filter: Optional[MarketFilter] = None,
    ) -> OperationResult[MarketList]:
        params = {"title_contains": query, "active": "true", "closed": "false"}
        return await self._guard("search", self._list_markets(params, limit, market_filter))

    async def _list_markets(
        self,
        params: dict[str, str],
        limit: int,
        market_filter: Optional[MarketFilter],
    ) -> MarketList:
        active_filter = market_filter if market_filter is not None else self._default_filter
        fetch = limit if active_filter.is_empty else limit * FILTER_FETCH_MULTIPLIER

        events = self._expect(
            await self._request_json("GET", f"{GAMMA_API_BASE}/events", params={**params, "limit": str(fetch)}),
            list,
            "events response",
        )

        markets: list[PredictionMarket] = []
        for event in events:
            if not active_filter.allows(event_tags(event)):
                logger.debug(f"[{self.name}] filtered event {event.get('slug')}")
                continue
            markets.extend(markets_from_event(event))
        return MarketList(markets=tuple(markets[:limit]))

    async def get_market(self, id_or_slug: str) -> OperationResult[PredictionMarket]:
        return await self._guard("market detail", self._fetch_market(id_or_slug))

    async def _fetch_market(self, id_or_slug: str) -> PredictionMarket:
        try:
            events = await self._request_json("GET", f"{GAMMA_API_BASE}/events", params={"slug": id_or_slug})
        except FetchError as e:
            logger.info(f"[{self.name}] event lookup failed, trying CLOB: {e.message}")
            events = []
        if not isinstance(events, list):
            logger.info(f"[{self.name}] event lookup returned {type(events).__name__}, trying CLOB")
            events = []

        for event in events:
            if not isinstance(event, dict):
                continue
            markets = markets_from_event(event)
            if markets:
                return markets[0]

        try:
            data = await self._request_json("GET", f"{CLOB_API_BASE}/markets/{id_or_slug}")
        except FetchError as e:
            raise FetchError(f'Market "{id_or_slug}" not found', provider=self.name, status_code=e.status_code) from e
        data = self._expect(data, dict, "market response")

        return PredictionMarket(
            id=data["condition_id"],
            question=data["question"],
            outcomes=tuple(
                MarketOutcome(name=token["outcome"], price=_float(token.get("price")))
                for token in data.get("tokens") or []
            ),
            end_date=data.get("end_date_iso"),
            description=data.get("description"),
            slug=data.get("market_slug"),
            tags=tuple(str(t).lower() for t in data.get("tags") or []),
        )

    async def get_market_tags(self, popular: bool = False) -> OperationResult[MarketTagList]:
        work = self._popular_tags() if popular else self._all_tags()
        return await self._guard("tags", work)

    async def _all_tags(self) -> MarketTagList:
        rows = self._expect(await self._request_json("GET", f"{GAMMA_API_BASE}/tags"), list, "tags response")
        tags = tuple(
            MarketTag(id=str(row.get("id", "")), label=row.get("label") or row["slug"], slug=row["slug"])
            for row in rows
            if isinstance(row, dict) and row.get("slug")
        )
        return MarketTagList(tags=tags)

    async def _popular_tags(self) -> MarketTagList:
        params = {
            "active": "true",
            "closed": "false",
            "order": "volume",
            "ascending": "false",
            "limit": str(POPULAR_TAG_SAMPLE),
        }
        events = self._expect(
            await self._request_json("GET", f"{GAMMA_API_BASE}/events", params=params),
            list,
            "events response",
        )

        counts: dict[str, int] = {}
        seen: dict[str, MarketTag] = {}
        for event in events:
            if not isinstance(event, dict):
                continue
            for tag in event.get("tags") or []:
                if not isinstance(tag, dict) or not tag.get("slug"):
                    continue
                slug = str(tag["slug"]).lower()
                counts[slug] = counts.get(slug, 0) + 1
                seen.setdefault(slug, MarketTag(
                    id=str(tag.get("id", "")),
                    label=tag.get("label") or slug,
                    slug=slug,
                ))

        ranked = sorted(counts, key=lambda slug: (-counts[slug], slug))
        return MarketTagList(
            tags=tuple(dataclasses.replace(seen[slug], event_count=counts[slug]) for slug in ranked),
            popular=True,
        )
