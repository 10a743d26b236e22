"""
Polymarket Provider Tests.

============================================================
PURPOSE
============================================================
Gamma event flattening, tag filtering and market lookup.

============================================================
"""

from unittest.mock import AsyncMock, patch

import pytest

from onchain.exceptions import FetchError
from onchain.models import MarketFilter
from onchain.providers import PolymarketProvider
from onchain.providers.polymarket import event_tags, markets_from_event, parse_json_list
from onchain.results import ErrorKind


def _event(slug, tags, question="Will Bitcoin reach $150k?", volume="1000"):
    return {
        "slug": slug,
        "title": question,
        "tags": [{"slug": t, "label": t.title()} for t in tags],
        "markets": [{
            "id": f"{slug}-m",
            "question": question,
            "outcomes": '["Yes", "No"]',
            "outcomePrices": '["0.62", "0.38"]',
            "volume": volume,
        }],
    }


class TestParsing:
    """Tests for Gamma payload helpers."""

    def test_json_encoded_lists(self):
        """Test string-encoded arrays are decoded."""
        assert parse_json_list('["Yes", "No"]', []) == ["Yes", "No"]
        assert parse_json_list(["A"], []) == ["A"]
        assert parse_json_list("not json", ["x"]) == ["x"]
        assert parse_json_list(None, ["x"]) == ["x"]

    def test_event_tags_lowercase(self):
        """Test tag slugs are lowercased."""
        assert event_tags({"tags": [{"slug": "Crypto"}, {"label": "Sports"}, "Politics"]}) == (
            "crypto", "sports", "politics",
        )

    def test_markets_from_event(self):
        """Test outcomes, prices and volume are parsed."""
        market = markets_from_event(_event("btc-150k", ["crypto"]))[0]

        assert market.id == "btc-150k-m"
        assert market.yes_probability() == 0.62
        assert market.volume == 1000.0
        assert market.tags == ("crypto",)
        assert market.slug == "btc-150k"


class TestPolymarketProvider:
    """Tests for PolymarketProvider."""

    @pytest.mark.asyncio
    async def test_default_filter_excludes_tags(self):
        """Test configured exclude tags drop events and over-fetch."""
        provider = PolymarketProvider(default_filter=MarketFilter(exclude_tags=("sports",)))
        events = [_event("game", ["sports"]), _event("btc", ["crypto"])]

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=events)) as request:
            result = await provider.get_trending_markets(limit=5)

        assert [m.slug for m in result.payload.markets] == ["btc"]
        assert request.call_args.kwargs["params"]["limit"] == "15"

    @pytest.mark.asyncio
    async def test_explicit_empty_filter_overrides_default(self):
        """Test --all style filter keeps everything."""
        provider = PolymarketProvider(default_filter=MarketFilter(exclude_tags=("sports",)))
        events = [_event("game", ["sports"]), _event("btc", ["crypto"])]

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=events)) as request:
            result = await provider.search_markets("bitcoin", limit=5, market_filter=MarketFilter())

        assert len(result.payload.markets) == 2
        assert request.call_args.kwargs["params"]["title_contains"] == "bitcoin"
        assert request.call_args.kwargs["params"]["limit"] == "5"

    @pytest.mark.asyncio
    async def test_market_by_slug(self):
        """Test an event slug resolves to its first market."""
        provider = PolymarketProvider()

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=[_event("btc", [])])):
            result = await provider.get_market("btc")

        assert result.payload.id == "btc-m"

    @pytest.mark.asyncio
    async def test_market_by_condition_id(self):
        """Test the CLOB API is used when no event matches."""
        provider = PolymarketProvider()
        clob = {
            "condition_id": "0xcond",
            "question": "Will ETH flip BTC?",
            "tokens": [{"outcome": "Yes", "price": 0.1}, {"outcome": "No", "price": 0.9}],
            "market_slug": "eth-flip",
        }

        with patch.object(provider, "_request_json", new=AsyncMock(side_effect=[[], clob])):
            result = await provider.get_market("0xcond")

        assert result.payload.question == "Will ETH flip BTC?"
        assert result.payload.yes_probability() == 0.1

    @pytest.mark.asyncio
    async def test_market_not_found(self):
        """Test a missing market is a provider failure."""
        provider = PolymarketProvider()
        missing = FetchError("Polymarket API error (404)", provider="polymarket", status_code=404)

        with patch.object(provider, "_request_json", new=AsyncMock(side_effect=[[], missing])):
            result = await provider.get_market("nope")

        assert not result.ok
        assert result.error.message == 'Market "nope" not found'

    @pytest.mark.asyncio
    async def test_error_object_instead_of_events(self):
        """Test an error object in place of the event list is a provider failure."""
        provider = PolymarketProvider()

        with patch.object(provider, "_request_json", new=AsyncMock(return_value={"error": "bad request"})):
            result = await provider.get_trending_markets(limit=5)

        assert result.error.kind is ErrorKind.PROVIDER_FAILURE
        assert result.error.message == "Malformed Polymarket response: expected list for events response, got dict"

    @pytest.mark.asyncio
    async def test_error_object_on_slug_lookup_falls_back_to_clob(self):
        """Test a non-list slug lookup still tries the CLOB API."""
        provider = PolymarketProvider()
        clob = {"condition_id": "0xcond", "question": "Will SOL hit $500?", "tokens": []}

        with patch.object(provider, "_request_json", new=AsyncMock(side_effect=[{"error": "bad"}, clob])):
            result = await provider.get_market("0xcond")

        assert result.payload.id == "0xcond"


class TestMarketTags:
    """Tests for PolymarketProvider.get_market_tags."""

    @pytest.mark.asyncio
    async def test_all_tags(self):
        """Test the tags endpoint is listed and rows without a slug dropped."""
        provider = PolymarketProvider()
        rows = [{"id": 2, "label": "Crypto", "slug": "crypto"}, {"id": 3, "label": "No slug"}, "junk"]

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=rows)) as request:
            result = await provider.get_market_tags()

        assert [t.slug for t in result.payload.tags] == ["crypto"]
        assert result.payload.tags[0].id == "2"
        assert result.payload.popular is False
        assert request.call_args.args[1].endswith("/tags")

    @pytest.mark.asyncio
    async def test_popular_tags_ranked_by_event_count(self):
        """Test popular tags are counted across top events, ties by slug."""
        provider = PolymarketProvider()
        events = [
            _event("a", ["crypto", "politics"]),
            _event("b", ["Crypto"]),
            _event("c", ["sports"]),
        ]

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=events)) as request:
            result = await provider.get_market_tags(popular=True)

        tags = result.payload.tags
        assert [(t.slug, t.event_count) for t in tags] == [("crypto", 2), ("politics", 1), ("sports", 1)]
        assert result.payload.popular is True
        assert request.call_args.kwargs["params"]["order"] == "volume"

    @pytest.mark.asyncio
    async def test_error_object_is_provider_failure(self):
        """Test a dict where the tag list belongs fails cleanly."""
        provider = PolymarketProvider()

        with patch.object(provider, "_request_json", new=AsyncMock(return_value={"error": "down"})):
            result = await provider.get_market_tags()

        assert result.error.kind is ErrorKind.PROVIDER_FAILURE
        assert "expected list for tags response" in result.error.message
