"""
Sentiment Engine Tests.

============================================================
PURPOSE
============================================================
Scoring and aggregation of prediction-market sentiment.

TEST CATEGORIES:
- Wording: neutral override, bullish/bearish flavor
- Scoring: agreement and contrarian thresholds
- Aggregation: weights, labels, confidence
- Engine: market collection and error messages

============================================================
"""

from unittest.mock import AsyncMock

import pytest

from onchain.models import MarketList, MarketOutcome, PredictionMarket
from onchain.results import ErrorKind, OperationResult
from onchain.sentiment import (
    OverallSentiment,
    SentimentEngine,
    SignalDirection,
    aggregate,
    dedupe_markets,
    score_market,
)
from onchain.sentiment.patterns import classify_wording, expand_topic, is_neutral_question, is_relevant


def _market(question, yes, volume=0.0, market_id=None):
    return PredictionMarket(
        id=market_id or question,
        question=question,
        outcomes=(MarketOutcome("Yes", yes), MarketOutcome("No", round(1 - yes, 4))),
        volume=volume,
    )


BULLISH_Q = "Will Bitcoin reach $150,000 in 2026?"
BEARISH_Q = "Will Bitcoin dip to $50,000 by June?"


# ============================================================
# WORDING TESTS
# ============================================================

class TestPatterns:
    """Tests for the keyword and wording tables."""

    def test_neutral_questions(self):
        """Test informational questions are recognised."""
        assert is_neutral_question("Who will win the 2028 election?")
        assert is_neutral_question("When will Bitcoin hit $200k?")
        assert not is_neutral_question(BULLISH_Q)

    def test_classify_wording(self):
        """Test bullish and bearish flavors."""
        assert classify_wording(BULLISH_Q) == "bullish"
        assert classify_wording(BEARISH_Q) == "bearish"
        assert classify_wording("Bitcoin in 2026?") is None

    def test_expand_topic(self):
        """Test known topics expand and unknown ones pass through."""
        assert expand_topic("BTC") == ("bitcoin", "btc")
        assert expand_topic("dogecoin") == ("dogecoin",)

    def test_relevance_word_boundary(self):
        """Test keywords match whole words only."""
        terms = expand_topic("eth")
        assert is_relevant("Will ETH flip BTC?", "eth", terms)
        assert not is_relevant("Will Bethany win the race?", "eth", terms)


# ============================================================
# SCORING TESTS
# ============================================================

class TestScoreMarket:
    """Tests for score_market."""

    def test_agreeing_bullish(self):
        """Test a likely bullish outcome is a bullish signal."""
        signal = score_market(_market(BULLISH_Q, 0.9))

        assert signal.sentiment is SignalDirection.BULLISH
        assert signal.confidence == 80

    def test_contrarian_bullish_question(self):
        """Test an unlikely bullish outcome reads bearish."""
        signal = score_market(_market(BULLISH_Q, 0.2))

        assert signal.sentiment is SignalDirection.BEARISH
        assert signal.confidence == 60

    def test_contrarian_bearish_question(self):
        """Test an unlikely bearish outcome reads bullish."""
        signal = score_market(_market(BEARISH_Q, 0.1))

        assert signal.sentiment is SignalDirection.BULLISH
        assert signal.confidence == 80

    def test_dead_zone_is_discarded(self):
        """Test probabilities between 0.3 and 0.5 carry no signal."""
        assert score_market(_market(BULLISH_Q, 0.4)) is None
        assert score_market(_market(BULLISH_Q, 0.5)) is None

    def test_threshold_edges(self):
        """Test 0.3 itself is not contrarian."""
        assert score_market(_market(BULLISH_Q, 0.3)) is None
        assert score_market(_market(BULLISH_Q, 0.29)).sentiment is SignalDirection.BEARISH

    def test_neutral_question_discarded(self):
        """Test the neutral override beats directional wording."""
        assert score_market(_market("Who will reach $100k first, BTC or ETH?", 0.9)) is None

    def test_no_yes_outcome(self):
        """Test a market without a Yes outcome is skipped."""
        market = PredictionMarket(
            id="m", question=BULLISH_Q,
            outcomes=(MarketOutcome("Up", 0.9), MarketOutcome("Down", 0.1)),
        )

        assert score_market(market) is None


# ============================================================
# AGGREGATION TESTS
# ============================================================

class TestAggregate:
    """Tests for aggregate."""

    def test_single_zero_volume_signal(self):
        """Test one bullish market at 90% with no volume."""
        verdict = aggregate("btc", [score_market(_market(BULLISH_Q, 0.9, volume=0))])

        assert verdict.overall_sentiment is OverallSentiment.BULLISH
        assert verdict.score == 100
        assert verdict.confidence == 90

    def test_balanced_signals_are_mixed(self):
        """Test equal opposing weight gives a mixed verdict."""
        signals = [
            score_market(_market(BULLISH_Q, 0.9, volume=100)),
            score_market(_market(BEARISH_Q, 0.9, volume=100)),
        ]

        verdict = aggregate("btc", signals)

        assert verdict.score == 0
        assert verdict.overall_sentiment is OverallSentiment.MIXED
        assert verdict.confidence == 40

    def test_volume_weighting(self):
        """Test the high-volume side dominates."""
        signals = [
            score_market(_market(BULLISH_Q, 0.9, volume=1_000_000)),
            score_market(_market(BEARISH_Q, 0.9, volume=9)),
        ]

        verdict = aggregate("btc", signals)

        # weights 6 x 0.8 vs 1 x 0.8
        assert verdict.score == 71
        assert verdict.overall_sentiment is OverallSentiment.BULLISH
        assert verdict.signals[0].volume == 1_000_000

    def test_limit_caps_signals(self):
        """Test the signals list is capped but counts are not."""
        signals = [score_market(_market(BULLISH_Q, 0.9, volume=v)) for v in (1, 2, 3)]

        verdict = aggregate("btc", signals, limit=2)

        assert len(verdict.signals) == 2
        assert verdict.bullish_count == 3

    def test_empty_raises(self):
        """Test aggregate needs signals."""
        with pytest.raises(ValueError):
            aggregate("btc", [])

    def test_dedupe_keeps_first(self):
        """Test duplicate ids across batches are dropped."""
        a = _market(BULLISH_Q, 0.9, market_id="1")
        b = _market(BEARISH_Q, 0.9, market_id="1")
        c = _market(BEARISH_Q, 0.9, market_id="2")

        assert dedupe_markets([[a], [b, c]]) == [a, c]


# ============================================================
# ENGINE TESTS
# ============================================================

def _orchestrator(markets):
    orchestrator = AsyncMock()
    orchestrator.run.return_value = OperationResult.success(MarketList(tuple(markets)), "polymarket")
    return orchestrator


class TestSentimentEngine:
    """Tests for SentimentEngine.analyze."""

    @pytest.mark.asyncio
    async def test_searches_each_term_and_trending(self):
        """Test one search per synonym plus one trending request."""
        orchestrator = _orchestrator([_market(BULLISH_Q, 0.9, volume=10)])

        result = await SentimentEngine(orchestrator).analyze("btc")

        operations = [call.args[0] for call in orchestrator.run.call_args_list]
        assert operations == ["markets.search", "markets.search", "markets.trending"]
        assert result.ok
        assert result.source == "polymarket"
        assert result.payload.markets_analyzed == 1

    @pytest.mark.asyncio
    async def test_no_relevant_markets(self):
        """Test the no-markets message."""
        orchestrator = _orchestrator([_market("Will it rain in Paris tomorrow?", 0.9)])

        result = await SentimentEngine(orchestrator).analyze("btc")

        assert not result.ok
        assert result.error.message == 'No markets found for topic "btc"'

    @pytest.mark.asyncio
    async def test_no_scoreable_signal(self):
        """Test the no-signal message counts relevant markets."""
        orchestrator = _orchestrator([_market("Who will buy the most Bitcoin?", 0.9)])

        result = await SentimentEngine(orchestrator).analyze("btc")

        assert not result.ok
        assert result.error.message == (
            'Found 1 markets for "btc" but none had a scoreable directional signal'
        )

    @pytest.mark.asyncio
    async def test_all_requests_fail(self):
        """Test the first market failure is surfaced."""
        orchestrator = AsyncMock()
        orchestrator.run.return_value = OperationResult.provider_failure("polymarket", "HTTP 503")

        result = await SentimentEngine(orchestrator).analyze("btc")

        assert not result.ok
        assert result.error.kind is ErrorKind.PROVIDER_FAILURE
        assert result.error.message == "HTTP 503"
