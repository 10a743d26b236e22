"""
Sentiment Engine - directional verdicts from prediction-market prices.

============================================================
PIPELINE
============================================================
1. Expand the topic into search terms
2. Search each term, add trending markets, dedupe by market id
3. Keep relevant markets, drop purely informational questions
4. Read each question's wording as bullish or bearish
5. Combine wording with the "Yes" probability into a signal
6. Weight by log10(volume + 1) x confidence and aggregate

The 0.5 / 0.3 thresholds give a contrarian reading: a bullish question
priced below 30% is evidence for the bearish side.
============================================================
"""

import logging
import math
from typing import Any, Iterable, Optional

from onchain.models import MarketFilter, PredictionMarket
from onchain.orchestrator.core import Orchestrator
from onchain.results import OperationResult
from onchain.sentiment.models import (
    OverallSentiment,
    SentimentSignal,
    SentimentVerdict,
    SignalDirection,
)
from onchain.sentiment.patterns import (
    classify_wording,
    expand_topic,
    is_neutral_question,
    is_relevant,
)


logger = logging.getLogger(__name__)


AGREE_THRESHOLD = 0.5
CONTRARIAN_THRESHOLD = 0.3
LABEL_THRESHOLD = 20
SEARCH_LIMIT = 20
TRENDING_LIMIT = 50


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


# ============================================================
# SCORING
# ============================================================

def score_market(market: PredictionMarket) -> Optional[SentimentSignal]:
    """
    Directional signal for one market, or None when it has no direction.

    Wording is checked before probability, so a question without a "Yes"
    outcome is only reached when its wording is directional.
    """
    if is_neutral_question(market.question):
        return None

    flavor = classify_wording(market.question)
    if flavor is None:
        return None

    p = market.yes_probability()
    if p is None:
        return None

    if p > AGREE_THRESHOLD:
        direction = SignalDirection.BULLISH if flavor == "bullish" else SignalDirection.BEARISH
    elif p < CONTRARIAN_THRESHOLD:
        direction = SignalDirection.BEARISH if flavor == "bullish" else SignalDirection.BULLISH
    else:
        return None

    return SentimentSignal(
        question=market.question,
        sentiment=direction,
        confidence=round_half_up(_clamp(abs(p - 0.5) * 200)),
        probability=p,
        volume=market.volume,
        market_id=market.id,
        slug=market.slug,
    )


def _label(score: int, bullish_weight: float, bearish_weight: float) -> OverallSentiment:
    if score > LABEL_THRESHOLD:
        return OverallSentiment.BULLISH
    if score < -LABEL_THRESHOLD:
        return OverallSentiment.BEARISH
    if bullish_weight > 0 and bearish_weight > 0:
        return OverallSentiment.MIXED
    return OverallSentiment.NEUTRAL


def summarize(topic: str, label: OverallSentiment, signals: list[SentimentSignal]) -> str:
    top = signals[0]
    return (
        f"{label.value.capitalize()} sentiment on {topic} across {len(signals)} "
        f"market signal{'s' if len(signals) != 1 else ''}; the largest market, "
        f"\"{top.question}\", trades at {top.probability * 100:.0f}% yes "
        f"with ${top.volume:,.0f} volume."
    )


def aggregate(
    topic: str,
    signals: list[SentimentSignal],
    limit: int = 10,
    markets_analyzed: int = 0,
) -> SentimentVerdict:
    """
    Combine signals into one verdict.

    Raises:
        ValueError: ``signals`` is empty
    """
    if not signals:
        raise ValueError("aggregate() needs at least one signal")

    bullish = [s for s in signals if s.sentiment is SignalDirection.BULLISH]
    bearish = [s for s in signals if s.sentiment is SignalDirection.BEARISH]

    def weight(s: SentimentSignal) -> float:
        return math.log10(s.volume + 1) * s.confidence / 100

    bullish_weight = sum(weight(s) for s in bullish)
    bearish_weight = sum(weight(s) for s in bearish)
    total_weight = bullish_weight + bearish_weight

    if total_weight > 0:
        bullish_share = bullish_weight / total_weight
        bearish_share = bearish_weight / total_weight
    else:
        # Zero volume everywhere: fall back to signal counts
        bullish_share = len(bullish) / len(signals)
        bearish_share = len(bearish) / len(signals)
        bullish_weight, bearish_weight = bullish_share, bearish_share

    score = round_half_up((bullish_share - bearish_share) * 100)
    label = _label(score, bullish_weight, bearish_weight)

    agreement = abs(len(bullish) - len(bearish)) / len(signals)
    mean_confidence = sum(s.confidence for s in signals) / len(signals)
    confidence = round_half_up(_clamp(agreement * 50 + mean_confidence * 0.5))

    ranked = sorted(signals, key=lambda s: s.volume, reverse=True)
    return SentimentVerdict(
        topic=topic,
        overall_sentiment=label,
        score=score,
        confidence=confidence,
        signals=tuple(ranked[:limit]),
        summary=summarize(topic, label, ranked),
        bullish_count=len(bullish),
        bearish_count=len(bearish),
        markets_analyzed=markets_analyzed,
    )


def dedupe_markets(batches: Iterable[Iterable[PredictionMarket]]) -> list[PredictionMarket]:
    """Merge market lists, first occurrence of each id wins."""
    seen: set[str] = set()
    merged = []
    for batch in batches:
        for market in batch:
            if market.id in seen:
                continue
            seen.add(market.id)
            merged.append(market)
    return merged


# ============================================================
# ENGINE
# ============================================================

class SentimentEngine:
    """
    Read-only consumer of the market operations.

    Usage:
        engine = SentimentEngine(orchestrator)
        result = await engine.analyze("btc", limit=10)
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        search_limit: int = SEARCH_LIMIT,
        trending_limit: int = TRENDING_LIMIT,
    ) -> None:
        self._orchestrator = orchestrator
        self._search_limit = search_limit
        self._trending_limit = trending_limit

    async def analyze(
        self,
        topic: str,
        limit: int = 10,
        market_filter: Optional[MarketFilter] = None,
    ) -> OperationResult[SentimentVerdict]:
        terms = expand_topic(topic)

        batches = []
        failures: list[OperationResult[Any]] = []
        source = None
        requests = [
            ("markets.search", {"query": term, "limit": self._search_limit, "market_filter": market_filter})
            for term in terms
        ]
        requests.append(("markets.trending", {"limit": self._trending_limit, "market_filter": market_filter}))

        for operation_id, args in requests:
            result = await self._orchestrator.run(operation_id, args)
            if not result.ok:
                logger.info(f"Sentiment: {operation_id} failed: {result.error_message}")
                failures.append(result)
                continue
            source = source or result.source
            batches.append(result.payload.markets)

        if not batches:
            # Every market request failed; surface the first reason
            return failures[0]

        markets = dedupe_markets(batches)
        relevant = [m for m in markets if is_relevant(m.question, topic, terms)]
        logger.info(f"Sentiment: {len(markets)} markets fetched, {len(relevant)} relevant to {topic!r}")

        provider = source or "polymarket"
        if not relevant:
            return OperationResult.provider_failure(provider, f'No markets found for topic "{topic}"')

        signals = [s for s in (score_market(m) for m in relevant) if s is not None]
        if not signals:
            return OperationResult.provider_failure(
                provider,
                f'Found {len(relevant)} markets for "{topic}" but none had a scoreable directional signal',
            )

        return OperationResult.success(
            aggregate(topic, signals, limit=limit, markets_analyzed=len(relevant)),
            provider,
        )
