"""
Sentiment Package - prediction-market sentiment verdicts.

Usage:
    from onchain.sentiment import SentimentEngine

    engine = SentimentEngine(orchestrator)
    result = await engine.analyze("btc")
    if result.ok:
        print(result.payload.overall_sentiment.value, result.payload.score)

Output Schema:
- score: -100 (all bearish) to +100 (all bullish)
- overall_sentiment: bullish, bearish, mixed or neutral
- confidence: 0 to 100
"""

from onchain.sentiment.engine import (
    SentimentEngine,
    aggregate,
    dedupe_markets,
    round_half_up,
    score_market,
)
from onchain.sentiment.models import (
    OverallSentiment,
    SentimentSignal,
    SentimentVerdict,
    SignalDirection,
)
from onchain.sentiment.patterns import classify_wording, expand_topic, is_neutral_question, is_relevant

__all__ = [
    "SentimentEngine",
    "aggregate",
    "dedupe_markets",
    "round_half_up",
    "score_market",
    "OverallSentiment",
    "SentimentSignal",
    "SentimentVerdict",
    "SignalDirection",
    "classify_wording",
    "expand_topic",
    "is_neutral_question",
    "is_relevant",
]
