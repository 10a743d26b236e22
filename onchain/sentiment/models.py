"""
Sentiment Models.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class SignalDirection(Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class OverallSentiment(Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    MIXED = "mixed"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class SentimentSignal:
    """One market's directional reading."""
    question: str
    sentiment: SignalDirection
    confidence: int  # 0..100
    probability: float  # "Yes" price, 0..1
    volume: float
    market_id: Optional[str] = None
    slug: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "question": self.question,
            "sentiment": self.sentiment.value,
            "confidence": self.confidence,
            "probability": self.probability,
            "volume": self.volume,
            "market_id": self.market_id,
            "slug": self.slug,
        }


@dataclass(frozen=True)
class SentimentVerdict:
    """Aggregate verdict over every scoreable signal for a topic."""
    topic: str
    overall_sentiment: OverallSentiment
    score: int  # -100..100
    confidence: int  # 0..100
    signals: tuple[SentimentSignal, ...]
    summary: str
    bullish_count: int = 0
    bearish_count: int = 0
    markets_analyzed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "overall_sentiment": self.overall_sentiment.value,
            "score": self.score,
            "confidence": self.confidence,
            "signals": [s.to_dict() for s in self.signals],
            "summary": self.summary,
            "bullish_count": self.bullish_count,
            "bearish_count": self.bearish_count,
            "markets_analyzed": self.markets_analyzed,
        }
