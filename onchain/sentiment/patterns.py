"""
Static keyword and wording tables for prediction-market sentiment.
"""

import re
from typing import Optional


# Topic -> search terms
TOPIC_SYNONYMS: dict[str, tuple[str, ...]] = {
    "btc": ("bitcoin", "btc"),
    "bitcoin": ("bitcoin", "btc"),
    "eth": ("ethereum", "eth"),
    "ethereum": ("ethereum", "eth"),
    "sol": ("solana", "sol"),
    "solana": ("solana", "sol"),
    "crypto": ("crypto", "bitcoin", "ethereum"),
    "fed": ("fed", "interest rate", "fomc"),
    "rates": ("fed", "interest rate", "fomc"),
    "economy": ("recession", "inflation", "gdp"),
    "recession": ("recession", "gdp"),
    "election": ("election", "president"),
    "politics": ("election", "president", "congress"),
    "ai": ("ai", "openai", "artificial intelligence"),
}

# Topic -> relevance keywords; a market must mention one of these or a search term
TOPIC_KEYWORDS: dict[str, tuple[str, ...]] = {
    "btc": ("bitcoin", "btc", "microstrategy", "satoshi"),
    "bitcoin": ("bitcoin", "btc", "microstrategy", "satoshi"),
    "eth": ("ethereum", "eth", "ether", "vitalik"),
    "ethereum": ("ethereum", "eth", "ether", "vitalik"),
    "sol": ("solana", "sol"),
    "solana": ("solana", "sol"),
    "crypto": ("crypto", "bitcoin", "btc", "ethereum", "eth", "solana", "stablecoin", "coinbase", "binance"),
    "fed": ("fed", "federal reserve", "fomc", "interest rate", "rate cut", "rate hike", "powell", "bps"),
    "rates": ("fed", "federal reserve", "fomc", "interest rate", "rate cut", "rate hike", "powell", "bps"),
    "economy": ("recession", "inflation", "gdp", "cpi", "unemployment", "economy"),
    "recession": ("recession", "gdp", "economy"),
    "election": ("election", "president", "presidential", "nominee", "electoral"),
    "politics": ("election", "president", "presidential", "congress", "senate", "house"),
    "ai": ("ai", "openai", "gpt", "artificial intelligence", "anthropic", "agi"),
}

# Informational questions with no direction to score
NEUTRAL_PATTERNS: tuple[re.Pattern, ...] = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"^\s*who will\b",
    r"^\s*when will\b",
    r"^\s*which\b",
    r"^\s*what will\b",
    r"^\s*how many\b",
    r"^\s*how much\b",
    r"\bwho wins\b",
))

BULLISH_PATTERNS: tuple[re.Pattern, ...] = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"\babove\s+\$?[\d,.]+",
    r"\breach(?:es)?\s+\$?[\d,.]+",
    r"\bhit\s+\$?[\d,.]+",
    r"\bover\s+\$[\d,.]+",
    r"\b(?:all[- ]time high|ath|new high)\b",
    r"\brate cuts?\b",
    r"\bcut(?:s)? (?:interest )?rates?\b",
    r"\bwins?\b",
    r"\bapprov(?:e|es|ed|al)\b",
    r"\b(?:etf|reserve) (?:launch|approval)\b",
    r"\bincrease\b",
    r"\bsurge\b",
))

BEARISH_PATTERNS: tuple[re.Pattern, ...] = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"\bbelow\s+\$?[\d,.]+",
    r"\b(?:dip|drop|fall)s?\s+(?:to|below|under)\b",
    r"\bunder\s+\$[\d,.]+",
    r"\brate hikes?\b",
    r"\b(?:hike|raise)s? (?:interest )?rates?\b",
    r"\bbans?\b",
    r"\bbanned\b",
    r"\brecession\b",
    r"\bcrash(?:es)?\b",
    r"\bdefault\b",
    r"\bhack(?:ed)?\b",
    r"\bdecrease\b",
    r"\blose\b",
))


def expand_topic(topic: str) -> tuple[str, ...]:
    """Search terms for ``topic``; an unknown topic is its own single term."""
    key = topic.strip().lower()
    return TOPIC_SYNONYMS.get(key, (key,))


def _mentions(text: str, keyword: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}\b", text, re.IGNORECASE) is not None


def is_relevant(question: str, topic: str, terms: tuple[str, ...]) -> bool:
    keywords = TOPIC_KEYWORDS.get(topic.strip().lower(), ())
    return any(_mentions(question, k) for k in (*keywords, *terms))


def is_neutral_question(question: str) -> bool:
    return any(p.search(question) for p in NEUTRAL_PATTERNS)


def classify_wording(question: str) -> Optional[str]:
    """
    "bullish" or "bearish" flavor of the question, or None.

    Questions matching both lists are ambiguous and yield None.
    """
    bullish = any(p.search(question) for p in BULLISH_PATTERNS)
    bearish = any(p.search(question) for p in BEARISH_PATTERNS)
    if bullish == bearish:
        return None
    return "bullish" if bullish else "bearish"
