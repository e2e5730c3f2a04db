"""
Token Directory Models

Scan cursor and similarity scoring used by the token directory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ...types.market import MarketData, Token

# Seed list used when the full coin listing cannot be fetched
FALLBACK_TOKEN_IDS: List[str] = [
    "bitcoin",
    "ethereum",
    "binancecoin",
    "ripple",
    "cardano",
    "solana",
    "polkadot",
    "dogecoin",
    "avalanche-2",
    "chainlink",
]

PRICE_WEIGHT = 0.3
VOLUME_WEIGHT = 0.3
MARKET_CAP_WEIGHT = 0.4


@dataclass
class DirectoryCursor:
    """Position in the ordered token list, advanced one batch at a time."""

    token_ids: List[str] = field(default_factory=list)
    position: int = 0
    batch_size: int = 10

    def current_batch(self) -> List[str]:
        return self.token_ids[self.position:self.position + self.batch_size]

    def advance(self) -> bool:
        """Move to the next batch. Returns True when the cursor wrapped to 0."""
        self.position += self.batch_size
        if self.position >= len(self.token_ids):
            self.position = 0
            return True
        return False

    def reset(self, token_ids: List[str]) -> None:
        self.token_ids = list(token_ids)
        self.position = 0


@dataclass(frozen=True)
class SimilarToken:
    token: Token
    score: float
    market_data: MarketData


def magnitude_ratio(a: Optional[float], b: Optional[float]) -> float:
    """``min/max`` of two magnitudes: 1.0 when equal, towards 0 as they diverge."""
    a = abs(a or 0.0)
    b = abs(b or 0.0)
    high = max(a, b)
    if high == 0:
        return 1.0
    return min(a, b) / high


def similarity(first: MarketData, second: MarketData, currency: str = "usd") -> float:
    return (
        magnitude_ratio(first.price_in(currency), second.price_in(currency)) * PRICE_WEIGHT
        + magnitude_ratio(first.volume_24h_in(currency), second.volume_24h_in(currency)) * VOLUME_WEIGHT
        + magnitude_ratio(first.market_cap_in(currency), second.market_cap_in(currency)) * MARKET_CAP_WEIGHT
    )
