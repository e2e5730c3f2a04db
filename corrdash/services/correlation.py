"""
Correlation Analytics

Pure statistics over price histories plus two helpers that pull the
histories they need through the market data client.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..types.market import HistorySeries
from .market_data import MarketDataClient


@dataclass(frozen=True)
class CorrelatedToken:
    coin_id: str
    correlation: float


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson coefficient of two equally long series; 0 when undefined."""
    if len(x) != len(y) or not x:
        return 0.0

    x_mean = sum(x) / len(x)
    y_mean = sum(y) / len(y)

    numerator = 0.0
    x_denominator = 0.0
    y_denominator = 0.0
    for x_value, y_value in zip(x, y):
        x_diff = x_value - x_mean
        y_diff = y_value - y_mean
        numerator += x_diff * y_diff
        x_denominator += x_diff * x_diff
        y_denominator += y_diff * y_diff

    denominator = math.sqrt(x_denominator * y_denominator)
    if denominator == 0:
        return 0.0
    correlation = numerator / denominator
    if math.isnan(correlation):
        return 0.0
    # Guard against float drift just outside [-1, 1]
    return max(-1.0, min(1.0, correlation))


def correlation_strength(x: Sequence[float], y: Sequence[float]) -> float:
    return abs(pearson_correlation(x, y))


def calculate_returns(prices: Sequence[float]) -> List[float]:
    returns: List[float] = []
    for previous, current in zip(prices, prices[1:]):
        # One return per step; a step out of a zero price is flat
        returns.append((current - previous) / previous if previous != 0 else 0.0)
    return returns


def extract_prices(series: Optional[HistorySeries]) -> List[float]:
    if series is None:
        return []
    return series.prices


def return_correlation(first: Optional[HistorySeries], second: Optional[HistorySeries]) -> float:
    """Correlation strength of two histories' returns, truncated to the shorter one."""
    first_returns = calculate_returns(extract_prices(first))
    second_returns = calculate_returns(extract_prices(second))
    length = min(len(first_returns), len(second_returns))
    return correlation_strength(first_returns[:length], second_returns[:length])


async def correlate_group(
    client: MarketDataClient,
    coin_ids: Sequence[str],
    window: str = "24h",
    currency: Optional[str] = None,
) -> Dict[str, float]:
    """Strength of every coin against the first one (the main mover)."""
    if not coin_ids:
        return {}

    histories = await client.get_history(coin_ids, window, currency)
    main = histories[0]
    correlations: Dict[str, float] = {}
    for coin_id, series in zip(coin_ids[1:], histories[1:]):
        if main is None or series is None:
            correlations[coin_id] = 0.0
        else:
            correlations[coin_id] = return_correlation(main, series)
    return correlations


async def find_correlated_tokens(
    client: MarketDataClient,
    main_token: str,
    candidates: Sequence[str],
    window: str = "30d",
    currency: Optional[str] = None,
    limit: int = 5,
) -> List[CorrelatedToken]:
    """Rank candidates by how closely their returns track ``main_token``."""
    others: List[str] = []
    for coin_id in candidates:
        if coin_id and coin_id != main_token and coin_id not in others:
            others.append(coin_id)
    if not others:
        return []

    correlations = await correlate_group(client, [main_token, *others], window, currency)
    ranked = [CorrelatedToken(coin_id=coin_id, correlation=value) for coin_id, value in correlations.items()]
    ranked.sort(key=lambda item: item.correlation, reverse=True)
    return ranked[: max(0, limit)]
