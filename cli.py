#!/usr/bin/env python3
"""Simple CLI for querying the correlation data layer locally"""

import argparse
import asyncio
from typing import Dict, List, Optional

from corrdash.config import settings
from corrdash.core.errors import MarketDataError
from corrdash.logging_config import setup_logging
from corrdash.services.bundle import MarketDataServices, build_services
from corrdash.services.correlation import correlate_group
from corrdash.types.market import MarketData, currency_symbol, normalize_currency, resolve_window


def _fmt_money(value: Optional[float], symbol: str) -> str:
    if value is None:
        return "n/a"
    if abs(value) >= 1_000_000_000:
        return f"{symbol}{value / 1_000_000_000:,.2f}B"
    if abs(value) >= 1_000_000:
        return f"{symbol}{value / 1_000_000:,.2f}M"
    return f"{symbol}{value:,.4f}" if abs(value) < 1 else f"{symbol}{value:,.2f}"


def print_prices(coins: List[str], data: Dict[str, MarketData], currency: str):
    """Pretty print current snapshots"""
    symbol = currency_symbol(currency)
    print(f"\n🔄 Market Snapshot ({currency.upper()})")
    print("=" * 64)
    for coin_id in coins:
        item = data.get(coin_id)
        if item is None:
            print(f"{coin_id:<16} {'data not currently available':>46}")
            continue
        change = item.change_24h_in(currency)
        change_str = f"{change:+.2f}%" if change is not None else "n/a"
        print(
            f"{coin_id:<16} {_fmt_money(item.price_in(currency), symbol):>14} {change_str:>9} "
            f"vol {_fmt_money(item.volume_24h_in(currency), symbol):>10} "
            f"cap {_fmt_money(item.market_cap_in(currency), symbol):>10}"
        )


async def cli_prices(services: MarketDataServices, coins: List[str], currency: str):
    data = await services.market_data.get_current_snapshots(coins, currency)
    print_prices(coins, data, currency)


async def cli_history(services: MarketDataServices, coins: List[str], window: str, currency: str):
    setting = resolve_window(window)
    histories = await services.market_data.get_history(coins, window, currency)
    symbol = currency_symbol(currency)
    print(f"\n📈 Price History ({setting.key}, {setting.interval} samples)")
    print("=" * 64)
    for coin_id, series in zip(coins, histories):
        if series is None or not series.points:
            print(f"{coin_id:<16} no history available")
            continue
        prices = series.prices
        change = (prices[-1] - prices[0]) / prices[0] * 100 if prices[0] else 0.0
        print(
            f"{coin_id:<16} {len(prices):>5} points  open {_fmt_money(prices[0], symbol):>12} "
            f"close {_fmt_money(prices[-1], symbol):>12} {change:+.2f}%"
        )


async def cli_search(services: MarketDataServices, query: str):
    tokens = await services.market_data.search(query)
    if not tokens:
        print(f"❌ No tokens match '{query}'")
        return
    print(f"\n🔍 Results for '{query}'")
    for i, token in enumerate(tokens, 1):
        print(f"{i:2d}. {token.symbol:<8} {token.name} ({token.id})")


async def cli_correlate(services: MarketDataServices, main: str, others: List[str], window: str, currency: str):
    correlations = await correlate_group(services.market_data, [main, *others], window, currency)
    print(f"\n🧮 Correlation with {main.upper()} ({window})")
    print("-" * 40)
    for coin_id, value in sorted(correlations.items(), key=lambda item: item[1], reverse=True):
        bar = "█" * int(round(value * 20))
        print(f"{coin_id:<16} {value:5.2f} {bar}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crypto correlation dashboard CLI")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    prices_parser = subparsers.add_parser("prices", help="Current price/volume/market cap")
    prices_parser.add_argument("coins", nargs="+", help="Coin ids, e.g. bitcoin ethereum")
    prices_parser.add_argument("--currency", default=settings.default_currency)

    history_parser = subparsers.add_parser("history", help="Price history summary")
    history_parser.add_argument("coins", nargs="+", help="Coin ids")
    history_parser.add_argument("--window", default="24h", help="24h, 7d or 30d")
    history_parser.add_argument("--currency", default=settings.default_currency)

    search_parser = subparsers.add_parser("search", help="Search tokens")
    search_parser.add_argument("query", help="Free-text query")

    correlate_parser = subparsers.add_parser("correlate", help="Correlate coins against a main coin")
    correlate_parser.add_argument("main", help="Main coin id")
    correlate_parser.add_argument("others", nargs="+", help="Coin ids to compare")
    correlate_parser.add_argument("--window", default="24h", help="24h, 7d or 30d")
    correlate_parser.add_argument("--currency", default=settings.default_currency)

    return parser


async def main():
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    setup_logging(args.log_level or "WARNING")
    services = build_services(settings)
    command = args.command.lower()

    try:
        if command == "prices":
            await cli_prices(services, [c.lower() for c in args.coins], normalize_currency(args.currency))
        elif command == "history":
            await cli_history(services, [c.lower() for c in args.coins], args.window, normalize_currency(args.currency))
        elif command == "search":
            await cli_search(services, args.query)
        elif command == "correlate":
            await cli_correlate(
                services,
                args.main.lower(),
                [c.lower() for c in args.others],
                args.window,
                normalize_currency(args.currency),
            )
        else:
            print(f"❌ Unknown command: {command}")
            parser.print_help()
    except MarketDataError as e:
        print(f"❌ Error: {e}")
    finally:
        await services.aclose()


if __name__ == "__main__":
    asyncio.run(main())
