"""Rate-limited market data layer for the crypto correlation dashboard."""

__version__ = "0.1.0"
