"""
Error classes for the IB60 Breakout strategy.
"""

from data.errors import FeedError, OutOfOrderBarError, MalformedBarError


class StrategyError(Exception):
    """Base error for strategy operations."""
    pass


class ConfigurationError(StrategyError, ValueError):
    """Parameter outside its documented range, or unknown parameter."""
    pass


class SizingError(StrategyError, ValueError):
    """Position size cannot be derived from the given stop distance."""
    pass


__all__ = [
    "StrategyError",
    "ConfigurationError",
    "SizingError",
    "FeedError",
    "OutOfOrderBarError",
    "MalformedBarError",
]
