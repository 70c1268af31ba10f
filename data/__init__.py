"""
Data module for the IB60 Breakout strategy.

Provides bar/position/intent types, feed errors, bar file loading and the
session calendar.
"""

from .errors import FeedError, OutOfOrderBarError, MalformedBarError
from .data_types import (
    Bar,
    PositionState,
    OrderIntent,
    MarketSide,
    TradeDirection,
    IntentType,
)
from .session_builder import SessionCalendar

__all__ = [
    "Bar",
    "PositionState",
    "OrderIntent",
    "MarketSide",
    "TradeDirection",
    "IntentType",
    "SessionCalendar",
    "FeedError",
    "OutOfOrderBarError",
    "MalformedBarError",
]
