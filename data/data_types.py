"""
Core data types for the IB60 Breakout strategy.

Bars are immutable and validated on construction. Position snapshots mirror
the order venue's view and are never mutated by the strategy. Order intents
are the only thing the strategy produces.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .errors import MalformedBarError


class MarketSide(Enum):
    """Side of the venue-reported position."""
    FLAT = "flat"
    LONG = "long"
    SHORT = "short"


class TradeDirection(Enum):
    """Direction of a breakout entry."""
    LONG = "long"
    SHORT = "short"


class IntentType(Enum):
    """Kinds of order intents sent to the venue."""
    ENTER_LONG = "enter_long"
    ENTER_SHORT = "enter_short"
    SET_STOP_LOSS = "set_stop_loss"
    SET_PROFIT_TARGET = "set_profit_target"
    EXIT_LONG = "exit_long"
    EXIT_SHORT = "exit_short"


@dataclass(frozen=True)
class Bar:
    """
    Single OHLCV bar.

    The timestamp is the bar's open time. A bar with non-finite prices or
    a high below its low (or below its open/close) is rejected.
    """
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int = 0
    ticker: str = ""

    def __post_init__(self):
        if not isinstance(self.timestamp, datetime):
            raise MalformedBarError(f"Bar timestamp must be a datetime, got {self.timestamp!r}")

        prices = (self.open, self.high, self.low, self.close)
        if not all(isinstance(p, (int, float)) and math.isfinite(p) for p in prices):
            raise MalformedBarError(f"Bar at {self.timestamp} has non-finite prices: {prices}")

        if self.high < self.low:
            raise MalformedBarError(
                f"Bar at {self.timestamp} has high {self.high} below low {self.low}"
            )
        if not (self.low <= self.open <= self.high and self.low <= self.close <= self.high):
            raise MalformedBarError(
                f"Bar at {self.timestamp} has open/close outside its high-low range"
            )

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    def __str__(self) -> str:
        return (f"{self.timestamp:%Y-%m-%d %H:%M} O={self.open:.2f} H={self.high:.2f} "
                f"L={self.low:.2f} C={self.close:.2f} V={self.volume}")


@dataclass(frozen=True)
class PositionState:
    """Snapshot of the venue's position for the traded instrument."""
    side: MarketSide = MarketSide.FLAT
    average_price: float = 0.0
    quantity: int = 0

    @classmethod
    def flat(cls) -> "PositionState":
        return cls()

    def is_flat(self) -> bool:
        return self.side == MarketSide.FLAT or self.quantity <= 0

    @property
    def is_long(self) -> bool:
        return self.side == MarketSide.LONG and self.quantity > 0


@dataclass(frozen=True)
class OrderIntent:
    """
    A fire-and-forget instruction sent to the order venue.

    Attributes:
        intent_type: What the venue is asked to do
        quantity: Contracts/shares (None = whole position for exits)
        price: Stop or target price (price-based intents only)
        tag: Entry tag for entries, exit tag for exits
        entry_tag: Entry being reduced (exits only)
        timestamp: Venue clock when the intent was received
    """
    intent_type: IntentType
    quantity: Optional[int] = None
    price: Optional[float] = None
    tag: str = ""
    entry_tag: str = ""
    timestamp: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp,
            'intent': self.intent_type.value,
            'quantity': self.quantity,
            'price': self.price,
            'tag': self.tag,
            'entry_tag': self.entry_tag,
        }
