"""
Per-trading-day state for the IB60 Breakout strategy.

One DayState lives at a time. The strategy creates a fresh one whenever
the primary stream crosses into a new calendar date and hands it to each
component by reference.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class LatchState(Enum):
    """One-shot breakout latch. FIRED is terminal for the day."""
    ARMED = "armed"
    FIRED = "fired"


class CandleBias(Enum):
    """Opening candle classification. UNSET blocks filtered breakouts."""
    UNSET = "unset"
    BULLISH = "bullish"
    BEARISH = "bearish"


@dataclass
class DayState:
    """
    Mutable record for one trading day.

    ib_high/ib_low stay None until at least one IB-source bar has been
    folded in; once ib_formed is True, ib_high >= ib_low.
    """
    date: Optional[date] = None
    ib_start_time: Optional[datetime] = None
    ib_end_time: Optional[datetime] = None

    # IB state
    ib_high: Optional[float] = None
    ib_low: Optional[float] = None
    ib_formed: bool = False
    ib_missing_warned: bool = False

    # Breakout state
    long_latch: LatchState = LatchState.ARMED
    short_latch: LatchState = LatchState.ARMED
    opening_candle: CandleBias = CandleBias.UNSET

    # Trade state
    trade_taken_today: bool = False

    @classmethod
    def for_date(cls, trading_date: date, ib_start: datetime, ib_end: datetime) -> "DayState":
        return cls(date=trading_date, ib_start_time=ib_start, ib_end_time=ib_end)

    @property
    def ib_range(self) -> float:
        if self.ib_high is None or self.ib_low is None:
            return 0.0
        return self.ib_high - self.ib_low

    @property
    def long_breakout_latched(self) -> bool:
        return self.long_latch == LatchState.FIRED

    @property
    def short_breakout_latched(self) -> bool:
        return self.short_latch == LatchState.FIRED

    @property
    def opening_candle_set(self) -> bool:
        return self.opening_candle != CandleBias.UNSET

    @property
    def opening_candle_bullish(self) -> bool:
        return self.opening_candle == CandleBias.BULLISH
