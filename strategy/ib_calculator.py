"""
Initial Balance (IB) calculation for the IB60 Breakout strategy.

The IB is the high/low range traded during the first IB period of the
session. It is built from a coarser IB-source bar stream (30-minute bars
by default), not from the primary stream that drives decisions.

Timing rules:
1. IB starts at session start (e.g. 9:30) and ends IB period later (10:30)
2. IB-source bars with ib_start <= timestamp < ib_end belong to the IB
3. The IB is reconciled on the first primary bar at or after ib_end + 1
   minute, giving the IB-source stream one bar to deliver its closing
   candle
4. Only the last few retained IB-source bars are scanned; anything older
   cannot belong to today's window
5. No qualifying bars means "not formed yet", never "zero-width IB"

The opening candle classifier and the breakout detector live here too,
since both only read the IB state of the current day.
"""

import logging
import math
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Deque, Optional

from data.data_types import Bar, PositionState, TradeDirection
from data.errors import OutOfOrderBarError
from data.session_builder import SessionCalendar
from strategy.day_state import DayState, CandleBias, LatchState

logger = logging.getLogger(__name__)


def lookback_bars(period_minutes: int, bar_minutes: int, padding: int) -> int:
    """Number of bars that safely covers one period at a bar granularity."""
    return math.ceil(period_minutes / bar_minutes) + padding


class IBCalculator:
    """
    Aggregates IB-source bars into the day's IB high/low.

    Keeps a bounded ring of the most recent IB-source bars so each
    reconciliation costs the same regardless of how long the feed has run.
    """

    def __init__(
        self,
        ib_period_minutes: int = 60,
        ib_source_bar_minutes: int = 30,
        lookback_padding: int = 2
    ):
        """
        Initialize IB calculator.

        Args:
            ib_period_minutes: Length of the IB window
            ib_source_bar_minutes: Granularity of the IB-source stream
            lookback_padding: Extra bars retained beyond one IB period
        """
        self.ib_period_minutes = ib_period_minutes
        self.ib_source_bar_minutes = ib_source_bar_minutes
        self.source_period = timedelta(minutes=ib_source_bar_minutes)
        self.max_lookback = lookback_bars(ib_period_minutes, ib_source_bar_minutes, lookback_padding)
        self._bars: Deque[Bar] = deque(maxlen=self.max_lookback)

    @classmethod
    def from_params(cls, params) -> "IBCalculator":
        return cls(
            ib_period_minutes=params.ib_period_minutes,
            ib_source_bar_minutes=params.ib_source_bar_minutes
        )

    @property
    def last_bar(self) -> Optional[Bar]:
        return self._bars[-1] if self._bars else None

    def __len__(self) -> int:
        return len(self._bars)

    def add_bar(self, bar: Bar):
        """
        Retain an IB-source bar.

        Raises:
            OutOfOrderBarError: If the bar does not advance the stream
        """
        last = self.last_bar
        if last is not None and bar.timestamp <= last.timestamp:
            raise OutOfOrderBarError(
                f"IB-source bar {bar.timestamp} does not advance past {last.timestamp}"
            )
        self._bars.append(bar)

    def source_lag(self, primary_time: datetime) -> Optional[timedelta]:
        """
        How far the IB-source stream trails the primary clock.

        Measured from the close of the latest IB-source bar. None if no
        IB-source bar has arrived yet.
        """
        last = self.last_bar
        if last is None:
            return None
        return primary_time - (last.timestamp + self.source_period)

    def is_lagging(self, primary_time: datetime) -> bool:
        """True if the IB-source stream trails by more than one of its bars."""
        lag = self.source_lag(primary_time)
        return lag is not None and lag > self.source_period

    def reconcile(self, day: DayState) -> bool:
        """
        Compute the IB range for the day from retained IB-source bars.

        Args:
            day: Current day state; ib_high/ib_low are written on success

        Returns:
            True if at least one qualifying bar was found
        """
        logger.debug(
            "Looking for IB candles. IB Period: %s - %s",
            f"{day.ib_start_time:%H:%M}", f"{day.ib_end_time:%H:%M}"
        )

        ib_high: Optional[float] = None
        ib_low: Optional[float] = None
        candles_found = 0

        # Newest first
        for bar in reversed(self._bars):
            if bar.timestamp.date() != day.date:
                continue
            if not (day.ib_start_time <= bar.timestamp < day.ib_end_time):
                continue

            if ib_high is None or bar.high > ib_high:
                ib_high = bar.high
            if ib_low is None or bar.low < ib_low:
                ib_low = bar.low

            candles_found += 1
            logger.debug(
                "  IB candle %d: %s H=%s L=%s",
                candles_found, f"{bar.timestamp:%H:%M}", bar.high, bar.low
            )

        if candles_found == 0:
            return False

        day.ib_high = ib_high
        day.ib_low = ib_low
        logger.debug("IB built from %d candles: H=%s L=%s", candles_found, ib_high, ib_low)
        return True


class OpeningCandleClassifier:
    """
    Classifies the IB-period candle of the primary stream as bullish or
    bearish.

    Primary bars inside the IB window are folded into one candle as they
    arrive: open of the first bar, close of the last, widest high/low.
    The candle is kept per trading date, so the answer does not depend on
    how late the IB gets reconciled.
    """

    def __init__(self, calendar: SessionCalendar):
        self.calendar = calendar
        self._candle: Optional[Bar] = None

    @classmethod
    def from_params(cls, params) -> "OpeningCandleClassifier":
        return cls(SessionCalendar.from_params(params))

    @property
    def candle(self) -> Optional[Bar]:
        """Opening candle folded so far for the latest trading date."""
        return self._candle

    def add_bar(self, bar: Bar):
        """Fold a primary bar into its day's opening candle. Ordering is enforced by the caller."""
        trading_date = bar.timestamp.date()
        if not self.calendar.is_in_ib_window(bar.timestamp, trading_date):
            return

        candle = self._candle
        if candle is None or candle.timestamp.date() != trading_date:
            self._candle = bar
            return

        self._candle = replace(
            candle,
            high=max(candle.high, bar.high),
            low=min(candle.low, bar.low),
            close=bar.close,
            volume=candle.volume + bar.volume
        )

    def classify(self, day: DayState) -> CandleBias:
        """
        Classify the opening candle once per day.

        Leaves the day UNSET when no primary bar of the day's IB window
        was seen.
        """
        if day.opening_candle_set:
            return day.opening_candle

        candle = self._candle
        if candle is None or candle.timestamp.date() != day.date:
            logger.warning(
                "Opening candle not found for %s; filtered breakouts blocked", day.date
            )
            return day.opening_candle

        day.opening_candle = CandleBias.BULLISH if candle.is_bullish else CandleBias.BEARISH

        logger.info(
            "Opening Candle: %s | Open: %s Close: %s",
            day.opening_candle.value.capitalize(), candle.open, candle.close
        )
        return day.opening_candle


class IBBreakoutDetector:
    """
    Detects IB breakouts with a one-shot latch per direction per day.

    - Long: close > IB high (breakout by close) or high > IB high
    - Short: close < IB low (breakout by close) or low < IB low
    - Opening candle filter: longs need a bullish candle, shorts a bearish
      one; an unset candle blocks both
    - Long is evaluated first and wins when both trigger on one bar
    """

    def __init__(
        self,
        breakout_by_close: bool = True,
        use_opening_candle_filter: bool = True
    ):
        self.breakout_by_close = breakout_by_close
        self.use_opening_candle_filter = use_opening_candle_filter

    @classmethod
    def from_params(cls, params) -> "IBBreakoutDetector":
        return cls(
            breakout_by_close=params.breakout_by_close,
            use_opening_candle_filter=params.use_opening_candle_filter
        )

    def long_condition(self, bar: Bar, day: DayState) -> bool:
        breakout = bar.close > day.ib_high if self.breakout_by_close else bar.high > day.ib_high

        if breakout and self.use_opening_candle_filter and day.opening_candle != CandleBias.BULLISH:
            logger.debug(
                "Long breakout ignored - opening candle was %s", day.opening_candle.value
            )
            return False
        return breakout

    def short_condition(self, bar: Bar, day: DayState) -> bool:
        breakout = bar.close < day.ib_low if self.breakout_by_close else bar.low < day.ib_low

        if breakout and self.use_opening_candle_filter and day.opening_candle != CandleBias.BEARISH:
            logger.debug(
                "Short breakout ignored - opening candle was %s", day.opening_candle.value
            )
            return False
        return breakout

    def check_breakout(
        self,
        bar: Bar,
        day: DayState,
        position: PositionState
    ) -> Optional[TradeDirection]:
        """
        Check the bar for a breakout and latch the direction that fired.

        Args:
            bar: Current primary bar
            day: Current day state (must have a formed IB)
            position: Venue position snapshot

        Returns:
            Direction of the breakout, or None
        """
        if not day.ib_formed or not position.is_flat():
            return None

        if day.long_latch == LatchState.ARMED and self.long_condition(bar, day):
            day.long_latch = LatchState.FIRED
            logger.info("LONG breakout above IB High %.2f at %.2f", day.ib_high, bar.close)
            return TradeDirection.LONG

        if day.short_latch == LatchState.ARMED and self.short_condition(bar, day):
            day.short_latch = LatchState.FIRED
            logger.info("SHORT breakout below IB Low %.2f at %.2f", day.ib_low, bar.close)
            return TradeDirection.SHORT

        return None
