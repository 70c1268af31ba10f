"""
IB60 Breakout Strategy.

Day lifecycle controller that sequences the strategy components on every
primary bar:

1. New calendar date -> fresh DayState, IB window for the day, ladder
   discarded
2. Outside the session -> flatten if configured, nothing else
3. IB not formed and past IB end + 1 minute -> reconcile IB from the
   IB-source stream, classify the opening candle
4. IB formed and a trade is still allowed today -> breakout check, entry
5. Position open -> partial take-profit ladder and trailing stop

The strategy only emits intents to the venue. Position and equity come
from the feeds and are never modified here.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from data.data_types import Bar, PositionState, TradeDirection
from data.errors import MalformedBarError, OutOfOrderBarError
from data.session_builder import SessionCalendar
from strategy.day_state import DayState
from strategy.errors import SizingError
from strategy.exits import ExitManager, EntryPlan, TpLadderState
from strategy.ib_calculator import IBCalculator, IBBreakoutDetector, OpeningCandleClassifier
from strategy.interfaces import AccountFeed, OrderVenue, PositionFeed
from strategy.params import StrategyParams
from strategy.position_sizer import PositionSizer

logger = logging.getLogger(__name__)

# Wait one bar after IB end so the IB-source stream can deliver its last candle
IB_SETTLEMENT_BUFFER = timedelta(minutes=1)


class IB60Strategy:
    """
    Initial Balance breakout strategy with a partial exit ladder.

    Feed it IB-source bars through on_ib_source_bar() and primary bars
    through on_primary_bar(), each stream in strictly increasing time
    order.
    """

    def __init__(
        self,
        params: Optional[StrategyParams],
        venue: OrderVenue,
        position_feed: PositionFeed,
        account_feed: AccountFeed
    ):
        """
        Initialize strategy.

        Args:
            params: Strategy parameters (uses defaults if None)
            venue: Receives order intents
            position_feed: Polled once per primary bar
            account_feed: Queried for equity when sizing by risk
        """
        self.params = params or StrategyParams()
        self.venue = venue
        self.position_feed = position_feed
        self.account_feed = account_feed

        self.calendar = SessionCalendar.from_params(self.params)
        self.ib_calc = IBCalculator.from_params(self.params)
        self.candle_classifier = OpeningCandleClassifier.from_params(self.params)
        self.breakout_detector = IBBreakoutDetector.from_params(self.params)
        self.sizer = PositionSizer.from_params(self.params)
        self.exit_manager = ExitManager.from_params(self.params)

        self.day = DayState()
        self.ladder: Optional[TpLadderState] = None
        self.position = PositionState.flat()

        self.primary_bars_seen = 0
        self._last_primary_bar: Optional[Bar] = None

    # ------------------------------------------------------------------
    # Feed entry points
    # ------------------------------------------------------------------

    def on_ib_source_bar(self, bar: Bar):
        """
        Retain an IB-source bar for range aggregation.

        Raises:
            MalformedBarError: If bar is not a Bar
            OutOfOrderBarError: If the bar does not advance the stream
        """
        if not isinstance(bar, Bar):
            raise MalformedBarError(f"Expected Bar, got {type(bar).__name__}")
        self.ib_calc.add_bar(bar)

    def on_primary_bar(self, bar: Bar):
        """
        Process one primary bar.

        Raises:
            MalformedBarError: If bar is not a Bar
            OutOfOrderBarError: If the bar does not advance the stream
        """
        self._validate_primary_bar(bar)

        self._last_primary_bar = bar
        self.candle_classifier.add_bar(bar)
        self.primary_bars_seen += 1
        self.position = self.position_feed.get_position()

        if self.primary_bars_seen <= self.params.bars_required_to_trade:
            return

        now = bar.timestamp

        if now.date() != self.day.date:
            self._start_new_day(now.date())

        self._sync_ladder()

        if not self.calendar.is_in_session(now):
            if self.params.close_at_session_end and not self.position.is_flat():
                self._flatten()
            return

        if not self.day.ib_formed and now >= self.day.ib_end_time + IB_SETTLEMENT_BUFFER:
            self._try_form_ib(bar)

        if self.day.ib_formed and (not self.params.one_trade_per_day or not self.day.trade_taken_today):
            self._check_for_breakout(bar)

        if not self.position.is_flat():
            self._manage_position(bar)

    def _validate_primary_bar(self, bar: Bar):
        if not isinstance(bar, Bar):
            raise MalformedBarError(f"Expected Bar, got {type(bar).__name__}")

        last = self._last_primary_bar
        if last is not None and bar.timestamp <= last.timestamp:
            raise OutOfOrderBarError(
                f"Primary bar {bar.timestamp} does not advance past {last.timestamp}"
            )

    # ------------------------------------------------------------------
    # Day lifecycle
    # ------------------------------------------------------------------

    def _start_new_day(self, trading_date: date):
        """Reset all per-day state."""
        ib_start, ib_end = self.calendar.ib_window(trading_date)
        self.day = DayState.for_date(trading_date, ib_start, ib_end)

        if self.ladder is not None:
            logger.debug("Discarding partial TP state from previous day")
        self.ladder = None

        logger.info(
            "New day: %s | IB Period: %s - %s",
            f"{trading_date:%Y-%m-%d}", f"{ib_start:%H:%M}", f"{ib_end:%H:%M}"
        )

    def _sync_ladder(self):
        """Drop ladder state once the position it tracks has gone flat."""
        if self.ladder is None:
            return

        if not self.position.is_flat():
            self.ladder.position_seen = True
        elif self.ladder.position_seen:
            logger.info("Position flat; partial TP tracking cleared")
            self.ladder = None

    def _flatten(self):
        """Close both sides; the venue ignores the side we do not hold."""
        self.venue.exit_long()
        self.venue.exit_short()
        logger.info("Position closed at session end")

    def _try_form_ib(self, bar: Bar):
        day = self.day

        if self.ib_calc.is_lagging(bar.timestamp):
            self._warn_ib_missing(
                f"IB-source stream lags primary by {self.ib_calc.source_lag(bar.timestamp)}; "
                f"IB not reconciled at {bar.timestamp:%H:%M}"
            )
            return

        if not self.ib_calc.reconcile(day):
            self._warn_ib_missing("IB NOT FOUND - no IB-source candles in IB period")
            return

        day.ib_formed = True
        logger.info(
            "IB Formed - High: %s Low: %s Range: %.1f ticks",
            day.ib_high, day.ib_low, day.ib_range / self.params.tick_size
        )

        if self.params.use_opening_candle_filter and not day.opening_candle_set:
            self.candle_classifier.classify(day)

    def _warn_ib_missing(self, message: str):
        """Warn once per day, then keep retrying quietly."""
        if self.day.ib_missing_warned:
            logger.debug(message)
        else:
            logger.warning(message)
            self.day.ib_missing_warned = True

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def _check_for_breakout(self, bar: Bar):
        direction = self.breakout_detector.check_breakout(bar, self.day, self.position)
        if direction is not None:
            self._open_position(direction, bar)

    def _open_position(self, direction: TradeDirection, bar: Bar) -> Optional[EntryPlan]:
        """
        Size and send a breakout entry with its stop and target.

        Returns:
            The entry plan, or None if sizing failed
        """
        plan = self.exit_manager.calculate_entry(direction, bar.close, self.day)

        try:
            equity = self.account_feed.get_equity(self.params.currency) if self.sizer.uses_equity else 0.0
            quantity = self.sizer.size(plan.stop_distance, equity)
        except SizingError as e:
            logger.error("%s entry at %s skipped: %s", direction.value.capitalize(), bar.close, e)
            return None

        if plan.is_long:
            tag = self.params.long_entry_tag
            self.venue.enter_long(quantity, tag)
        else:
            tag = self.params.short_entry_tag
            self.venue.enter_short(quantity, tag)
        self.venue.set_stop_loss(plan.stop_price)
        self.venue.set_profit_target(plan.target_price)

        self.day.trade_taken_today = True
        self.ladder = TpLadderState(
            initial_quantity=quantity,
            is_long=plan.is_long,
            entry_tag=tag,
            stop_price=plan.stop_price
        )

        logger.info(
            "%s position opened at %s SL: %s TP: %s Qty: %d",
            direction.value.capitalize(), plan.entry_price, plan.stop_price, plan.target_price, quantity
        )
        return plan

    # ------------------------------------------------------------------
    # Position management
    # ------------------------------------------------------------------

    def _manage_position(self, bar: Bar):
        if self.ladder is None:
            return

        if self.params.use_partial_tp:
            self.exit_manager.manage_partial_tp(
                self.ladder, self.position, bar.close, self.day.ib_range, self.venue
            )

        if self.params.use_trailing_stop:
            self.exit_manager.update_trailing_stop(
                self.ladder, self.position, bar.close, self.venue
            )
