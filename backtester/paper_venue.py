"""
Paper venue for replaying the IB60 Breakout strategy.

Stands in for the broker during replays. Implements the order venue,
position feed and account feed, and records every intent it receives.

Fill model (deliberately simple, no slippage):
- Entries fill immediately at the current bar's close
- Partial/full exits fill immediately
- The attached stop and target are checked against each new bar's
  high/low before the strategy sees that bar; the stop wins when both
  are touched
"""

import logging
from typing import List, Optional

from data.data_types import Bar, IntentType, MarketSide, OrderIntent, PositionState

logger = logging.getLogger(__name__)


class PaperVenue:
    """
    In-memory venue with a single position.

    Equity is static: no P&L is booked.
    """

    def __init__(self, initial_equity: float = 100000.0):
        """
        Initialize paper venue.

        Args:
            initial_equity: Value returned by get_equity()
        """
        self.equity = initial_equity
        self.intents: List[OrderIntent] = []

        self._side = MarketSide.FLAT
        self._quantity = 0
        self._average_price = 0.0
        self._entry_tag = ""
        self._stop_price: Optional[float] = None
        self._target_price: Optional[float] = None
        self._mark: Optional[Bar] = None

    # ------------------------------------------------------------------
    # Feeds
    # ------------------------------------------------------------------

    def get_position(self) -> PositionState:
        if self._quantity <= 0:
            return PositionState.flat()
        return PositionState(side=self._side, average_price=self._average_price, quantity=self._quantity)

    def get_equity(self, currency: str) -> float:
        return self.equity

    @property
    def stop_price(self) -> Optional[float]:
        return self._stop_price

    @property
    def target_price(self) -> Optional[float]:
        return self._target_price

    # ------------------------------------------------------------------
    # Market updates
    # ------------------------------------------------------------------

    def update_market(self, bar: Bar):
        """Advance the venue clock and trigger the attached stop/target."""
        self._mark = bar

        if self._quantity <= 0:
            return

        is_long = self._side == MarketSide.LONG

        if self._stop_price is not None:
            stop_hit = bar.low <= self._stop_price if is_long else bar.high >= self._stop_price
            if stop_hit:
                logger.info("Stop %.2f hit at %s", self._stop_price, bar.timestamp)
                self._close_all()
                return

        if self._target_price is not None:
            target_hit = bar.high >= self._target_price if is_long else bar.low <= self._target_price
            if target_hit:
                logger.info("Target %.2f hit at %s", self._target_price, bar.timestamp)
                self._close_all()

    # ------------------------------------------------------------------
    # Order venue
    # ------------------------------------------------------------------

    def enter_long(self, quantity: int, tag: str):
        self._record(IntentType.ENTER_LONG, quantity=quantity, tag=tag)
        self._enter(MarketSide.LONG, quantity, tag)

    def enter_short(self, quantity: int, tag: str):
        self._record(IntentType.ENTER_SHORT, quantity=quantity, tag=tag)
        self._enter(MarketSide.SHORT, quantity, tag)

    def set_stop_loss(self, price: float):
        self._record(IntentType.SET_STOP_LOSS, price=price)
        self._stop_price = price

    def set_profit_target(self, price: float):
        self._record(IntentType.SET_PROFIT_TARGET, price=price)
        self._target_price = price

    def exit_long(self, quantity: Optional[int] = None, exit_tag: str = "", entry_tag: str = ""):
        self._record(IntentType.EXIT_LONG, quantity=quantity, tag=exit_tag, entry_tag=entry_tag)
        if self._side == MarketSide.LONG:
            self._reduce(quantity)

    def exit_short(self, quantity: Optional[int] = None, exit_tag: str = "", entry_tag: str = ""):
        self._record(IntentType.EXIT_SHORT, quantity=quantity, tag=exit_tag, entry_tag=entry_tag)
        if self._side == MarketSide.SHORT:
            self._reduce(quantity)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _record(self, intent_type: IntentType, **kwargs):
        timestamp = self._mark.timestamp if self._mark is not None else None
        self.intents.append(OrderIntent(intent_type=intent_type, timestamp=timestamp, **kwargs))

    def _enter(self, side: MarketSide, quantity: int, tag: str):
        if self._quantity > 0:
            logger.warning("Entry %s ignored; position already open (%s %d)", tag, self._side.value, self._quantity)
            return
        if self._mark is None:
            logger.warning("Entry %s ignored; no market price yet", tag)
            return

        self._side = side
        self._quantity = quantity
        self._average_price = self._mark.close
        self._entry_tag = tag

    def _reduce(self, quantity: Optional[int]):
        if quantity is None or quantity >= self._quantity:
            self._close_all()
        else:
            self._quantity -= quantity

    def _close_all(self):
        self._side = MarketSide.FLAT
        self._quantity = 0
        self._average_price = 0.0
        self._entry_tag = ""
        self._stop_price = None
        self._target_price = None

    def intents_of(self, intent_type: IntentType) -> List[OrderIntent]:
        return [i for i in self.intents if i.intent_type == intent_type]
