"""
Exit Management for the IB60 Breakout strategy.

Handles:
- Entry construction (stop at opposite IB or percent, target at an IB
  multiple)
- Partial take-profit ladder: TP1 and TP2 at multiples of the IB range,
  closing a share of the position at each stage
- Break-even stop after TP1
- Percent trailing stop

The final target (TP3) and the protective stop are attached to the entry
and handled by the venue; this module only emits intents.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from data.data_types import PositionState, TradeDirection
from strategy.day_state import DayState
from strategy.interfaces import OrderVenue

logger = logging.getLogger(__name__)

# Target multiple used when the partial TP ladder is disabled
DEFAULT_TARGET_MULTIPLIER = 2.0


class LadderStage(Enum):
    """Partial exit ladder stages. TP2_HIT is terminal."""
    ARMED = "armed"
    TP1_HIT = "tp1_hit"
    TP2_HIT = "tp2_hit"


@dataclass
class EntryPlan:
    """
    Price levels for a breakout entry.

    Attributes:
        direction: Long or short
        entry_price: Expected entry (bar close)
        stop_price: Initial protective stop
        target_price: Final profit target (TP3)
    """
    direction: TradeDirection
    entry_price: float
    stop_price: float
    target_price: float

    @property
    def is_long(self) -> bool:
        return self.direction == TradeDirection.LONG

    @property
    def stop_distance(self) -> float:
        """Signed distance from entry to stop; positive when the stop is on the losing side."""
        if self.is_long:
            return self.entry_price - self.stop_price
        return self.stop_price - self.entry_price


@dataclass
class TpLadderState:
    """
    Partial exit tracking for the live position.

    Created when an entry is sent; discarded on a new day or when the
    position returns to flat after having been seen open.
    """
    initial_quantity: int
    is_long: bool
    entry_tag: str
    stop_price: Optional[float] = None
    stage: LadderStage = LadderStage.ARMED
    moved_to_break_even: bool = False
    position_seen: bool = False

    @property
    def tp1_hit(self) -> bool:
        return self.stage in (LadderStage.TP1_HIT, LadderStage.TP2_HIT)

    @property
    def tp2_hit(self) -> bool:
        return self.stage == LadderStage.TP2_HIT


class ExitManager:
    """
    Builds entry levels and manages the partial exit ladder.
    """

    def __init__(
        self,
        stop_loss_percent: float = 0.0,
        use_partial_tp: bool = True,
        tp1_multiplier: float = 0.5,
        tp1_close_percent: float = 33.0,
        tp2_multiplier: float = 1.0,
        tp2_close_percent: float = 33.0,
        tp3_multiplier: float = 2.0,
        move_to_break_even: bool = True,
        use_trailing_stop: bool = False,
        trailing_stop_percent: float = 0.5
    ):
        """
        Initialize exit manager.

        Args:
            stop_loss_percent: Stop as % of entry (0 = opposite IB level)
            use_partial_tp: Enable the TP1/TP2 ladder
            tp1_multiplier: TP1 trigger as multiple of IB range
            tp1_close_percent: % of the initial quantity closed at TP1
            tp2_multiplier: TP2 trigger as multiple of IB range
            tp2_close_percent: % of the remaining quantity closed at TP2
            tp3_multiplier: Final target as multiple of IB range
            move_to_break_even: Move stop to average price after TP1
            use_trailing_stop: Enable percent trailing stop
            trailing_stop_percent: Trail distance as % of price
        """
        self.stop_loss_percent = stop_loss_percent
        self.use_partial_tp = use_partial_tp
        self.tp1_multiplier = tp1_multiplier
        self.tp1_close_percent = tp1_close_percent
        self.tp2_multiplier = tp2_multiplier
        self.tp2_close_percent = tp2_close_percent
        self.tp3_multiplier = tp3_multiplier
        self.move_to_break_even = move_to_break_even
        self.use_trailing_stop = use_trailing_stop
        self.trailing_stop_percent = trailing_stop_percent

    @classmethod
    def from_params(cls, params) -> "ExitManager":
        return cls(
            stop_loss_percent=params.stop_loss_percent,
            use_partial_tp=params.use_partial_tp,
            tp1_multiplier=params.tp1_multiplier,
            tp1_close_percent=params.tp1_close_percent,
            tp2_multiplier=params.tp2_multiplier,
            tp2_close_percent=params.tp2_close_percent,
            tp3_multiplier=params.tp3_multiplier,
            move_to_break_even=params.move_to_break_even,
            use_trailing_stop=params.use_trailing_stop,
            trailing_stop_percent=params.trailing_stop_percent
        )

    # ------------------------------------------------------------------
    # Entry
    # ------------------------------------------------------------------

    def calculate_entry(
        self,
        direction: TradeDirection,
        entry_price: float,
        day: DayState
    ) -> EntryPlan:
        """
        Calculate stop and target for a breakout entry.

        Args:
            direction: Breakout direction
            entry_price: Current close
            day: Day state with a formed IB

        Returns:
            EntryPlan with stop and target prices
        """
        is_long = direction == TradeDirection.LONG

        if self.stop_loss_percent > 0:
            stop_offset = entry_price * self.stop_loss_percent / 100.0
            stop = entry_price - stop_offset if is_long else entry_price + stop_offset
        else:
            stop = day.ib_low if is_long else day.ib_high

        target_multiplier = self.tp3_multiplier if self.use_partial_tp else DEFAULT_TARGET_MULTIPLIER
        target_distance = day.ib_range * target_multiplier
        target = entry_price + target_distance if is_long else entry_price - target_distance

        return EntryPlan(
            direction=direction,
            entry_price=entry_price,
            stop_price=stop,
            target_price=target
        )

    # ------------------------------------------------------------------
    # Partial take profit
    # ------------------------------------------------------------------

    @staticmethod
    def profit_multiple(position: PositionState, current_price: float, ib_range: float) -> float:
        """Open profit expressed in multiples of the IB range."""
        if position.is_long:
            return (current_price - position.average_price) / ib_range
        return (position.average_price - current_price) / ib_range

    def manage_partial_tp(
        self,
        ladder: TpLadderState,
        position: PositionState,
        current_price: float,
        ib_range: float,
        venue: OrderVenue
    ) -> Optional[LadderStage]:
        """
        Advance the ladder by at most one stage.

        TP2 is only evaluated once TP1 was reached on an earlier bar, so a
        bar that jumps past both thresholds fires TP1 alone.

        Args:
            ladder: Ladder state for the live position
            position: Venue position snapshot
            current_price: Current close
            ib_range: Today's IB range
            venue: Order venue receiving partial exits

        Returns:
            The stage entered on this bar, or None
        """
        if position.is_flat() or ladder.stage == LadderStage.TP2_HIT:
            return None

        if ib_range <= 0:
            logger.warning("IB range is %.4f; partial TP skipped", ib_range)
            return None

        profit_multiple = self.profit_multiple(position, current_price, ib_range)
        current_quantity = position.quantity

        if ladder.stage == LadderStage.ARMED:
            if profit_multiple < self.tp1_multiplier:
                return None

            close_quantity = math.floor(ladder.initial_quantity * self.tp1_close_percent / 100.0)
            if not self._send_partial_exit(ladder, position, close_quantity, "TP1", venue):
                return None

            ladder.stage = LadderStage.TP1_HIT
            logger.info(
                "TP1 Hit (%sx IB): Closed %s%% (%d contracts) at %s",
                self.tp1_multiplier, self.tp1_close_percent, close_quantity, current_price
            )

            if self.move_to_break_even and not ladder.moved_to_break_even:
                venue.set_stop_loss(position.average_price)
                ladder.stop_price = position.average_price
                ladder.moved_to_break_even = True
                logger.info("Stop Loss moved to Break-Even: %s", position.average_price)

            return ladder.stage

        # TP1_HIT
        if profit_multiple < self.tp2_multiplier:
            return None

        close_quantity = math.floor(current_quantity * self.tp2_close_percent / 100.0)
        if not self._send_partial_exit(ladder, position, close_quantity, "TP2", venue):
            return None

        ladder.stage = LadderStage.TP2_HIT
        logger.info(
            "TP2 Hit (%sx IB): Closed %s%% of remaining (%d contracts) at %s",
            self.tp2_multiplier, self.tp2_close_percent, close_quantity, current_price
        )
        return ladder.stage

    def _send_partial_exit(
        self,
        ladder: TpLadderState,
        position: PositionState,
        close_quantity: int,
        exit_tag: str,
        venue: OrderVenue
    ) -> bool:
        """Emit a partial exit unless the quantity is 0 or above the held size."""
        if close_quantity <= 0 or close_quantity > position.quantity:
            logger.warning(
                "%s close size %d not within held quantity %d; skipped",
                exit_tag, close_quantity, position.quantity
            )
            return False

        if position.is_long:
            venue.exit_long(close_quantity, exit_tag, ladder.entry_tag)
        else:
            venue.exit_short(close_quantity, exit_tag, ladder.entry_tag)
        return True

    # ------------------------------------------------------------------
    # Trailing stop
    # ------------------------------------------------------------------

    def update_trailing_stop(
        self,
        ladder: TpLadderState,
        position: PositionState,
        current_price: float,
        venue: OrderVenue
    ) -> Optional[float]:
        """
        Ratchet the stop toward price.

        Returns:
            New stop price if one was sent, else None
        """
        if not self.use_trailing_stop or position.is_flat():
            return None

        trail_distance = current_price * self.trailing_stop_percent / 100.0

        if position.is_long:
            new_stop = current_price - trail_distance
            improves = ladder.stop_price is None or new_stop > ladder.stop_price
        else:
            new_stop = current_price + trail_distance
            improves = ladder.stop_price is None or new_stop < ladder.stop_price

        if not improves:
            return None

        venue.set_stop_loss(new_stop)
        ladder.stop_price = new_stop
        logger.debug("Trailing stop moved to %.2f", new_stop)
        return new_stop
