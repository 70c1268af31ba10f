"""
Position sizing for the IB60 Breakout strategy.

Risk-based sizing: risk a fixed percentage of account equity between the
entry and the stop. With risk percent set to 0 the fixed lot size is used
instead.
"""

import logging
import math

from strategy.errors import SizingError

logger = logging.getLogger(__name__)


class PositionSizer:
    """
    Converts a stop distance and account equity into a contract quantity.

    quantity = floor(equity * risk% / (stop_distance_in_ticks * point_value)),
    never less than 1.
    """

    def __init__(
        self,
        risk_percent: float = 1.0,
        fixed_lot_size: int = 1,
        tick_size: float = 0.25,
        point_value: float = 5.0
    ):
        """
        Initialize position sizer.

        Args:
            risk_percent: Percent of equity risked per trade (0 = fixed size)
            fixed_lot_size: Quantity used when risk_percent is 0
            tick_size: Minimum price increment
            point_value: Currency value per tick of stop distance
        """
        self.risk_percent = risk_percent
        self.fixed_lot_size = fixed_lot_size
        self.tick_size = tick_size
        self.point_value = point_value

    @classmethod
    def from_params(cls, params) -> "PositionSizer":
        return cls(
            risk_percent=params.risk_percent,
            fixed_lot_size=params.fixed_lot_size,
            tick_size=params.tick_size,
            point_value=params.point_value
        )

    @property
    def uses_equity(self) -> bool:
        """Whether sizing needs an account equity lookup."""
        return self.risk_percent > 0

    def size(self, stop_distance: float, account_equity: float = 0.0) -> int:
        """
        Calculate position size.

        Args:
            stop_distance: |entry - stop| in price units
            account_equity: Current account equity (ignored for fixed size)

        Returns:
            Quantity, at least 1

        Raises:
            SizingError: If stop_distance is zero or negative
        """
        if not stop_distance > 0:
            raise SizingError(f"Stop distance must be positive, got {stop_distance}")

        if self.risk_percent <= 0:
            return self.fixed_lot_size

        risk_amount = account_equity * self.risk_percent / 100.0
        stop_in_ticks = stop_distance / self.tick_size
        quantity = math.floor(risk_amount / (stop_in_ticks * self.point_value))

        logger.debug(
            "Sizing: equity=%.2f risk=%.2f stop=%.1f ticks -> %d",
            account_equity, risk_amount, stop_in_ticks, quantity
        )

        return max(1, quantity)
