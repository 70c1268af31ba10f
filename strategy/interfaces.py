"""
Collaborator interfaces consumed by the IB60 Breakout strategy.

The strategy never talks to a broker directly. It polls position and
equity snapshots and sends fire-and-forget intents; the venue's fills
are the source of truth.
"""

from typing import Optional, Protocol

from data.data_types import PositionState


class AccountFeed(Protocol):
    """Account equity lookup, called once per sizing decision."""

    def get_equity(self, currency: str) -> float:
        ...


class PositionFeed(Protocol):
    """Venue position for the traded instrument, polled once per primary bar."""

    def get_position(self) -> PositionState:
        ...


class OrderVenue(Protocol):
    """
    Order venue accepting intent-level instructions.

    Stop and target prices apply to the active entry. Exits with
    quantity None close the whole position on that side.
    """

    def enter_long(self, quantity: int, tag: str) -> None:
        ...

    def enter_short(self, quantity: int, tag: str) -> None:
        ...

    def set_stop_loss(self, price: float) -> None:
        ...

    def set_profit_target(self, price: float) -> None:
        ...

    def exit_long(self, quantity: Optional[int] = None, exit_tag: str = "", entry_tag: str = "") -> None:
        ...

    def exit_short(self, quantity: Optional[int] = None, exit_tag: str = "", entry_tag: str = "") -> None:
        ...
