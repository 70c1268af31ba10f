"""
Backtester module for the IB60 Breakout strategy.

Provides a paper venue and a replay runner that feeds historical bars
through the strategy.
"""

from .paper_venue import PaperVenue
from .replay_runner import ReplayRunner, ReplayResult, build_event_stream

__all__ = [
    "PaperVenue",
    "ReplayRunner",
    "ReplayResult",
    "build_event_stream",
]
