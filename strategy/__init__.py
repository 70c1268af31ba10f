"""
Strategy module for the IB60 Breakout strategy.

Contains IB calculation, breakout detection, position sizing, exit logic
and the day lifecycle controller.
"""

from .params import StrategyParams
from .day_state import DayState, CandleBias, LatchState
from .ib_calculator import IBCalculator, IBBreakoutDetector, OpeningCandleClassifier
from .position_sizer import PositionSizer
from .exits import ExitManager, EntryPlan, TpLadderState, LadderStage
from .ib_breakout import IB60Strategy

__all__ = [
    "StrategyParams",
    "DayState",
    "CandleBias",
    "LatchState",
    "IBCalculator",
    "IBBreakoutDetector",
    "OpeningCandleClassifier",
    "PositionSizer",
    "ExitManager",
    "EntryPlan",
    "TpLadderState",
    "LadderStage",
    "IB60Strategy",
]
