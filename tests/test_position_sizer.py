"""
Tests for risk-based position sizing.

Run with: python -m pytest tests/test_position_sizer.py -v
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import unittest

from strategy.errors import SizingError
from strategy.params import StrategyParams
from strategy.position_sizer import PositionSizer


class TestPositionSizer(unittest.TestCase):

    def test_risk_based_size(self):
        # 10 ticks of stop at $5 per tick, 1% of $50,000 -> $500 / $50 = 10
        sizer = PositionSizer(risk_percent=1.0, tick_size=0.25, point_value=5.0)
        self.assertEqual(sizer.size(2.5, 50000.0), 10)

    def test_size_is_floored(self):
        # $500 / (36 ticks * $5) = 2.78
        sizer = PositionSizer(risk_percent=1.0, tick_size=0.25, point_value=5.0)
        self.assertEqual(sizer.size(9.0, 50000.0), 2)

    def test_minimum_of_one(self):
        sizer = PositionSizer(risk_percent=1.0, tick_size=0.25, point_value=5.0)
        self.assertEqual(sizer.size(50.0, 1000.0), 1)

    def test_fixed_lot_when_risk_is_zero(self):
        sizer = PositionSizer(risk_percent=0.0, fixed_lot_size=3)
        self.assertFalse(sizer.uses_equity)
        self.assertEqual(sizer.size(2.5, 1_000_000.0), 3)

    def test_non_positive_stop_distance_rejected(self):
        sizer = PositionSizer(risk_percent=1.0)
        for distance in (0.0, -1.25):
            with self.subTest(distance=distance):
                with self.assertRaises(SizingError):
                    sizer.size(distance, 50000.0)

    def test_fixed_lot_still_rejects_bad_distance(self):
        sizer = PositionSizer(risk_percent=0.0, fixed_lot_size=2)
        with self.assertRaises(SizingError):
            sizer.size(0.0)

    def test_from_params(self):
        sizer = PositionSizer.from_params(StrategyParams(risk_percent=2.0, tick_size=0.5, point_value=10.0))
        # 2% of 10,000 = 200; 5 ticks * 10 = 50 -> 4
        self.assertEqual(sizer.size(2.5, 10000.0), 4)


if __name__ == "__main__":
    unittest.main()
