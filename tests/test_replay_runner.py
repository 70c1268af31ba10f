"""
Tests for data loading, resampling and end-to-end replay.

Run with: python -m pytest tests/test_replay_runner.py -v
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import os
import shutil
import tempfile
import unittest
from datetime import datetime, time, timedelta

import pandas as pd

from backtester.replay_runner import (
    IB_SOURCE_STREAM, PRIMARY_STREAM, ReplayRunner, build_event_stream, main
)
from data.data_loader import DataLoader, dataframe_to_bars, resample_bars
from data.data_types import Bar, IntentType
from strategy.params import StrategyParams


def write_ninjatrader_day(path):
    """
    One morning of 1-minute bars: IB of 108/100 built 9:30-10:29, then a
    close above the IB high at 10:31.
    """
    start = datetime(2024, 3, 5, 9, 30)
    lines = []
    for i in range(60):
        o, h, l, c = 104.0, 104.5, 103.5, 104.0
        if i == 5:
            h = 108.0
        if i == 20:
            l = 100.0
        lines.append((start + timedelta(minutes=i), o, h, l, c))
    lines.append((datetime(2024, 3, 5, 10, 30), 104.0, 107.25, 103.75, 107.0))
    lines.append((datetime(2024, 3, 5, 10, 31), 107.0, 109.25, 106.75, 109.0))
    lines.append((datetime(2024, 3, 5, 10, 32), 109.0, 109.5, 108.5, 109.25))

    with open(path, 'w') as f:
        for ts, o, h, l, c in lines:
            f.write(f"{ts:%Y%m%d %H%M%S};{o};{h};{l};{c};100;0\n")


def replay_params():
    return StrategyParams(bars_required_to_trade=0, use_opening_candle_filter=False, risk_percent=0.0)


class TestDataLoader(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.loader = DataLoader(self.tmp_dir)

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def test_ninjatrader_format(self):
        write_ninjatrader_day(os.path.join(self.tmp_dir, "ES_1min.txt"))
        df = self.loader.load_auto_detect("ES_1min.txt")

        self.assertEqual(len(df), 63)
        self.assertEqual(df['timestamp'].iloc[0], pd.Timestamp("2024-03-05 09:30:00"))
        self.assertEqual(df['ticker'].iloc[0], "ES")
        self.assertEqual(df['volume'].iloc[0], 100)
        self.assertTrue(self.loader.is_loaded("ES"))

    def test_csv_cleanup(self):
        path = os.path.join(self.tmp_dir, "nq.csv")
        with open(path, 'w') as f:
            f.write("Timestamp,Open,High,Low,Close\n")
            f.write("2024-03-05 09:31:00,100,101,99,100.5\n")
            f.write("2024-03-05 09:30:00,100,101,99,100\n")
            f.write("2024-03-05 09:32:00,100,99,101,100\n")
            f.write("2024-03-05 09:31:00,100,102,99,101\n")

        df = self.loader.load_auto_detect(path)

        self.assertEqual(list(df['timestamp']), [
            pd.Timestamp("2024-03-05 09:30:00"), pd.Timestamp("2024-03-05 09:31:00")
        ])
        self.assertEqual(df['high'].iloc[1], 102)
        self.assertEqual(df['volume'].sum(), 0)
        self.assertEqual(df['ticker'].iloc[0], "NQ")

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            self.loader.load_auto_detect("missing.txt")

    def test_missing_columns(self):
        path = os.path.join(self.tmp_dir, "bad.csv")
        with open(path, 'w') as f:
            f.write("timestamp,open,close\n2024-03-05 09:30:00,100,100\n")
        with self.assertRaises(ValueError):
            self.loader.load_csv(path)


class TestResampling(unittest.TestCase):

    def setUp(self):
        timestamps = pd.date_range("2024-03-05 09:30", periods=90, freq="1min")
        self.df = pd.DataFrame({
            'timestamp': timestamps,
            'open': [100.0 + i for i in range(90)],
            'high': [101.0 + i for i in range(90)],
            'low': [99.0 + i for i in range(90)],
            'close': [100.5 + i for i in range(90)],
            'volume': [10] * 90,
            'ticker': ["ES"] * 90,
        })

    def test_thirty_minute_bins(self):
        resampled = resample_bars(self.df, 30, time(9, 30))

        self.assertEqual(list(resampled['timestamp']), [
            pd.Timestamp("2024-03-05 09:30"), pd.Timestamp("2024-03-05 10:00"), pd.Timestamp("2024-03-05 10:30")
        ])
        first = resampled.iloc[0]
        self.assertEqual(first['open'], 100.0)
        self.assertEqual(first['high'], 130.0)
        self.assertEqual(first['low'], 99.0)
        self.assertEqual(first['close'], 129.5)
        self.assertEqual(first['volume'], 300)
        self.assertEqual(first['ticker'], "ES")

    def test_bins_anchor_on_session_start(self):
        resampled = resample_bars(self.df, 60, time(9, 30))
        self.assertEqual(list(resampled['timestamp']), [
            pd.Timestamp("2024-03-05 09:30"), pd.Timestamp("2024-03-05 10:30")
        ])

    def test_dataframe_to_bars(self):
        bars = dataframe_to_bars(self.df.head(2))
        self.assertEqual(len(bars), 2)
        self.assertIsInstance(bars[0], Bar)
        self.assertEqual(bars[0].timestamp, datetime(2024, 3, 5, 9, 30))
        self.assertEqual(bars[1].close, 101.5)
        self.assertEqual(bars[0].ticker, "ES")


class TestEventStream(unittest.TestCase):

    def test_ordered_by_delivery_time(self):
        primary = [
            Bar(timestamp=datetime(2024, 3, 5, 10, 29), open=1, high=1, low=1, close=1),
            Bar(timestamp=datetime(2024, 3, 5, 10, 30), open=1, high=1, low=1, close=1),
        ]
        source = [
            Bar(timestamp=datetime(2024, 3, 5, 9, 30), open=1, high=1, low=1, close=1),
            Bar(timestamp=datetime(2024, 3, 5, 10, 0), open=1, high=1, low=1, close=1),
        ]
        events = build_event_stream(primary, source, 1, 30)

        self.assertEqual([(e[1], e[2].timestamp.strftime("%H:%M")) for e in events], [
            (IB_SOURCE_STREAM, "09:30"),
            (IB_SOURCE_STREAM, "10:00"),
            (PRIMARY_STREAM, "10:29"),
            (PRIMARY_STREAM, "10:30"),
        ])


class TestReplayRunner(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.data_file = os.path.join(self.tmp_dir, "ES_1min.txt")
        write_ninjatrader_day(self.data_file)

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def test_replay_file(self):
        result = ReplayRunner(params=replay_params()).run_file(self.data_file)

        self.assertEqual(result.ticker, "ES")
        self.assertEqual(result.trading_days, 1)
        self.assertEqual(result.primary_bars, 63)
        self.assertEqual(result.ib_source_bars, 3)
        self.assertEqual(
            [i.intent_type for i in result.intents],
            [IntentType.ENTER_LONG, IntentType.SET_STOP_LOSS, IntentType.SET_PROFIT_TARGET]
        )
        self.assertEqual(result.intents[0].timestamp, datetime(2024, 3, 5, 10, 31))
        self.assertEqual(result.intents[1].price, 100.0)
        self.assertEqual(result.intents[2].price, 125.0)

    def test_end_date_includes_whole_day(self):
        result = ReplayRunner(params=replay_params()).run_file(
            self.data_file, start_date=datetime(2024, 3, 5), end_date=datetime(2024, 3, 5)
        )
        self.assertEqual(result.primary_bars, 63)
        self.assertEqual(result.intents[0].intent_type, IntentType.ENTER_LONG)

    def test_date_filter_without_data(self):
        runner = ReplayRunner(params=replay_params())
        with self.assertRaises(ValueError):
            runner.run_file(self.data_file, start_date=datetime(2025, 1, 1))

    def test_result_csv(self):
        result = ReplayRunner(params=replay_params()).run_file(self.data_file)
        out = os.path.join(self.tmp_dir, "intents.csv")
        result.save_csv(out)

        saved = pd.read_csv(out)
        self.assertEqual(list(saved.columns), ['timestamp', 'intent', 'quantity', 'price', 'tag', 'entry_tag'])
        self.assertEqual(list(saved['intent']), ['enter_long', 'set_stop_loss', 'set_profit_target'])

    def test_main(self):
        config = os.path.join(self.tmp_dir, "params.yaml")
        replay_params().save_to_yaml(config)
        out = os.path.join(self.tmp_dir, "intents.csv")

        self.assertEqual(main([self.data_file, "--config", config, "--output", out]), 0)
        self.assertTrue(os.path.exists(out))

    def test_main_reports_failure(self):
        self.assertEqual(main([os.path.join(self.tmp_dir, "missing.txt")]), 1)


if __name__ == "__main__":
    unittest.main()
