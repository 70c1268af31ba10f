"""
Data loader for the IB60 Breakout strategy replay.

Loads 1-minute bar data from:
- NinjaTrader export format: yyyyMMdd HHmmss;open;high;low;close;volume[;openinterest]
- CSV with a header: timestamp,open,high,low,close,volume

and resamples it to the coarser IB-source granularity. Timestamps are
treated as bar open times throughout.
"""

import logging
from datetime import time
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .data_types import Bar

logger = logging.getLogger(__name__)

OHLCV_COLUMNS = ['timestamp', 'open', 'high', 'low', 'close', 'volume']


class DataLoader:
    """
    Loads and caches historical bar data as DataFrames.

    Every loader returns columns: timestamp, open, high, low, close,
    volume, ticker - sorted by timestamp, unique timestamps, and with
    bars whose prices are inconsistent removed.
    """

    def __init__(self, data_dir: Optional[str] = None):
        """
        Initialize the data loader.

        Args:
            data_dir: Directory that relative file paths are resolved against
        """
        self.data_dir = Path(data_dir) if data_dir else None
        self._cache: Dict[str, pd.DataFrame] = {}

    def _resolve(self, filepath: str) -> Path:
        path = Path(filepath)
        if not path.is_absolute() and self.data_dir is not None:
            path = self.data_dir / path
        if not path.exists():
            raise FileNotFoundError(f"Data file not found: {path}")
        return path

    def load_ninjatrader_file(self, filepath: str, ticker: str = "") -> pd.DataFrame:
        """
        Load NinjaTrader format file.

        Example line: 20231205 093000;185.12;185.15;185.10;185.14;1523;0
        """
        path = self._resolve(filepath)
        ticker = ticker or path.stem.split("_")[0].upper()

        df = pd.read_csv(
            path,
            sep=';',
            header=None,
            usecols=range(6),
            names=OHLCV_COLUMNS,
            dtype={'timestamp': str},
            skip_blank_lines=True
        )
        df['timestamp'] = pd.to_datetime(df['timestamp'], format="%Y%m%d %H%M%S", errors='coerce')

        return self._finalize(df, ticker, path)

    def load_csv(self, filepath: str, ticker: str = "") -> pd.DataFrame:
        """
        Load a CSV with a header row.

        The time column may be called timestamp, datetime or date.
        """
        path = self._resolve(filepath)
        ticker = ticker or path.stem.split("_")[0].upper()

        df = pd.read_csv(path)
        df.columns = [str(c).strip().lower() for c in df.columns]

        for alias in ('datetime', 'date', 'time'):
            if 'timestamp' not in df.columns and alias in df.columns:
                df = df.rename(columns={alias: 'timestamp'})

        missing = [c for c in OHLCV_COLUMNS if c not in df.columns]
        if 'volume' in missing:
            df['volume'] = 0
            missing.remove('volume')
        if missing:
            raise ValueError(f"{path.name} is missing columns: {', '.join(missing)}")

        df['timestamp'] = pd.to_datetime(df['timestamp'], errors='coerce')
        return self._finalize(df[OHLCV_COLUMNS].copy(), ticker, path)

    def load_auto_detect(self, filepath: str, ticker: str = "") -> pd.DataFrame:
        """Pick the loader from the first line of the file."""
        path = self._resolve(filepath)

        with open(path, 'r') as f:
            first_line = f.readline()

        if ';' in first_line:
            return self.load_ninjatrader_file(str(path), ticker)
        return self.load_csv(str(path), ticker)

    def _finalize(self, df: pd.DataFrame, ticker: str, path: Path) -> pd.DataFrame:
        """Clean, sort and cache a loaded frame."""
        for col in ['open', 'high', 'low', 'close', 'volume']:
            df[col] = pd.to_numeric(df[col], errors='coerce')

        before = len(df)
        df = df.dropna(subset=['timestamp', 'open', 'high', 'low', 'close']).copy()
        df['volume'] = df['volume'].fillna(0).astype(np.int64)

        high = df['high'].to_numpy()
        low = df['low'].to_numpy()
        opens = df['open'].to_numpy()
        closes = df['close'].to_numpy()
        bad = (high < low) | (opens > high) | (opens < low) | (closes > high) | (closes < low)
        if bad.any():
            logger.warning("%s: dropping %d bars with inconsistent prices", path.name, int(bad.sum()))
            df = df[~bad]

        df = df.sort_values('timestamp', kind='mergesort')
        duplicated = df['timestamp'].duplicated(keep='last')
        if duplicated.any():
            logger.warning("%s: dropping %d duplicate timestamps", path.name, int(duplicated.sum()))
            df = df[~duplicated]

        df = df.reset_index(drop=True)
        df['ticker'] = ticker

        if df.empty:
            raise ValueError(f"No valid data found in {path}")

        skipped = before - len(df)
        logger.info(
            "Loaded %s bars for %s from %s (%d skipped)", f"{len(df):,}", ticker, path.name, skipped
        )
        logger.info("  Date range: %s to %s", df['timestamp'].min(), df['timestamp'].max())

        self._cache[ticker] = df
        return df

    def is_loaded(self, ticker: str) -> bool:
        return ticker in self._cache


def resample_bars(df: pd.DataFrame, minutes: int, session_start: time) -> pd.DataFrame:
    """
    Aggregate bars into coarser bars aligned on the session start.

    A 30-minute resample with a 9:30 session start yields bars stamped
    9:30, 10:00, 10:30, ... each covering [stamp, stamp + 30 minutes).

    Args:
        df: Bars with timestamp/open/high/low/close/volume columns
        minutes: Target bar length
        session_start: Session start used as the bin anchor

    Returns:
        Resampled DataFrame with the same columns (ticker preserved)
    """
    start_minute = session_start.hour * 60 + session_start.minute
    offset = pd.Timedelta(minutes=start_minute % minutes)

    resampled = (
        df.set_index('timestamp')[['open', 'high', 'low', 'close', 'volume']]
        .resample(f"{minutes}min", origin='start_day', offset=offset, label='left', closed='left')
        .agg({'open': 'first', 'high': 'max', 'low': 'min', 'close': 'last', 'volume': 'sum'})
        .dropna(subset=['open'])
        .reset_index()
    )
    resampled['volume'] = resampled['volume'].astype(np.int64)
    if 'ticker' in df.columns and not df.empty:
        resampled['ticker'] = df['ticker'].iloc[0]
    return resampled


def dataframe_to_bars(df: pd.DataFrame, ticker: str = "") -> List[Bar]:
    """Convert a bar DataFrame into Bar objects."""
    bars = []
    has_ticker = 'ticker' in df.columns
    for row in df.itertuples(index=False):
        bars.append(Bar(
            timestamp=row.timestamp.to_pydatetime() if hasattr(row.timestamp, 'to_pydatetime') else row.timestamp,
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=int(row.volume),
            ticker=ticker or (row.ticker if has_ticker else "")
        ))
    return bars
