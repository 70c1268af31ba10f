"""
Replay Runner for the IB60 Breakout strategy.

Replays historical 1-minute bars through the strategy as if they arrived
live:
- The IB-source stream is resampled from the same data
- Both streams are delivered in order of bar close (open + bar length);
  when a primary bar and an IB-source bar close together, the IB-source
  bar goes first
- A PaperVenue fills intents and supplies position/equity feedback

The result is the list of intents the strategy produced; no performance
statistics are computed.
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from data.data_loader import DataLoader, resample_bars, dataframe_to_bars
from data.data_types import Bar, OrderIntent
from strategy.errors import StrategyError
from strategy.ib_breakout import IB60Strategy
from strategy.params import StrategyParams
from backtester.paper_venue import PaperVenue

logger = logging.getLogger(__name__)

PRIMARY_STREAM = 1
IB_SOURCE_STREAM = 0


@dataclass
class ReplayResult:
    """Intents produced by one replay."""
    ticker: str
    intents: List[OrderIntent] = field(default_factory=list)
    primary_bars: int = 0
    ib_source_bars: int = 0
    trading_days: int = 0

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [i.to_dict() for i in self.intents],
            columns=['timestamp', 'intent', 'quantity', 'price', 'tag', 'entry_tag']
        )

    def save_csv(self, filepath: str):
        self.to_dataframe().to_csv(filepath, index=False)
        logger.info("Saved %d intents to %s", len(self.intents), filepath)


def build_event_stream(
    primary_bars: List[Bar],
    ib_source_bars: List[Bar],
    primary_minutes: int,
    ib_source_minutes: int
) -> List[Tuple[datetime, int, Bar]]:
    """
    Merge both streams by delivery time.

    Returns:
        (delivery_time, stream, bar) tuples sorted for replay
    """
    primary_len = timedelta(minutes=primary_minutes)
    source_len = timedelta(minutes=ib_source_minutes)

    events = [(b.timestamp + primary_len, PRIMARY_STREAM, b) for b in primary_bars]
    events.extend((b.timestamp + source_len, IB_SOURCE_STREAM, b) for b in ib_source_bars)
    events.sort(key=lambda e: (e[0], e[1]))
    return events


class ReplayRunner:
    """
    Runs the IB60 strategy over historical data.
    """

    def __init__(
        self,
        params: Optional[StrategyParams] = None,
        initial_equity: float = 100000.0,
        data_dir: Optional[str] = None
    ):
        """
        Initialize replay runner.

        Args:
            params: Strategy parameters (uses defaults if None)
            initial_equity: Equity reported by the paper venue
            data_dir: Directory relative data paths are resolved against
        """
        self.params = params or StrategyParams()
        self.initial_equity = initial_equity
        self.loader = DataLoader(data_dir)

        self.venue: Optional[PaperVenue] = None
        self.strategy: Optional[IB60Strategy] = None

    def run(self, primary_bars: List[Bar], ib_source_bars: List[Bar], ticker: str = "") -> ReplayResult:
        """
        Replay prepared bar lists.

        Raises:
            FeedError: If either stream is out of order or malformed
        """
        self.venue = PaperVenue(initial_equity=self.initial_equity)
        self.strategy = IB60Strategy(self.params, self.venue, self.venue, self.venue)

        events = build_event_stream(
            primary_bars,
            ib_source_bars,
            self.params.primary_bar_minutes,
            self.params.ib_source_bar_minutes
        )

        for _, stream, bar in events:
            if stream == IB_SOURCE_STREAM:
                self.strategy.on_ib_source_bar(bar)
            else:
                self.venue.update_market(bar)
                self.strategy.on_primary_bar(bar)

        return ReplayResult(
            ticker=ticker,
            intents=list(self.venue.intents),
            primary_bars=len(primary_bars),
            ib_source_bars=len(ib_source_bars),
            trading_days=len({b.timestamp.date() for b in primary_bars})
        )

    def run_dataframe(self, df: pd.DataFrame, ticker: str = "") -> ReplayResult:
        """Replay a primary-granularity DataFrame, deriving the IB-source stream."""
        source_df = resample_bars(df, self.params.ib_source_bar_minutes, self.params.session_start)

        primary_bars = dataframe_to_bars(df, ticker)
        ib_source_bars = dataframe_to_bars(source_df, ticker)

        logger.info(
            "Replaying %s: %s primary bars, %s IB-source bars",
            ticker or "data", f"{len(primary_bars):,}", f"{len(ib_source_bars):,}"
        )
        return self.run(primary_bars, ib_source_bars, ticker)

    def run_file(
        self,
        filepath: str,
        ticker: str = "",
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> ReplayResult:
        """
        Load a data file and replay it.

        Args:
            filepath: NinjaTrader export or CSV of primary bars
            ticker: Ticker symbol (inferred from filename if empty)
            start_date: Filter start (optional)
            end_date: Last trading date included (optional)
        """
        df = self.loader.load_auto_detect(filepath, ticker)
        ticker = ticker or df['ticker'].iloc[0]

        if start_date:
            df = df[df['timestamp'] >= start_date]
        if end_date:
            df = df[df['timestamp'] < end_date + timedelta(days=1)]

        if df.empty:
            raise ValueError(f"No data in specified date range for {ticker}")

        return self.run_dataframe(df.reset_index(drop=True), ticker)


def _parse_date(value: str) -> datetime:
    return datetime.strptime(value, "%Y-%m-%d")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Replay bar data through the IB60 Breakout strategy")
    parser.add_argument("data_file", help="NinjaTrader export or CSV of 1-minute bars")
    parser.add_argument("--config", help="YAML strategy parameters")
    parser.add_argument("--ticker", default="", help="Ticker symbol (default: from filename)")
    parser.add_argument("--start", type=_parse_date, help="Start date YYYY-MM-DD")
    parser.add_argument("--end", type=_parse_date, help="End date YYYY-MM-DD")
    parser.add_argument("--equity", type=float, default=100000.0, help="Paper account equity")
    parser.add_argument("--output", help="Write intents to this CSV")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", help="Also log to this file")
    args = parser.parse_args(argv)

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if args.log_file:
        handlers.append(logging.FileHandler(args.log_file))
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers
    )

    try:
        params = StrategyParams.from_yaml(args.config) if args.config else StrategyParams()
        runner = ReplayRunner(params=params, initial_equity=args.equity)
        result = runner.run_file(args.data_file, args.ticker, args.start, args.end)
    except (StrategyError, FileNotFoundError, ValueError) as e:
        logger.error("Replay failed: %s", e)
        return 1

    entries = sum(1 for i in result.intents if i.intent_type.value.startswith("enter_"))
    logger.info(
        "Replay complete: %d days, %d entries, %d intents",
        result.trading_days, entries, len(result.intents)
    )

    if args.output:
        result.save_csv(args.output)

    return 0


if __name__ == "__main__":
    sys.exit(main())
