"""
Session Calendar for the IB60 Breakout strategy.

Answers wall-clock questions about a bar timestamp:
- Is it inside the trading session (session start to session end)?
- Where does today's Initial Balance window start and end?
- Is a timestamp inside that window?

All checks compare local time-of-day only; nothing here depends on the
exchange calendar or holds state.
"""

from datetime import date, datetime, time, timedelta
from typing import Tuple


class SessionCalendar:
    """
    Pure time-of-day checks for one trading session layout.

    Session membership is half-open: a bar timestamped exactly at session
    end is outside the session, matching how the IB window treats its own
    end time.
    """

    def __init__(
        self,
        session_start: time,
        session_end: time,
        ib_period_minutes: int = 60
    ):
        """
        Initialize session calendar.

        Args:
            session_start: Session start time-of-day (local)
            session_end: Session end time-of-day (local), exclusive
            ib_period_minutes: Length of the Initial Balance window
        """
        self.session_start = session_start
        self.session_end = session_end
        self.ib_period_minutes = ib_period_minutes

    @classmethod
    def from_params(cls, params) -> "SessionCalendar":
        """Build a calendar from StrategyParams."""
        return cls(
            session_start=params.session_start,
            session_end=params.session_end,
            ib_period_minutes=params.ib_period_minutes
        )

    def is_in_session(self, timestamp: datetime) -> bool:
        """True iff the time-of-day lies in [session_start, session_end)."""
        current_time = timestamp.time()
        return self.session_start <= current_time < self.session_end

    def get_session_start(self, trading_date: date) -> datetime:
        """Session start datetime for a calendar date."""
        return datetime.combine(trading_date, self.session_start)

    def get_ib_end_time(self, session_start: datetime) -> datetime:
        """IB end datetime for a session start."""
        return session_start + timedelta(minutes=self.ib_period_minutes)

    def ib_window(self, trading_date: date) -> Tuple[datetime, datetime]:
        """
        Initial Balance window for a calendar date.

        Returns:
            (ib_start, ib_end) - bars with ib_start <= timestamp < ib_end
            belong to the IB
        """
        ib_start = self.get_session_start(trading_date)
        return ib_start, self.get_ib_end_time(ib_start)

    def is_in_ib_window(self, timestamp: datetime, trading_date: date) -> bool:
        """True iff timestamp falls in the IB window of trading_date."""
        ib_start, ib_end = self.ib_window(trading_date)
        return timestamp.date() == trading_date and ib_start <= timestamp < ib_end
