"""
Strategy parameters for the IB60 Breakout strategy.

Defaults match the platform strategy's defaults. Every numeric parameter
carries a documented range; out-of-range values are rejected when the
parameters are built, before any session starts.

YAML files may be flat (``ib_period_minutes: 60``) or grouped in the
same sections the platform property grid uses:

    session:
      session_start_hour: 9
      session_start_minute: 30
    partial_tp:
      tp1_multiplier: 0.5
"""

import math
from dataclasses import dataclass, asdict, fields
from datetime import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from strategy.errors import ConfigurationError


# (min, max) inclusive; None = unbounded on that side
PARAM_RANGES: Dict[str, Tuple[Optional[float], Optional[float]]] = {
    "session_start_hour": (0, 23),
    "session_start_minute": (0, 59),
    "session_end_hour": (0, 23),
    "session_end_minute": (0, 59),
    "ib_period_minutes": (1, 240),
    "risk_percent": (0, 100),
    "fixed_lot_size": (1, None),
    "stop_loss_percent": (0, 100),
    "trailing_stop_percent": (0.1, 10),
    "tp1_multiplier": (0.1, 10),
    "tp1_close_percent": (1, 100),
    "tp2_multiplier": (0.1, 10),
    "tp2_close_percent": (1, 100),
    "tp3_multiplier": (0.1, 10),
    "primary_bar_minutes": (1, 1440),
    "ib_source_bar_minutes": (1, 1440),
    "bars_required_to_trade": (0, None),
}

INT_PARAMS = {
    "session_start_hour", "session_start_minute",
    "session_end_hour", "session_end_minute",
    "ib_period_minutes", "fixed_lot_size",
    "primary_bar_minutes", "ib_source_bar_minutes",
    "bars_required_to_trade",
}

BOOL_PARAMS = {
    "breakout_by_close", "use_trailing_stop",
    "one_trade_per_day", "close_at_session_end",
    "use_opening_candle_filter", "use_partial_tp",
    "move_to_break_even",
}

YAML_SECTIONS = (
    "session", "strategy", "risk", "trade_management",
    "partial_tp", "instrument", "feed",
)


@dataclass(frozen=True)
class StrategyParams:
    """
    All configurable strategy parameters.

    Immutable for the lifetime of a run; validated on construction.
    """
    # Trading session (local time)
    session_start_hour: int = 9
    session_start_minute: int = 30
    session_end_hour: int = 16
    session_end_minute: int = 0

    # Strategy settings
    ib_period_minutes: int = 60
    breakout_by_close: bool = True  # False = breakout measured by high/low

    # Risk management
    risk_percent: float = 1.0  # 0 = use fixed_lot_size
    fixed_lot_size: int = 1
    stop_loss_percent: float = 0.0  # 0 = stop at opposite IB level
    use_trailing_stop: bool = False
    trailing_stop_percent: float = 0.5

    # Trade management
    one_trade_per_day: bool = True
    close_at_session_end: bool = True
    use_opening_candle_filter: bool = True

    # Partial take profit (multiples of IB range)
    use_partial_tp: bool = True
    tp1_multiplier: float = 0.5
    tp1_close_percent: float = 33.0
    tp2_multiplier: float = 1.0
    tp2_close_percent: float = 33.0  # percent of REMAINING quantity
    tp3_multiplier: float = 2.0
    move_to_break_even: bool = True

    # Instrument
    tick_size: float = 0.25
    point_value: float = 5.0
    currency: str = "USD"

    # Feed layout
    primary_bar_minutes: int = 1
    ib_source_bar_minutes: int = 30
    bars_required_to_trade: int = 20

    # Order tagging
    tag_prefix: str = "IB60"

    def __post_init__(self):
        self.validate()

    @property
    def session_start(self) -> time:
        return time(self.session_start_hour, self.session_start_minute)

    @property
    def session_end(self) -> time:
        return time(self.session_end_hour, self.session_end_minute)

    @property
    def long_entry_tag(self) -> str:
        return f"{self.tag_prefix} Long"

    @property
    def short_entry_tag(self) -> str:
        return f"{self.tag_prefix} Short"

    def validate(self):
        """
        Check every parameter against its documented range.

        Raises:
            ConfigurationError: On the first invalid parameter
        """
        for name, (low, high) in PARAM_RANGES.items():
            value = getattr(self, name)

            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(f"{name} must be numeric, got {value!r}")
            if name in INT_PARAMS and not float(value).is_integer():
                raise ConfigurationError(f"{name} must be a whole number, got {value!r}")
            if not math.isfinite(value):
                raise ConfigurationError(f"{name} must be finite, got {value!r}")
            if low is not None and value < low:
                raise ConfigurationError(f"{name}={value} is below minimum {low}")
            if high is not None and value > high:
                raise ConfigurationError(f"{name}={value} is above maximum {high}")

        for name in BOOL_PARAMS:
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ConfigurationError(f"{name} must be true or false, got {value!r}")

        for name in ("tick_size", "point_value"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not value > 0:
                raise ConfigurationError(f"{name} must be a positive number, got {value!r}")

        if self.session_end <= self.session_start:
            raise ConfigurationError(
                f"Session end {self.session_end:%H:%M} must be after "
                f"session start {self.session_start:%H:%M}"
            )

        if not self.currency or not self.tag_prefix:
            raise ConfigurationError("currency and tag_prefix must be non-empty")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "StrategyParams":
        """
        Build parameters from a flat or sectioned mapping.

        Raises:
            ConfigurationError: Unknown keys or invalid values
        """
        flat: Dict[str, Any] = {}
        for key, value in (config or {}).items():
            if key in YAML_SECTIONS and isinstance(value, dict):
                flat.update(value)
            else:
                flat[key] = value

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(flat) - known)
        if unknown:
            raise ConfigurationError(f"Unknown strategy parameters: {', '.join(unknown)}")

        return cls(**flat)

    @classmethod
    def from_yaml(cls, filepath: str) -> "StrategyParams":
        """Load parameters from a YAML file."""
        path = Path(filepath)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")

        with open(path) as f:
            config = yaml.safe_load(f)

        if config is not None and not isinstance(config, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")

        return cls.from_dict(config or {})

    def save_to_yaml(self, filepath: str):
        """Save parameters to a flat YAML file."""
        with open(filepath, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
