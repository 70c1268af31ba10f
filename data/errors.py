"""
Bar feed errors.

Raised for the offending event only; the strategy processes nothing
about a bar that fails these checks.
"""


class FeedError(Exception):
    """Bar feed violated its contract."""
    pass


class OutOfOrderBarError(FeedError):
    """Bar timestamp did not advance past the previous bar of its stream."""
    pass


class MalformedBarError(FeedError, ValueError):
    """Bar with an invalid timestamp or inconsistent prices."""
    pass
