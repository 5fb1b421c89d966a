"""Errors raised while updating league metrics."""


class MetricsError(Exception):
    """Base class for metrics update failures."""


class SeasonNotFoundError(MetricsError):
    """Raised when a requested season number does not exist."""


class WeekNotFoundError(MetricsError):
    """Raised when a specific week was required but does not exist."""


class MissingAnchorError(MetricsError):
    """Raised when an entity has no rating to build on.

    A team that shows up mid-season without a preseason anchor (and no
    qualifying snapshot earlier in the season) cannot be rated: every weekly
    delta needs a prior rating.
    """
