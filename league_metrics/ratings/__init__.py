"""Rating update runs.

The orchestrator lives in ``league_metrics.ratings.update``; import it from
there (the models import this package's errors).
"""

from .errors import MetricsError, MissingAnchorError, SeasonNotFoundError, WeekNotFoundError

__all__ = ["MetricsError", "MissingAnchorError", "SeasonNotFoundError", "WeekNotFoundError"]
