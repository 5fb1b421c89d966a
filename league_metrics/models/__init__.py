"""Rating models package.

- EloEngine: season-aware team Elo with preseason regression
- CoachEloEngine: play-share weighted coach Elo, no season reset
- ParkNewmanScorer: Park-Newman win value (wPN) per team-season
"""

from .elo import EloEngine, EloResult, GameElo
from .coach_elo import CoachEloEngine, CoachGameElo
from .park_newman import ParkNewmanScorer

__all__ = [
    "EloEngine",
    "EloResult",
    "GameElo",
    "CoachEloEngine",
    "CoachGameElo",
    "ParkNewmanScorer",
]
