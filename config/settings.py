"""Application settings and configuration."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


@dataclass
class Settings:
    """Application configuration settings."""

    # League Data
    league_file: str = field(default_factory=lambda: os.getenv("LEAGUE_FILE", ""))

    # Elo Hyperparameters
    # K=20 with the 28-minute game clock keeps a blowout between even teams under ~20 pts
    elo_k: float = field(default_factory=lambda: float(os.getenv("ELO_K", "20")))
    rating_precision: int = 4  # Decimal places kept on preseason anchors

    # Standings
    regular_season_last_week: int = 13  # Inclusive; later weeks are postseason

    # wPN (Park-Newman) Parameters
    wpn_mov_influence: float = field(
        default_factory=lambda: float(os.getenv("WPN_MOV_INFLUENCE", "0.25"))
    )
    wpn_workers: int = field(
        default_factory=lambda: int(os.getenv("WPN_WORKERS", "1"))
    )

    # Storage
    store_dir_override: str = field(
        default_factory=lambda: os.getenv("METRICS_STORE_DIR", "")
    )

    # Paths
    @property
    def project_root(self) -> Path:
        return Path(__file__).parent.parent

    @property
    def data_dir(self) -> Path:
        return self.project_root / "data"

    @property
    def outputs_dir(self) -> Path:
        return self.data_dir / "outputs"

    @property
    def store_dir(self) -> Path:
        if self.store_dir_override:
            return Path(self.store_dir_override)
        return self.data_dir / "metrics"

    def validate(self) -> list[str]:
        """Validate required settings. Returns list of errors."""
        errors = []
        if not self.league_file:
            errors.append("LEAGUE_FILE is required. Set it in .env file or pass --league.")
        if self.elo_k <= 0:
            errors.append(f"ELO_K must be positive, got {self.elo_k}")
        if self.wpn_mov_influence < 0:
            errors.append(
                f"WPN_MOV_INFLUENCE must be non-negative, got {self.wpn_mov_influence}"
            )
        if self.wpn_workers < 1:
            errors.append(f"WPN_WORKERS must be at least 1, got {self.wpn_workers}")
        return errors


# Singleton instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
