"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Move Score Engine"
    debug: bool = False
    api_prefix: str = "/api"
    host: str = "127.0.0.1"
    port: int = 8000

    # Session defaults, used when a classifier leaves a threshold unset (-1)
    default_stat_dist_low_threshold: float = -1.0
    default_stat_dist_high_threshold: float = -1.0
    default_auto_correlation_threshold: float = -1.0
    default_direction_impact_factor: float = -1.0
    signal_smoothing_frequency: float = -1.0  # Hz, <= 0 disables resampling

    # Shake detection (autocorrelation scan, seconds)
    auto_correlation_step_shift: float = 0.05
    auto_correlation_max_shift: float = 0.5

    # Energy
    energy_amount_damping: float = 0.15
    energy_factor_damping: float = 0.5

    # Sample windows
    min_move_duration_ms: float = 100.0
    gravity: float = 9.81  # m/s² per g

    class Config:
        env_file = ".env"
        env_prefix = "MOVESCORE_"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
