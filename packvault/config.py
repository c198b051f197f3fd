from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="PACKVAULT_")

    app_name: str = "PackVault"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/packvault"

    # Credits granted when an account is registered
    starter_credits: int = 3500

    # Once-per-day bonus. A claim day runs from reset hour to reset hour (UTC).
    # 0 means the day boundary is midnight UTC.
    daily_bonus_credits: int = 250
    daily_reset_hour_utc: int = 0

    # Passive trickle: one tick per request, never backfilled
    hourly_accrual_credits: int = 10
    hourly_accrual_interval_seconds: int = 3600

    default_pack_type: str = "standard"

    # Base sell value per rarity tier, before the rating multiplier
    sell_base_values: dict[str, int] = {
        "Super": 250,
        "Epic": 75,
        "Rare": 30,
        "Common": 12,
    }

    # Bounded retry for lock contention / failed conditional updates
    transaction_max_attempts: int = 3
    transaction_backoff_seconds: float = 0.05


settings = Settings()


# =============================================================================
# CATALOG LIMITS
# =============================================================================

# Skill attributes and overall rating share the same conventional range
MIN_ATTRIBUTE_VALUE = 0
MAX_ATTRIBUTE_VALUE = 99

# Number of recent sales returned by the history endpoint
SALE_HISTORY_LIMIT = 20

# Number of recent pack openings returned by the history endpoint
PACK_HISTORY_LIMIT = 50
