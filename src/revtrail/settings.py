"""
Process-level settings.

Read from ``REVTRAIL_*`` environment variables (or a ``.env`` file):

    REVTRAIL_ENABLED=false            # start with capture switched off
    REVTRAIL_HAS_ONE_LOOKBACK=1.5     # seconds used by reify(has_one=True)
    REVTRAIL_DATABASE_URL=postgresql://...
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for revtrail.

    Environment variable prefix: REVTRAIL_
    """

    model_config = SettingsConfigDict(
        env_prefix="REVTRAIL_", env_file=".env", extra="ignore"
    )

    enabled: bool = Field(
        default=True,
        description="Initial value of the process-wide capture switch.",
    )
    has_one_lookback: float = Field(
        default=3.0,
        ge=0,
        description="Seconds subtracted from a parent revision's timestamp when "
        "reconstructing its one-to-one associations with has_one=True.",
    )
    database_url: str = Field(
        default="sqlite://",
        description="Used by Revtrail.init() when no URL is passed explicitly.",
    )
    echo_sql: bool = Field(default=False, description="Echo SQL from the engine.")


@lru_cache
def get_settings() -> Settings:
    return Settings()
