import os
from pathlib import Path
from typing import Literal

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues."""
    db_url = os.getenv("COMBINE_DATABASE_URL", "")
    if db_url:
        logger.info(f"Using COMBINE_DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "combine.db"
    abs_path = db_path.resolve()
    db_url = f"sqlite:///{abs_path}"
    logger.debug(f"Using default database path: {db_url}")
    return db_url


class Settings(BaseSettings):
    store_backend: Literal["memory", "sql", "redis"] = Field(
        default="sql",
        validation_alias="COMBINE_STORE_BACKEND",
        description="Key-value backend holding baseline, layers, history and snapshots",
    )
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="COMBINE_DATABASE_URL",
    )
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="COMBINE_REDIS_URL")
    store_namespace: str = Field(
        default="combine",
        validation_alias="COMBINE_STORE_NAMESPACE",
        description="Prefix applied to every persisted key",
    )
    log_level: str = Field(default="INFO", validation_alias="COMBINE_LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="COMBINE_LOG_FILE")
    z_score_min_sample: int = Field(
        default=5,
        validation_alias="COMBINE_Z_SCORE_MIN_SAMPLE",
        description="Below this many values a metric's z-scores are flagged low_n",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid COMBINE_LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("store_namespace")
    @classmethod
    def validate_store_namespace(cls, value: str) -> str:
        """Strip separators so keys always read ``<namespace>:<collection>``."""
        cleaned = value.strip().strip(":")
        if not cleaned:
            logger.warning("COMBINE_STORE_NAMESPACE is empty. Defaulting to 'combine'.")
            return "combine"
        return cleaned

    @field_validator("z_score_min_sample")
    @classmethod
    def validate_z_score_min_sample(cls, value: int) -> int:
        if value < 2:
            logger.warning(f"COMBINE_Z_SCORE_MIN_SAMPLE={value} is below 2 (a standard deviation needs two values). Using 2.")
            return 2
        return value


settings = Settings()
