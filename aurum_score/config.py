"""Configuration management for the score engine microservice."""

from typing import Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Ignore extra environment variables
    )

    # Server configuration
    port: int = 8000
    host: str = "0.0.0.0"

    # Blob storage configuration
    storage_backend: str = "supabase"
    storage_bucket: str = "scores"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    # Score lifecycle settings
    score_ttl_hours: int = 24
    history_max_scores: int = 10
    final_score_ttl_days: int = 30
    simulate_processing_delay: bool = False

    # Expiry sweep settings
    sweep_page_size: int = 1000
    sweep_time_budget_seconds: float = 30.0
    sweep_interval_seconds: int = 0  # 0 disables the in-process sweep loop

    # Observability
    otlp_endpoint: Optional[str] = None

    # Logging configuration
    log_level: str = "INFO"

    @field_validator('storage_backend')
    @classmethod
    def validate_storage_backend(cls, v):
        v = v.lower()
        if v not in ("supabase", "memory"):
            raise ValueError("STORAGE_BACKEND must be 'supabase' or 'memory'")
        return v

    @field_validator('storage_bucket')
    @classmethod
    def validate_storage_bucket(cls, v):
        if not v:
            raise ValueError('STORAGE_BUCKET environment variable is required')
        return v

    @field_validator('score_ttl_hours', 'history_max_scores', 'final_score_ttl_days', 'sweep_page_size')
    @classmethod
    def validate_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f'{info.field_name.upper()} must be greater than 0')
        return v

    @field_validator('sweep_time_budget_seconds')
    @classmethod
    def validate_sweep_time_budget(cls, v):
        if v <= 0:
            raise ValueError('SWEEP_TIME_BUDGET_SECONDS must be greater than 0')
        return v


# Global settings instance
settings = Settings()
