"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Record store
    db_path: str = Field(default="./data/coachboard.duckdb", description="DuckDB file path")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_reload: bool = Field(default=True, description="Enable hot reload")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="CORS allowed origins (comma-separated)",
    )

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Membership metrics
    churn_window_days: int = Field(default=30, ge=1, description="Trailing churn window")
    renewal_horizon_days: int = Field(
        default=30, ge=1, description="Look-ahead for memberships up for renewal"
    )
    renewal_lookback_days: int = Field(
        default=90, ge=1, description="Look-back for renewal success rate"
    )
    program_trend_months: int = Field(
        default=6, ge=1, le=36, description="Months shown in per-program trend charts"
    )

    # Forecasting
    forecast_history_months: int = Field(
        default=12, ge=2, le=60, description="Months of purchase history fed to the forecast"
    )
    forecast_trailing_months: int = Field(
        default=6, ge=2, le=24, description="Trailing months used for growth estimation"
    )
    forecast_default_growth: float = Field(
        default=0.02, description="Monthly growth used when history is too sparse"
    )
    forecast_growth_floor: float = Field(default=-0.10, description="Lowest monthly growth")
    forecast_growth_ceiling: float = Field(default=0.20, description="Highest monthly growth")
    forecast_horizon_months: int = Field(
        default=6, ge=1, le=36, description="Default number of forecast periods"
    )

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")
    testing: bool = Field(default=False, description="Testing mode")

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, v: str) -> List[str]:
        """Parse comma-separated CORS origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("forecast_growth_ceiling")
    @classmethod
    def validate_growth_bounds(cls, v: float, info) -> float:
        """Ceiling must not sit below the floor."""
        floor = info.data.get("forecast_growth_floor")
        if floor is not None and v < floor:
            raise ValueError("forecast_growth_ceiling must be >= forecast_growth_floor")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()
