"""
Configuration settings for the Flâneur content pipelines.
"""
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = Field(default="production")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    cors_origins: List[str] = Field(default=["http://localhost:3000"])

    # Supabase
    supabase_url: Optional[str] = Field(default=None)
    supabase_service_key: Optional[str] = Field(default=None)

    # Gemini
    gemini_api_key: Optional[str] = Field(default=None)
    gemini_quality_model: str = Field(default="gemini-2.5-pro")
    gemini_fast_model: str = Field(default="gemini-2.5-flash")
    gemini_temperature: float = Field(default=0.6)

    # Grok (event search)
    grok_api_key: Optional[str] = Field(default=None)
    grok_model: str = Field(default="grok-4-1-fast")
    grok_base_url: str = Field(default="https://api.x.ai/v1")
    grok_timeout_seconds: float = Field(default=60.0)

    # NYC Open Data
    open_data_base_url: str = Field(default="https://data.cityofnewyork.us/resource")
    open_data_app_token: Optional[str] = Field(default=None)

    # Cron authorisation
    cron_secret: Optional[str] = Field(default=None)
    cron_identity_header: str = Field(default="x-vercel-cron")

    # Celery
    celery_broker_url: str = Field(default="redis://localhost:6379/1")
    celery_result_backend: str = Field(default="redis://localhost:6379/2")

    # Pipeline budgets and windows
    pipeline_global_budget_seconds: float = Field(default=280.0)
    brief_lookback_days: int = Field(default=10)
    article_lookback_days: int = Field(default=4)
    brief_phase_budget_seconds: float = Field(default=180.0)
    article_phase_budget_seconds: float = Field(default=90.0)
    enrichment_batch_size: int = Field(default=40)
    enrichment_concurrency: int = Field(default=4)
    enrichment_pacing_seconds: float = Field(default=1.0)
    quota_retry_delays: List[float] = Field(default=[2.0, 5.0, 15.0])

    # Domain pipelines
    generation_delay_seconds: float = Field(default=0.5)
    sighting_confidence_threshold: float = Field(default=0.6)

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    def require(self, *names: str) -> None:
        """
        Raise ConfigurationException when any named setting is unset.

        Args:
            names: Settings attribute names that must hold a value
        """
        from flaneur.core.exceptions import ConfigurationException

        missing = [name for name in names if not getattr(self, name, None)]
        if missing:
            raise ConfigurationException(
                f"Missing required configuration: {', '.join(n.upper() for n in missing)}",
                details={"missing": [n.upper() for n in missing]},
            )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings."""
    return settings
