"""Configuration for content risk analyzer service."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service metadata
    service_name: str = "content-risk-analyzer"
    version: str = "0.1.0"
    environment: str = "dev"

    # GCP settings
    gcp_project_id: str = ""
    gcp_region: str = "europe-west4"

    # Gemini settings
    gemini_api_key: str = ""  # Empty = Vertex AI with ADC
    gemini_model: str = "gemini-2.5-flash"
    gemini_fallback_model: str = "gemini-2.5-pro"  # Secondary provider, empty to disable
    gemini_location: str = "europe-west1"
    gemini_temperature: float = 0.2  # Low temp for consistent JSON
    gemini_max_output_tokens: int = 8192

    # Provider call resilience
    call_timeout_seconds: float = 120.0
    retry_max_attempts: int = 3  # Per provider
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0
    max_concurrent_calls: int = 20

    # Stage / extraction behaviour
    stage_max_attempts: int = 3
    extraction_max_attempts: int = 3
    extraction_retry_delay_seconds: float = 0.5
    diagnostics_max_chars: int = 500

    # Long transcripts are split for the risk stage
    chunk_size: int = 3500
    chunk_overlap: int = 250

    # Daily provider quotas (calls per UTC day)
    default_daily_limit: int = 50
    provider_daily_limits: dict[str, int] = {}
    usage_warning_ratio: float = 0.9  # Record-only counter warns at 90%

    # Firestore
    firestore_database_id: str = "(default)"
    firestore_usage_collection: str = "api_usage"

    # Logging
    log_level: str = "INFO"

    def daily_limit_for(self, provider: str) -> int:
        """Daily call limit for a provider (falls back to default_daily_limit)."""
        return self.provider_daily_limits.get(provider, self.default_daily_limit)


settings = Settings()
