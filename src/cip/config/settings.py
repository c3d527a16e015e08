"""Application settings loaded from environment."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strongly typed settings for the import pipeline."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    pghost: Optional[str] = Field(default=None, alias="PGHOST")
    pgport: int = Field(default=5432, alias="PGPORT")
    pguser: Optional[str] = Field(default=None, alias="PGUSER")
    pgpassword: Optional[str] = Field(default=None, alias="PGPASSWORD")
    pgdatabase: Optional[str] = Field(default=None, alias="PGDATABASE")

    # Gemini classification fallback
    google_api_key: Optional[str] = Field(default=None, alias="GOOGLE_API_KEY")
    gemini_api_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_API_BASE_URL",
    )
    gemini_model_id: str = Field(default="gemini-1.5-flash", alias="GEMINI_MODEL_ID")
    gemini_temperature: float = Field(default=0.0, alias="GEMINI_TEMPERATURE")
    gemini_max_output_tokens: int = Field(default=256, alias="GEMINI_MAX_OUTPUT_TOKENS")
    gemini_timeout_seconds: float = Field(default=15.0, alias="GEMINI_TIMEOUT_SECONDS")
    classifier_ai_enabled: bool = Field(default=True, alias="CLASSIFIER_AI_ENABLED")
    classifier_ai_threshold: float = Field(default=0.7, alias="CLASSIFIER_AI_THRESHOLD")
    classifier_max_retries: int = Field(default=2, alias="CLASSIFIER_MAX_RETRIES")
    classifier_retry_sleep_seconds: float = Field(
        default=1.0, alias="CLASSIFIER_RETRY_SLEEP_SECONDS"
    )
    classifier_prompt_version: str = Field(default="v001", alias="CLASSIFIER_PROMPT_VERSION")

    # Province matching
    default_region_id: int = Field(default=1, alias="DEFAULT_REGION_ID")
    province_max_distance_km: float = Field(default=100.0, alias="PROVINCE_MAX_DISTANCE_KM")

    # Deduplication
    dedup_name_threshold: float = Field(default=0.6, alias="DEDUP_NAME_THRESHOLD")
    dedup_radius_km: float = Field(default=0.5, alias="DEDUP_RADIUS_KM")
    dedup_duplicate_threshold: float = Field(default=0.8, alias="DEDUP_DUPLICATE_THRESHOLD")
    dedup_max_results: int = Field(default=5, alias="DEDUP_MAX_RESULTS")

    # Batch processing
    batch_item_delay_seconds: float = Field(default=0.1, alias="BATCH_ITEM_DELAY_SECONDS")
    process_all_cap: int = Field(default=100, alias="PROCESS_ALL_CAP")
    approve_max_photos: int = Field(default=3, alias="APPROVE_MAX_PHOTOS")

    # Runtime
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    run_env: str = Field(default="local", alias="RUN_ENV")

    def get_database_url(self) -> str:
        """Return a usable database URL or raise."""
        if self.database_url:
            return self.database_url

        if all([self.pghost, self.pguser, self.pgpassword, self.pgdatabase]):
            return (
                "postgresql://"
                f"{self.pguser}:{self.pgpassword}@{self.pghost}:{self.pgport}/"
                f"{self.pgdatabase}"
            )

        raise ValueError("DATABASE_URL or PG* env vars must be set")

    @property
    def ai_configured(self) -> bool:
        """True when the Gemini fallback can be used."""
        return bool(self.classifier_ai_enabled and self.google_api_key)
