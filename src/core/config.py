"""Configuration management for the maintenance task deduplication engine."""

from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Pinecone Configuration
    pinecone_api_key: str | None = Field(default=None, description="Pinecone API key for the task vector index")
    pinecone_index_name: str = Field(default="maintenance-agent", description="Pinecone index holding task vectors")
    pinecone_namespace: str = Field(default="MAINTENANCE_TASKS", description="Namespace for maintenance task vectors")
    task_id_prefix: str = Field(default="task-", description="ID prefix used when listing task vectors")

    # Review Ledger Configuration
    sqlite_db_path: str = Field(default="./data/dedup_reviews.db", description="SQLite file for the review ledger")
    ledger_batch_size: int = Field(default=1000, description="Rows per insert batch when saving duplicate pairs")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Duplicate Classifier Thresholds
    auto_merge_threshold: float = Field(default=0.92, description="Similarity at which matching tasks auto-merge")
    review_threshold: float = Field(default=0.85, description="Similarity that always warrants human review")
    compound_threshold: float = Field(
        default=0.80, description="Lowest similarity rescued into review by agreeing metadata"
    )
    diagnostic_threshold: float = Field(
        default=0.70, description="Similarity at which candidates are reported as borderline matches"
    )
    retrieval_top_k: int = Field(default=5, description="Nearest neighbours fetched for insert-time checks")
    auto_merge_enabled: bool = Field(
        default=True, description="Apply auto-merge verdicts immediately (otherwise queue them for review)"
    )

    @model_validator(mode="after")
    def validate_threshold_order(self) -> Self:
        """Ensure compound <= review <= auto-merge, all within [0, 1]."""
        thresholds = (self.compound_threshold, self.review_threshold, self.auto_merge_threshold)
        if any(t < 0 or t > 1 for t in thresholds):
            msg = "Similarity thresholds must be between 0 and 1"
            raise ValueError(msg)
        if not self.compound_threshold <= self.review_threshold <= self.auto_merge_threshold:
            msg = "Thresholds must satisfy compound_threshold <= review_threshold <= auto_merge_threshold"
            raise ValueError(msg)
        return self

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # Frequency normalisation (hours per unit)
    HOURS_PER_DAY: float = 24.0
    HOURS_PER_WEEK: float = 168.0
    HOURS_PER_MONTH: float = 730.0  # 30.4 days
    HOURS_PER_YEAR: float = 8760.0

    # Frequency tolerance bands (relative difference)
    TIGHT_BAND_MAX_HOURS: float = 100.0
    MEDIUM_BAND_MAX_HOURS: float = 1000.0
    TIGHT_TOLERANCE: float = 0.10
    MEDIUM_TOLERANCE: float = 0.15
    LOOSE_TOLERANCE: float = 0.20
    STRICT_TOLERANCE: float = 0.05  # unknown scheduling basis

    # Vector store metadata encoding (Pinecone metadata cannot hold nulls)
    UNKNOWN_NUMBER: int = -1
    METADATA_DESCRIPTION_LIMIT: int = 500

    # Vector store paging
    LIST_PAGE_SIZE: int = 100
    FETCH_BATCH_SIZE: int = 1000

    # Store retry policy
    STORE_MAX_RETRIES: int = 3
    STORE_RETRY_BASE_DELAY: float = 0.5


settings = Settings()
