"""Knowledge engine configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from clinical_knowledge.oracle.model_registry import GPT41


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Resource prefix for Azure resources
    resource_prefix: str = "clinical-knowledge-dev"

    # Key Vault is optional; without it secrets come from the environment
    key_vault_name: Optional[str] = None

    # Ledger storage mode: "postgres" or "memory" (local testing only)
    ledger_backend: str = "postgres"

    # PostgreSQL configuration
    postgres_host: Optional[str] = None
    postgres_port: int = 5432
    postgres_admin_login: str = "pgadmin"
    postgres_database: str = "clinical_knowledge"
    postgres_sslmode: str = "require"
    postgres_pool_min_size: int = 1
    postgres_pool_max_size: int = 10

    # How long a merge queues behind another transaction on the same aggregate
    ledger_lock_timeout_ms: int = 5000

    # Redis analysis cache (disabled when no host is configured)
    redis_host: Optional[str] = None
    redis_port: int = 6380
    redis_ssl: bool = True
    analysis_cache_ttl_seconds: int = 120

    # Oracle configuration
    oracle_model: str = GPT41.name
    oracle_timeout_seconds: float = 30.0

    # Diagnosis ledger
    preservation_threshold: float = 0.7
    diagnosis_confidence_floor: float = 0.3
    diagnosis_confidence_ceiling: float = 0.85
    min_diagnosis_transcript_chars: int = 10

    # Solution ledger
    solution_confidence_floor: float = 0.1
    solution_confidence_ceiling: float = 0.9
    regenerate_high_ratio: float = 0.6

    # Topic extraction
    topic_confidence_floor: float = 0.15
    topic_confidence_ceiling: float = 0.89
    max_topics: int = 5

    # Calibration gate
    calibration_high_mark: float = 0.8
    calibration_max_high_ratio: float = 0.4
    calibration_min_batch: int = 3

    # Interview completeness (turn counts)
    completeness_min_turns: int = 3
    completeness_topic_turns: int = 6
    completeness_fallback_turns: int = 7
    completeness_forced_turns: int = 10
    completeness_min_quality: float = 0.4

    # Authentication: "jwt" verifies bearer tokens, "local" uses the test owner
    auth_mode: str = "jwt"
    auth_jwt_algorithm: str = "HS256"
    auth_jwt_audience: str = "authenticated"
    local_test_owner_id: str = "00000000-0000-0000-0000-000000000001"

    @property
    def resolved_postgres_host(self) -> str:
        """Get PostgreSQL host, derived from resource prefix unless set."""
        return self.postgres_host or f"{self.resource_prefix}-postgres.postgres.database.azure.com"

    @property
    def analysis_cache_enabled(self) -> bool:
        """Whether the Redis analysis cache is configured."""
        return bool(self.redis_host)

    def get_postgres_connection_string(self, password: str) -> str:
        """Build PostgreSQL connection string.

        Args:
            password: PostgreSQL admin password

        Returns:
            PostgreSQL connection string
        """
        return (
            f"postgresql://{self.postgres_admin_login}:{password}"
            f"@{self.resolved_postgres_host}:{self.postgres_port}"
            f"/{self.postgres_database}?sslmode={self.postgres_sslmode}"
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
