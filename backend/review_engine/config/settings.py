"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "review_engine_dev"

    # Portal-issued access tokens
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    # Opt-in only: accept tokens without checking their signature (local tooling)
    jwt_verify_signature: bool = True

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Listing
    default_page_size: int = 20
    max_page_size: int = 100

    # Overdue sweep (collaborator job, emits events only)
    overdue_sweep_enabled: bool = True
    overdue_sweep_interval_seconds: int = 300
    overdue_sweep_batch_size: int = 500

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"

    @property
    def verify_token_signature(self) -> bool:
        """Signature checks can only be skipped explicitly, and never in production"""
        return self.jwt_verify_signature or self.is_production


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
