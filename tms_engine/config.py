"""
TMS Engine - Configuration Management
"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    # FastAPI
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8080
    cors_allowed_origins: str = "http://localhost:3000"  # Comma-separated

    # Ticket listing
    default_page_size: int = 20
    max_page_size: int = 100

    # Rankings
    rankings_limit: int = 10

    # User directory
    user_search_limit: int = 20

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )

    @property
    def CORS_ORIGINS(self) -> list:
        """CORS origins as a list"""
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
