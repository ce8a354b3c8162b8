"""
Configuration Module
Version: 1.0.0

Centralized configuration with validation.
Secrets (identity API key) come from the environment or .env, never from code.
"""
import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("configuration")


class Settings(BaseSettings):

    # =========================================================================
    # APPLICATION
    # =========================================================================

    APP_ENV: str = Field(default="development")
    APP_NAME: str = Field(default="vehicle-marketplace-client")
    APP_VERSION: str = Field(default="1.0.0")

    # =========================================================================
    # MARKETPLACE API
    # =========================================================================
    MARKETPLACE_API_URL: str = Field(
        default="http://localhost:5000",
        description="Base origin of the marketplace REST API"
    )
    HTTP_TIMEOUT: float = Field(default=30.0)
    HTTP_CONNECT_TIMEOUT: float = Field(default=10.0)

    # =========================================================================
    # IDENTITY PROVIDER (Firebase Identity Toolkit REST)
    # =========================================================================
    IDENTITY_API_KEY: Optional[str] = Field(default=None, description="Web API key of the identity project")
    IDENTITY_API_URL: str = Field(default="https://identitytoolkit.googleapis.com/v1")
    IDENTITY_TOKEN_URL: str = Field(default="https://securetoken.googleapis.com/v1/token")
    IDP_REQUEST_URI: str = Field(default="http://localhost")
    TOKEN_REFRESH_BUFFER_SECONDS: int = Field(default=60)

    # =========================================================================
    # LOGGING
    # =========================================================================
    LOG_LEVEL: str = Field(default="INFO")
    LOG_JSON: Optional[bool] = Field(default=None, description="None = JSON only in production")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def DEBUG(self) -> bool:
        return self.APP_ENV == "development"

    @property
    def json_logs(self) -> bool:
        if self.LOG_JSON is None:
            return self.is_production
        return self.LOG_JSON

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator('MARKETPLACE_API_URL', 'IDENTITY_API_URL', 'IDENTITY_TOKEN_URL')
    @classmethod
    def validate_url(cls, v: str) -> str:
        if v and not v.startswith(('http://', 'https://')):
            raise ValueError(f"URL must start with http or https: {v}")
        return v.rstrip('/') if v else v

    @field_validator('HTTP_TIMEOUT', 'HTTP_CONNECT_TIMEOUT')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Timeout must be positive: {v}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Fails loudly if an environment override does not validate.
    """
    try:
        return Settings()
    except Exception as e:
        logger.error(f"Could not load settings: {e}")
        raise
