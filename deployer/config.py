"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from deployer.core.exceptions import ConfigurationError

# Load .env file and override existing env vars
load_dotenv(override=True)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Credentials default to empty strings so that loading never fails; the
    ``require_*`` accessors raise ``ConfigurationError`` at the point of use.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # GitHub
    github_token: str = Field(default="")
    github_org: str = "getfastform"
    github_api_url: str = "https://api.github.com"

    # Vercel
    vercel_token: str = Field(default="")
    vercel_team_id: str | None = None
    vercel_api_url: str = "https://api.vercel.com"

    # v0 code generation
    v0_api_key: str = Field(default="")
    v0_api_url: str = "https://api.v0.dev/v1"

    # Deployment polling
    deployment_poll_interval_ms: int = Field(default=5000, gt=0)
    staging_timeout_ms: int = Field(default=60000, gt=0)
    production_timeout_ms: int = Field(default=120000, gt=0)

    # Outbound HTTP
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    generation_timeout_seconds: float = Field(default=600.0, gt=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    log_directory: str = "logs"
    log_file_name: str = "deployer.log"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    def require_github_token(self) -> str:
        if not self.github_token:
            raise ConfigurationError("GITHUB_TOKEN")
        return self.github_token

    def require_vercel_token(self) -> str:
        if not self.vercel_token:
            raise ConfigurationError("VERCEL_TOKEN")
        return self.vercel_token

    def require_v0_api_key(self) -> str:
        if not self.v0_api_key:
            raise ConfigurationError("V0_API_KEY")
        return self.v0_api_key


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
