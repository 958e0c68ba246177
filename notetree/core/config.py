"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


class Settings(BaseSettings):
    """
    Application settings with validation.

    Every value can be overridden through the environment (case-insensitive)
    or a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./notetree.db",
        description="Database connection URL"
    )
    # How long a writer waits on SQLite's database lock before giving up.
    sqlite_busy_timeout_ms: int = Field(
        default=5000,
        ge=0,
        description="SQLite busy timeout in milliseconds (ignored for other databases)"
    )

    # Listing
    list_default_limit: int = Field(
        default=50,
        ge=1,
        description="Default page size when listing documents"
    )
    trash_default_limit: int = Field(
        default=200,
        ge=1,
        description="Default page size when listing the trash"
    )
    list_max_limit: int = Field(
        default=500,
        ge=1,
        description="Upper clamp for any requested page size"
    )

    # Server
    host: str = Field(
        default="127.0.0.1",
        description="Bind address for python -m notetree"
    )
    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Bind port for python -m notetree"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    def get_cors_origins(self) -> List[str]:
        """
        Get CORS origins as a list.

        Parses comma-separated string and validates no wildcards.
        """
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ('json', 'text'):
            raise ValueError("Invalid log format. Must be 'json' or 'text'")
        return v_lower

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        Raises:
            ConfigurationError: If production config points at development defaults.
        """
        errors: list[str] = []

        if self.database_url.startswith("sqlite:///./"):
            errors.append(
                "DATABASE_URL points at a relative SQLite file. "
                "Use an absolute path or a server database in production."
            )

        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is invalid:\n  - " + "\n  - ".join(errors)
            )


# Global settings instance
settings = Settings()
