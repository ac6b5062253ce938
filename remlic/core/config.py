"""Configuration management for Remlic."""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .types import Environment

# Load environment variables from .env file
load_dotenv()

_SECRET_FIELDS = ("db_password", "email_password")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


def _env_environment() -> Environment:
    # Anything other than a known name (staging, dev, ...) runs as development
    value = os.getenv("REMLIC_ENV", os.getenv("NODE_ENV", "development")).lower()
    try:
        return Environment(value)
    except ValueError:
        return Environment.DEVELOPMENT


class GlobalConfig(BaseModel):
    """Global runtime configuration.

    Durations are kept in milliseconds, the unit operators set them in.
    """

    environment: Environment = Field(default_factory=_env_environment)

    # Database connection
    db_host: Optional[str] = Field(default_factory=lambda: os.getenv("DB_HOST"))
    db_port: int = Field(default_factory=lambda: int(os.getenv("DB_PORT", "5432")))
    db_user: Optional[str] = Field(default_factory=lambda: os.getenv("DB_USER"))
    db_password: Optional[str] = Field(
        default_factory=lambda: os.getenv("DB_PASSWORD")
    )
    db_name: Optional[str] = Field(default_factory=lambda: os.getenv("DB_NAME"))

    # Database pool limits and timeouts
    db_connection_limit: int = Field(
        default_factory=lambda: int(os.getenv("DB_CONNECTION_LIMIT", "10"))
    )
    db_min_connections: int = Field(
        default_factory=lambda: int(os.getenv("DB_MIN_CONNECTIONS", "1"))
    )
    db_connect_timeout: int = Field(
        default_factory=lambda: int(os.getenv("DB_CONNECT_TIMEOUT", "10000"))
    )
    db_idle_timeout: int = Field(
        default_factory=lambda: int(os.getenv("DB_IDLE_TIMEOUT", "300000"))
    )
    db_command_timeout: int = Field(
        default_factory=lambda: int(os.getenv("DB_COMMAND_TIMEOUT", "60000"))
    )

    # Database retry policy
    db_retry_attempts: int = Field(
        default_factory=lambda: int(os.getenv("DB_RETRY_ATTEMPTS", "3"))
    )
    db_retry_delay: int = Field(
        default_factory=lambda: int(os.getenv("DB_RETRY_DELAY", "1000"))
    )
    db_retry_max_delay: int = Field(
        default_factory=lambda: int(os.getenv("DB_RETRY_MAX_DELAY", "10000"))
    )
    db_retry_factor: float = Field(
        default_factory=lambda: float(os.getenv("DB_RETRY_FACTOR", "2"))
    )
    db_init_retry_attempts: int = Field(
        default_factory=lambda: int(os.getenv("DB_INIT_RETRY_ATTEMPTS", "5"))
    )
    db_init_retry_delay: int = Field(
        default_factory=lambda: int(os.getenv("DB_INIT_RETRY_DELAY", "2000"))
    )
    db_init_retry_max_delay: int = Field(
        default_factory=lambda: int(os.getenv("DB_INIT_RETRY_MAX_DELAY", "60000"))
    )

    # Mail transport
    email_host: Optional[str] = Field(default_factory=lambda: os.getenv("EMAIL_HOST"))
    email_port: int = Field(
        default_factory=lambda: int(os.getenv("EMAIL_PORT", "465"))
    )
    email_user: Optional[str] = Field(default_factory=lambda: os.getenv("EMAIL_USER"))
    email_password: Optional[str] = Field(
        default_factory=lambda: os.getenv("EMAIL_PASSWORD")
    )
    email_secure: bool = Field(default_factory=lambda: _env_bool("EMAIL_SECURE", "true"))
    email_tls_verify: bool = Field(
        default_factory=lambda: _env_bool("EMAIL_TLS_VERIFY", "true")
    )
    email_timeout: int = Field(
        default_factory=lambda: int(os.getenv("EMAIL_TIMEOUT", "30000"))
    )
    email_from_name: str = Field(
        default_factory=lambda: os.getenv("EMAIL_FROM_NAME", "Remlic")
    )
    email_from_address: Optional[str] = Field(
        default_factory=lambda: os.getenv("EMAIL_FROM_ADDRESS")
    )

    # Mail retry policy
    email_retry_attempts: int = Field(
        default_factory=lambda: int(os.getenv("EMAIL_RETRY_ATTEMPTS", "3"))
    )
    email_retry_delay: int = Field(
        default_factory=lambda: int(os.getenv("EMAIL_RETRY_DELAY", "5000"))
    )
    email_retry_max_delay: int = Field(
        default_factory=lambda: int(os.getenv("EMAIL_RETRY_MAX_DELAY", "30000"))
    )
    email_init_retry_attempts: int = Field(
        default_factory=lambda: int(os.getenv("EMAIL_INIT_RETRY_ATTEMPTS", "5"))
    )
    email_init_retry_delay: int = Field(
        default_factory=lambda: int(os.getenv("EMAIL_INIT_RETRY_DELAY", "2000"))
    )
    email_init_retry_max_delay: int = Field(
        default_factory=lambda: int(os.getenv("EMAIL_INIT_RETRY_MAX_DELAY", "60000"))
    )

    # Logging
    log_level: str = Field(
        default_factory=lambda: os.getenv("REMLIC_LOG_LEVEL", "INFO")
    )
    log_format: str = Field(
        default_factory=lambda: os.getenv(
            "REMLIC_LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    def redacted(self) -> Dict[str, Any]:
        """Settings as a dict with secrets masked, safe to print or log."""
        values = self.model_dump(mode="json")
        for name in _SECRET_FIELDS:
            if values.get(name):
                values[name] = "********"
        return values


# Global configuration instance
config = GlobalConfig()


def get_config() -> GlobalConfig:
    """Get global configuration instance."""
    return config


def reload_config() -> GlobalConfig:
    """Reload configuration from environment."""
    load_dotenv(override=True)
    global config
    config = GlobalConfig()
    return config
