"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Configuration management for XRAYLINK.

This module provides a central location for all configuration settings in XRAYLINK.
It handles environment variables, default values, and validation of configuration
parameters for the Xray Cloud integration engine.
"""

import logging
import os
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel, Field, field_validator

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://xray.cloud.getxray.app"
DEFAULT_CONFIG_PATH = Path("config") / "xray-config.json"


class BaseConfig(BaseModel):
    """Base configuration class with common functionality."""

    # Class variable to store environment variable prefixes
    ENV_PREFIX: ClassVar[str] = "XRAYLINK_"

    @classmethod
    def from_env(cls, **overrides) -> "BaseConfig":
        """
        Create a configuration instance from environment variables.

        Args:
        ----
            **overrides: Key-value pairs that override environment variables

        Returns:
        -------
            An instance of the configuration class

        """
        raise NotImplementedError("Subclasses must implement from_env method")

    @classmethod
    def get_env_var(cls, key: str, default: Any = None) -> Any:
        """
        Get an environment variable with the class prefix.

        Args:
        ----
            key: Key name without prefix
            default: Default value if environment variable is not found

        Returns:
        -------
            The environment variable value or default

        """
        env_key = f"{cls.ENV_PREFIX}{key.upper()}"
        return os.environ.get(env_key, default)


class LoggingConfig(BaseConfig):
    """Configuration for logging settings."""

    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    use_rich: bool = Field(
        default=True,
        description="Whether to use rich for console logging",
    )
    log_file: str | None = Field(
        default=None,
        description="Path to the log file (None for console-only logging)",
    )
    json_format: bool = Field(
        default=False,
        description="Whether to use JSON format for logs",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, value):
        """Validate that the log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        value = value.upper()
        if value not in valid_levels:
            logger.warning(f"Invalid log level '{value}', defaulting to INFO")
            return "INFO"
        return value

    @classmethod
    def from_env(cls, **overrides) -> "LoggingConfig":
        """Create a logging configuration from environment variables."""
        config = {
            "level": cls.get_env_var("LOG_LEVEL", "INFO"),
            "use_rich": cls.get_env_var("LOG_USE_RICH", "true").lower() == "true",
            "log_file": cls.get_env_var("LOG_FILE", None),
            "json_format": cls.get_env_var("LOG_JSON", "false").lower() == "true",
        }

        # Override with any directly provided values
        config.update(overrides)

        return cls(**config)

    def get_log_level_int(self) -> int:
        """Get the numeric logging level."""
        return getattr(logging, self.level)

    def configure_logging(self, debug: bool = False) -> None:
        """
        Configure logging based on the settings.

        Args:
        ----
            debug: Whether to force debug mode

        """
        from xraylink.core.logging import configure_logging as configure_contextual_logging

        configure_contextual_logging(
            level=logging.DEBUG if debug else self.get_log_level_int(),
            log_file=self.log_file,
            json_format=self.json_format,
            use_rich=self.use_rich,
        )


class XrayConfig(BaseConfig):
    """Configuration for the Xray Cloud endpoints and engine timing."""

    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Base URL for the Xray Cloud API",
    )
    auth_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for the credential exchange",
        gt=0,
    )
    graphql_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for GraphQL queries and mutations",
        gt=0,
    )
    import_timeout: float = Field(
        default=60.0,
        description="Timeout in seconds for the bulk import submission",
        gt=0,
    )
    status_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for a single job status request",
        gt=0,
    )
    poll_max_attempts: int = Field(
        default=30,
        description="Maximum number of job status requests before giving up",
        gt=0,
    )
    poll_interval: float = Field(
        default=2.0,
        description="Seconds to wait between job status requests",
        ge=0,
    )
    token_validity_minutes: int = Field(
        default=24 * 60,
        description="Lifetime of an Xray token as enforced by the remote API",
        gt=0,
    )
    token_refresh_buffer_minutes: int = Field(
        default=30,
        description="Refresh tokens this many minutes before the remote API would reject them",
        ge=0,
    )
    config_path: Path = Field(
        default=DEFAULT_CONFIG_PATH,
        description="Location of the persisted credentials and token file",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value):
        """Validate base URL format."""
        if not value:
            raise ValueError("base_url must be provided")

        # Ensure base URL has proper prefix, adding https:// if missing
        if not value.startswith(("http://", "https://")):
            value = f"https://{value}"
        return value.rstrip("/")

    @field_validator("token_refresh_buffer_minutes")
    @classmethod
    def validate_refresh_buffer(cls, value, info):
        """The refresh buffer must leave a positive usable window."""
        validity = info.data.get("token_validity_minutes")
        if validity is not None and value >= validity:
            raise ValueError("token_refresh_buffer_minutes must be smaller than the validity window")
        return value

    @classmethod
    def from_env(cls, **overrides) -> "XrayConfig":
        """Create an Xray configuration from environment variables."""
        config = {
            "base_url": cls.get_env_var("BASE_URL", DEFAULT_BASE_URL),
            "auth_timeout": float(cls.get_env_var("AUTH_TIMEOUT", "30.0")),
            "graphql_timeout": float(cls.get_env_var("GRAPHQL_TIMEOUT", "30.0")),
            "import_timeout": float(cls.get_env_var("IMPORT_TIMEOUT", "60.0")),
            "status_timeout": float(cls.get_env_var("STATUS_TIMEOUT", "30.0")),
            "poll_max_attempts": int(cls.get_env_var("POLL_MAX_ATTEMPTS", "30")),
            "poll_interval": float(cls.get_env_var("POLL_INTERVAL", "2.0")),
            "token_validity_minutes": int(cls.get_env_var("TOKEN_VALIDITY_MINUTES", "1440")),
            "token_refresh_buffer_minutes": int(
                cls.get_env_var("TOKEN_REFRESH_BUFFER_MINUTES", "30")
            ),
            "config_path": Path(cls.get_env_var("CONFIG_PATH", str(DEFAULT_CONFIG_PATH))),
        }

        # Override with any directly provided values
        config.update(overrides)

        return cls(**config)


class AppConfig(BaseConfig):
    """Main application configuration that aggregates all other configurations."""

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )
    xray: XrayConfig = Field(
        default_factory=XrayConfig,
        description="Xray Cloud configuration",
    )
    debug: bool = Field(
        default=False,
        description="Debug mode flag",
    )
    app_name: str = Field(
        default="XRAYLINK",
        description="Application name",
    )
    app_version: str = Field(
        default="0.0.0",
        description="Application version",
    )

    @classmethod
    def from_env(cls, **overrides) -> "AppConfig":
        """Create an application configuration from environment variables."""
        config = {
            "logging": LoggingConfig.from_env(),
            "xray": XrayConfig.from_env(),
            "debug": cls.get_env_var("DEBUG", "false").lower() == "true",
            "app_name": cls.get_env_var("APP_NAME", "XRAYLINK"),
            "app_version": cls.get_env_var("APP_VERSION", "0.0.0"),
        }

        for key, value in overrides.items():
            if key in ("logging", "xray") and isinstance(value, dict):
                # Nested configs accept either raw dicts or instantiated objects
                config_class = LoggingConfig if key == "logging" else XrayConfig
                config[key] = config_class(**value)
            elif value is not None:
                config[key] = value

        return cls(**config)

    def configure_logging(self) -> None:
        """Configure logging based on the settings."""
        self.logging.configure_logging(debug=self.debug)


# Global app configuration
_app_config: AppConfig | None = None


def get_app_config() -> AppConfig:
    """
    Get the global application configuration.

    Returns
    -------
        The application configuration instance

    """
    global _app_config
    if _app_config is None:
        _app_config = AppConfig.from_env()
    return _app_config


def init_app_config(config: AppConfig | None = None, **kwargs) -> AppConfig:
    """
    Initialize the global application configuration.

    Args:
    ----
        config: An existing AppConfig instance
        **kwargs: Key-value pairs for creating a new AppConfig

    Returns:
    -------
        The application configuration instance

    """
    global _app_config
    _app_config = config if config is not None else AppConfig.from_env(**kwargs)
    return _app_config
