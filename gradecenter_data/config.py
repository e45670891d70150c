"""
Configuration module for the GradeCenter data layer.

Provides centralized configuration for the database connection and session
behaviour.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional, Union, get_args, get_origin

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Deployment environments."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class DataConfig(BaseModel):
    """Configuration for the GradeCenter persistence context.

    Configuration Sources (in order of precedence):
        1. Programmatic settings (highest priority)
        2. Environment variables (GRADECENTER_ prefix)
        3. Default values (lowest priority)

    Example:
        >>> config = DataConfig(database_url="sqlite:///:memory:")
        >>> import os
        >>> os.environ['GRADECENTER_DATABASE_URL'] = 'postgresql://localhost/grades'
        >>> config = DataConfig.from_env()

    Environment Variables:
        - GRADECENTER_APPLICATION_NAME
        - GRADECENTER_ENVIRONMENT
        - GRADECENTER_DATABASE_URL
        - GRADECENTER_ASYNC_DATABASE_URL
        - GRADECENTER_ECHO_SQL
        - GRADECENTER_EXPIRE_ON_COMMIT
    """

    application_name: str = Field(
        "GradeCenter", description="Name of the application using the data layer"
    )
    environment: Environment = Field(
        Environment.PRODUCTION, description="Deployment environment"
    )

    # Database settings
    database_url: str = Field(
        "sqlite:///gradecenter.db", description="SQLAlchemy URL of the database"
    )
    async_database_url: Optional[str] = Field(
        None, description="SQLAlchemy URL using an async driver"
    )
    echo_sql: bool = Field(False, description="Log every SQL statement issued")
    expire_on_commit: bool = Field(
        True, description="Expire loaded entities after each commit"
    )

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: Any) -> Any:
        """Accept environment names in any case."""
        if isinstance(v, str):
            return v.lower()
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Ensure a database URL is given."""
        if not v or not v.strip():
            raise ValueError("Database URL must not be empty")
        return v.strip()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump()

    def get_engine_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``create_engine``."""
        if self.echo_sql and self.environment == Environment.PRODUCTION:
            logger.warning("SQL echo is enabled in production")
        return {"echo": self.echo_sql}

    @classmethod
    def from_env(cls, prefix: str = "GRADECENTER_") -> "DataConfig":
        """
        Load configuration from environment variables.

        Args:
            prefix: Prefix for environment variables

        Returns:
            Configuration instance
        """
        import os

        config_dict: Dict[str, Any] = {}

        for field_name, field_info in cls.model_fields.items():
            env_var = f"{prefix}{field_name.upper()}"
            if env_var not in os.environ:
                continue
            value = os.environ[env_var]

            field_type = field_info.annotation

            # Handle Optional types
            if get_origin(field_type) is Union:
                args = get_args(field_type)
                field_type = next((arg for arg in args if arg is not type(None)), str)

            if field_type == bool:
                config_dict[field_name] = value.lower() in ("true", "1", "yes", "on")
            else:
                config_dict[field_name] = value

        return cls.model_validate(config_dict)


# Global configuration instance
_config: Optional[DataConfig] = None


def get_config() -> DataConfig:
    """
    Get the global configuration instance.

    Returns:
        Global configuration
    """
    global _config

    if _config is None:
        _config = DataConfig.from_env()

    return _config


def set_config(config: Optional[DataConfig]) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Configuration to set, or None to reload from the environment
    """
    global _config
    _config = config


def configure(**kwargs: Any) -> DataConfig:
    """
    Configure the data layer with keyword arguments.

    Args:
        **kwargs: Configuration parameters

    Returns:
        Updated configuration
    """
    global _config

    if _config is None:
        _config = DataConfig(**kwargs)
    else:
        config_dict = _config.to_dict()
        config_dict.update(kwargs)
        _config = DataConfig(**config_dict)

    return _config
