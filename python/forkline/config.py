"""Application settings loaded from environment variables.

Environment Configuration:
    FORKLINE_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: SQLAlchemy connection string (required)
    LOG_JSON: Emit JSON logs (default true); console logs otherwise
    API_HOST / API_PORT: Bind address of the uvicorn launcher (127.0.0.1:8000)

Story Configuration:
    EXPORT_FORMAT_VERSION: Version string written into export bundles
    DEFAULT_MAX_DEPTH: max_depth assigned when a story or bundle has none
    DUPLICATE_TITLE_SUFFIX: Appended to the title of duplicated stories

Analytics Configuration:
    ANALYTICS_TOP_PATHS: Number of paths kept in the popularity table

Note: PostgreSQL (psycopg) is the production database. SQLite URLs are
accepted for local runs and tests.
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

MAX_DEPTH_CEILING = 20
TOP_PATHS_CEILING = 100


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - DATABASE_URL is always required
    - DEFAULT_MAX_DEPTH must be between 1 and 20
    - ANALYTICS_TOP_PATHS must be between 1 and 100
    - EXPORT_FORMAT_VERSION must not be blank
    - API_PORT must be a TCP port (1-65535)
    """

    forkline_env: Environment = Field(default=Environment.LOCAL, alias="FORKLINE_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    log_json: bool = Field(default=True, alias="LOG_JSON")
    api_host: str = Field(default="127.0.0.1", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")

    # Story settings
    export_format_version: str = Field(default="1.0", alias="EXPORT_FORMAT_VERSION")
    default_max_depth: int = Field(default=5, alias="DEFAULT_MAX_DEPTH")
    duplicate_title_suffix: str = Field(default=" (Copy)", alias="DUPLICATE_TITLE_SUFFIX")

    # Analytics settings
    analytics_top_paths: int = Field(default=10, alias="ANALYTICS_TOP_PATHS")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_ranges(self) -> "Settings":
        """Reject values the tree and analytics services cannot honour."""
        if not 1 <= self.default_max_depth <= MAX_DEPTH_CEILING:
            raise ValueError(
                f"DEFAULT_MAX_DEPTH must be between 1 and {MAX_DEPTH_CEILING}, "
                f"got {self.default_max_depth}"
            )

        if not 1 <= self.analytics_top_paths <= TOP_PATHS_CEILING:
            raise ValueError(
                f"ANALYTICS_TOP_PATHS must be between 1 and {TOP_PATHS_CEILING}, "
                f"got {self.analytics_top_paths}"
            )

        if not self.export_format_version.strip():
            raise ValueError("EXPORT_FORMAT_VERSION must not be blank")

        if not 1 <= self.api_port <= 65535:
            raise ValueError(f"API_PORT must be between 1 and 65535, got {self.api_port}")

        return self

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite."""
        return self.database_url.startswith("sqlite")

    @property
    def reload_on_change(self) -> bool:
        """Whether the launcher watches source files (local only)."""
        return self.forkline_env == Environment.LOCAL


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
