"""Configuration management for SQL Advisor."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConnectionNotConfiguredError(Exception):
    """Raised when no database connection string is configured."""

    def __init__(self):
        self.message = (
            "No database connection string configured.\n"
            "  Pass --connection-string, or set SQL_ADVISOR_CONNECTION_STRING\n"
            "  in the environment or in a .env file in the project root."
        )
        super().__init__(self.message)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SQL_ADVISOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    connection_string: str = Field(
        default="",
        description="ODBC connection string for the target SQL Server",
    )
    command_timeout_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Per round-trip timeout in seconds (0 disables it)",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Analysis defaults
    benchmark_iterations: int = Field(
        default=3, ge=1, description="Measured runs per benchmark"
    )
    warmup_iterations: int = Field(
        default=1, ge=0, description="Unmeasured warmup runs per benchmark"
    )
    max_recommendations: int = Field(
        default=10, ge=1, description="Maximum suggestions kept per analysis"
    )
    sql_dialect: str = Field(
        default="tsql",
        description="sqlglot dialect used to validate and format rewrites",
    )

    def has_connection_string(self) -> bool:
        """Check if a connection string is configured (does not raise)."""
        return bool(self.connection_string and self.connection_string.strip())

    def require_connection_string(self) -> str:
        """
        Get the connection string or raise if it is not configured.

        Returns:
            The connection string

        Raises:
            ConnectionNotConfiguredError: If no connection string is set
        """
        if not self.has_connection_string():
            raise ConnectionNotConfiguredError()
        return self.connection_string

    def default_options(self):
        """Build AnalysisOptions seeded from these settings."""
        from sql_advisor.orchestrator.models import AnalysisOptions

        return AnalysisOptions(
            max_execution_time_ms=int(self.command_timeout_seconds * 1000),
            max_recommendations=self.max_recommendations,
            comparison_iterations=self.benchmark_iterations,
            comparison_warmup=self.warmup_iterations,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
