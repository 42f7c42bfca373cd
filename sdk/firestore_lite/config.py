"""
Configuration for firestore-lite.

Uses pydantic-settings for environment variable loading. Every field can be
set with a ``FIRESTORE_`` prefixed variable, e.g. ``FIRESTORE_PROJECT_ID``.
``FIRESTORE_EMULATOR_HOST`` points the client at a local emulator.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_HOST = "firestore.googleapis.com"
DEFAULT_DATABASE = "(default)"


class Settings(BaseSettings):
    """Client configuration loaded from environment."""

    project_id: str = Field(default="", description="Google Cloud project ID")
    database: str = Field(default=DEFAULT_DATABASE, description="Database name")

    # Connection
    host: str = Field(default=DEFAULT_HOST, description="REST API host")
    ssl: bool = Field(default=True, description="Use HTTPS")
    emulator_host: str | None = Field(
        default=None,
        description="Emulator host:port, overrides host and disables TLS",
    )
    timeout: float = Field(default=30.0, description="Request timeout seconds")

    # Transactions
    max_attempts: int = Field(default=5, description="Commit attempts in run_transaction")

    model_config = {"env_prefix": "FIRESTORE_"}

    @field_validator("max_attempts")
    @classmethod
    def _check_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_attempts must be >= 1")
        return value

    @property
    def effective_host(self) -> str:
        """Host requests are sent to."""
        return self.emulator_host or self.host

    @property
    def use_ssl(self) -> bool:
        """Whether requests use HTTPS."""
        return self.ssl and not self.emulator_host
