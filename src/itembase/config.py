"""Configuration management with pydantic-settings for the itembase SDK.

- Environment variables with the ITEMBASE_ prefix
- Automatic .env file loading
- SecretStr for the OAuth2 client secret
- Frozen config (immutable after load, safe to share between threads)
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

__all__ = [
    "PRODUCTION_ENDPOINTS",
    "SANDBOX_ENDPOINTS",
    "Endpoints",
    "ItembaseConfig",
    "get_config",
    "reset_config",
]


class Endpoints:
    """URL set for one itembase environment."""

    def __init__(self, accounts: str, me: str, api_root: str):
        self.auth_url = accounts + "/auth"
        self.token_url = accounts + "/token"
        self.me_url = me
        self.api_root = api_root

    def __repr__(self) -> str:
        return f"Endpoints(api_root={self.api_root!r})"


PRODUCTION_ENDPOINTS = Endpoints(
    accounts="https://accounts.itembase.com/oauth/v2",
    me="https://users.itembase.com/v1/me",
    api_root="https://api.itembase.io/v1",
)

SANDBOX_ENDPOINTS = Endpoints(
    accounts="http://sandbox.accounts.itembase.io/oauth/v2",
    me="http://sandbox.users.itembase.io/v1/me",
    api_root="http://sandbox.api.itembase.io/v1",
)


class ItembaseConfig(BaseSettings):
    """Configuration for an itembase client.

    Loads from (in order of precedence):
    1. Keyword arguments
    2. Environment variables (ITEMBASE_ prefix)
    3. .env file in the working directory
    4. Default values

    Attributes:
        client_id: OAuth2 application ID of the registered itembase app
        client_secret: OAuth2 application secret
        scopes: Requested OAuth2 scopes
        redirect_url: Redirect URL registered for the application
        production: Use production endpoints (False = sandbox)
        connect_timeout: Connection establishment timeout in seconds
        read_timeout: Read/write timeout in seconds
        max_retries: Transport retries on timeouts and connection failures
        backoff_base: Base delay for exponential backoff (seconds)
        backoff_cap: Maximum delay for a single backoff (seconds)
        expiry_leeway_seconds: Treat tokens expiring within this window as expired
        token_store_path: JSON file used by FileTokenStore when set
        console_prompt: Fall back to a terminal prompt for the authorization code
        log_level: Logging level
        log_format: json (production) or text (development)
    """

    model_config = SettingsConfigDict(
        env_prefix="ITEMBASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        validate_default=True,
        frozen=True,
        extra="ignore",
    )

    client_id: str = Field(default="", description="OAuth2 client ID")

    client_secret: SecretStr = Field(
        default=SecretStr(""), description="OAuth2 client secret (stored securely)"
    )

    scopes: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="OAuth2 scopes, e.g. ['user.minimal', 'connection.transaction']",
    )

    redirect_url: str = Field(default="", description="OAuth2 redirect URL")

    production: bool = Field(
        default=False, description="Use production endpoints instead of the sandbox"
    )

    connect_timeout: float = Field(default=120.0, gt=0, le=600)
    read_timeout: float = Field(default=120.0, gt=0, le=600)

    max_retries: int = Field(
        default=3,
        ge=0,
        le=60,
        description="Retries for timeouts and connection failures (HTTP errors are not retried)",
    )
    backoff_base: float = Field(default=1.0, ge=0.0, le=60.0)
    backoff_cap: float = Field(default=15.0, ge=0.0, le=300.0)

    expiry_leeway_seconds: int = Field(
        default=10,
        ge=0,
        le=3600,
        description="Tokens expiring within this many seconds are refreshed",
    )

    token_store_path: Path | None = Field(
        default=None, description="Token file for the file-based token store"
    )

    console_prompt: bool = Field(
        default=False,
        description="Read the authorization code from the terminal when no permission handler is set",
    )

    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )

    log_format: str = Field(default="json", pattern="^(json|text)$")

    @field_validator("scopes", mode="before")
    @classmethod
    def split_scopes(cls, value):
        """Accept a comma or space separated string (ITEMBASE_SCOPES=a,b)."""
        if isinstance(value, str):
            return [s for s in value.replace(",", " ").split() if s]
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value):
        if isinstance(value, str):
            return value.upper()
        return value

    @model_validator(mode="after")
    def check_backoff(self) -> "ItembaseConfig":
        if self.backoff_cap < self.backoff_base:
            raise ValueError("backoff_cap must be >= backoff_base")
        return self

    @property
    def endpoints(self) -> Endpoints:
        return PRODUCTION_ENDPOINTS if self.production else SANDBOX_ENDPOINTS


@lru_cache(maxsize=1)
def get_config() -> ItembaseConfig:
    """Get global configuration singleton.

    First call loads from environment + .env file, subsequent calls return the
    cached instance.

    Raises:
        ValidationError: If configuration values are invalid.
    """
    return ItembaseConfig()


def reset_config() -> None:
    """Reset configuration singleton. Only intended for tests."""
    get_config.cache_clear()
