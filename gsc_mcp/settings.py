# gsc_mcp/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Literal, Optional
import logging
from pathlib import Path

logger = logging.getLogger(__name__)
if not logging.getLogger().hasHandlers():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s SETTINGS.PY - [%(levelname)s] - %(message)s'
    )

# settings.py lives at <project>/gsc_mcp/settings.py
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
DOTENV_PATH = PROJECT_ROOT / ".env"

if DOTENV_PATH.exists():
    logger.info(f"SETTINGS.PY: .env file FOUND at: {DOTENV_PATH}")
else:
    logger.warning(
        f"SETTINGS.PY: .env file NOT FOUND at: {DOTENV_PATH}. "
        "Will rely on OS env vars or defaults."
    )


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing. Fatal at startup."""


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    app_name: str = "Google Search Console MCP Server"
    server_version: str = "0.1.0"
    debug_mode: bool = False
    log_level: str = "INFO"

    # Google OAuth client. Both are required to serve requests.
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    redirect_uri: str = "http://localhost:3000/oauth2callback"
    oauth_scopes: List[str] = Field(
        default_factory=lambda: ["https://www.googleapis.com/auth/webmasters"],
        description="Scopes requested during consent. submit_sitemap needs the read/write scope."
    )

    # HTTP listener
    host: str = "0.0.0.0"
    port: int = 3000
    public_base_url: Optional[str] = Field(
        default=None,
        description="Base URL used in authentication links. Derived from redirect_uri when unset."
    )
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])

    # "session": one in-memory credential per SSE connection.
    # "process": one credential shared by every connection, persisted across restarts.
    credential_mode: Literal["session", "process"] = "session"
    credential_store_backend: Literal["file", "redis"] = "file"
    token_storage_dir: str = "./data"
    token_encryption_key: Optional[str] = Field(
        default=None,
        description="Fernet key used to encrypt the persisted credential at rest."
    )

    # Redis configuration (credential_store_backend == "redis")
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None
    redis_ssl: bool = False
    redis_credential_key: str = "gsc_mcp:credential"

    # Unauthenticated sessions are otherwise kept until their stream closes.
    session_idle_timeout_seconds: Optional[int] = None
    session_sweep_interval_seconds: int = 60

    google_api_timeout_seconds: float = 30.0

    model_config = SettingsConfigDict(
        env_file=DOTENV_PATH if DOTENV_PATH.exists() else None,
        extra="ignore",
        env_file_encoding='utf-8'
    )

    @property
    def auth_base_url(self) -> str:
        """Base URL that hosts /auth, derived from redirect_uri like the callback route."""
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        return self.redirect_uri.replace("/oauth2callback", "").rstrip("/")

    def require_oauth_client(self) -> None:
        """Fail fast when the Google OAuth client is not configured."""
        missing = [
            name for name, value in (
                ("GOOGLE_CLIENT_ID", self.google_client_id),
                ("GOOGLE_CLIENT_SECRET", self.google_client_secret),
            ) if not value
        ]
        if missing:
            raise ConfigurationError(
                f"{' and '.join(missing)} must be set in the environment or .env file"
            )


settings = Settings()

logger.info(
    f"SETTINGS.PY: credential_mode='{settings.credential_mode}', "
    f"credential_store_backend='{settings.credential_store_backend}', "
    f"redirect_uri='{settings.redirect_uri}'"
)
logger.info(
    f"SETTINGS.PY: google_client_id: {'********' if settings.google_client_id else 'None'}, "
    f"google_client_secret: {'********' if settings.google_client_secret else 'None'}, "
    f"token_encryption_key: {'********' if settings.token_encryption_key else 'None'}"
)
