# gsc_mcp/oauth/__init__.py
# Google OAuth for the Search Console MCP server

# Token and credential models
from .models import TokenResponse, Credential

# Error types raised at the OAuth HTTP boundary and by the credential layer
from .errors import (
    OAuthError,
    InvalidRequestError,
    AuthenticationFailedError,
    SessionExpiredError,
    AuthenticationRequiredError,
    TokenRefreshError,
)

# Google authorization-code and refresh-token grants
from .google_oauth import GoogleOAuthClient, GOOGLE_AUTHORIZATION_URL, GOOGLE_TOKEN_URL

# httpx auth flow that refreshes expired credentials
from .auth import CredentialAuth

# Persistence of the process-wide credential
from .storage_interfaces import AbstractCredentialStore
from .credential_store import (
    CredentialCodec,
    FileCredentialStore,
    RedisCredentialStore,
    get_credential_store,
)

# Session-scoped and process-wide credential providers
from .provider import (
    CredentialProvider,
    SessionCredentialProvider,
    ProcessCredentialProvider,
    OperationsFactory,
    search_console_operations_factory,
)

__all__ = [
    "TokenResponse",
    "Credential",

    "OAuthError",
    "InvalidRequestError",
    "AuthenticationFailedError",
    "SessionExpiredError",
    "AuthenticationRequiredError",
    "TokenRefreshError",

    "GoogleOAuthClient",
    "GOOGLE_AUTHORIZATION_URL",
    "GOOGLE_TOKEN_URL",

    "CredentialAuth",

    "AbstractCredentialStore",
    "CredentialCodec",
    "FileCredentialStore",
    "RedisCredentialStore",
    "get_credential_store",

    "CredentialProvider",
    "SessionCredentialProvider",
    "ProcessCredentialProvider",
    "OperationsFactory",
    "search_console_operations_factory",
]
