# gsc_mcp/oauth/errors.py
from fastapi import HTTPException, status
from typing import Optional


class OAuthError(HTTPException):
    """Base class for errors surfaced at the OAuth HTTP endpoints."""

    def __init__(
        self,
        status_code: int,
        error: str,
        error_description: str | None = None,
    ):
        self.error = error
        self.error_description = error_description

        detail = {"error": error}
        if error_description:
            detail["error_description"] = error_description

        super().__init__(status_code=status_code, detail=detail)


class InvalidRequestError(OAuthError):
    """
    The request is missing a required parameter or is otherwise malformed.
    (RFC 6749 - Section 5.2)
    """

    def __init__(self, error_description: str | None = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="invalid_request",
            error_description=error_description,
        )


class AuthenticationFailedError(OAuthError):
    """
    The authorization code exchange failed. Not retried; the user has to
    start the consent flow again from /auth.
    """

    def __init__(self, error_description: str | None = "Authentication failed."):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="authentication_failed",
            error_description=error_description,
        )


class SessionExpiredError(OAuthError):
    """The callback's state names a session that is no longer live."""

    def __init__(
        self,
        session_id: Optional[str] = None,
        error_description: str | None = "Session expired or not found. Please try connecting again.",
    ):
        self.session_id = session_id
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="session_not_found",
            error_description=error_description,
        )


class AuthenticationRequiredError(Exception):
    """
    Signals that no credential is available for the caller.
    Carries the URL a human must visit to grant access.
    """

    def __init__(
        self,
        authorization_url: str,
        detail_message: Optional[str] = None,
    ):
        self.authorization_url = authorization_url
        self.detail_message = detail_message or (
            f"Authentication required. Please visit {authorization_url} to authenticate."
        )

        self.detail = {
            "error": "authentication_required",
            "message": self.detail_message,
            "authorization_url": authorization_url,
        }

        super().__init__(self.detail_message)


class TokenRefreshError(Exception):
    """A refresh-token grant was rejected or could not be performed."""
