# gsc_mcp/oauth/models.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, timedelta, timezone


class TokenResponse(BaseModel):
    """Token endpoint response as per RFC 6749."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    scope: Optional[str] = None
    id_token: Optional[str] = None


class Credential(BaseModel):
    """Authorized access to the Search Console API for one Google account."""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_at: Optional[datetime] = None
    scopes: List[str] = Field(default_factory=list)
    obtained_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_token_response(
        cls, token: TokenResponse, previous: Optional["Credential"] = None
    ) -> "Credential":
        """
        Build a credential from a token endpoint response.

        Refresh responses usually omit the refresh token and scope; those are
        carried over from the previous credential.
        """
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=token.expires_in) if token.expires_in is not None else None
        if token.scope:
            scopes = sorted(set(s.strip() for s in token.scope.replace(',', ' ').split() if s.strip()))
        else:
            scopes = list(previous.scopes) if previous else []
        return cls(
            access_token=token.access_token,
            refresh_token=token.refresh_token or (previous.refresh_token if previous else None),
            token_type=token.token_type or "Bearer",
            expires_at=expires_at,
            scopes=scopes,
            obtained_at=now,
        )

    def is_expired(self, leeway_seconds: int = 30) -> bool:
        # No expiry information means the token is used until the API rejects it.
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= datetime.now(timezone.utc) + timedelta(seconds=leeway_seconds)

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)
