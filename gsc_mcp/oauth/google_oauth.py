# gsc_mcp/oauth/google_oauth.py
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError as PydanticValidationError

from .errors import AuthenticationFailedError, TokenRefreshError
from .models import Credential, TokenResponse

logger = logging.getLogger(__name__)

GOOGLE_AUTHORIZATION_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"


class GoogleOAuthClient:
    """Authorization-code and refresh-token grants against Google's OAuth endpoints."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: List[str],
        http_client: Optional[httpx.AsyncClient] = None,
        authorization_url: str = GOOGLE_AUTHORIZATION_URL,
        token_url: str = GOOGLE_TOKEN_URL,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = list(scopes)
        self.authorization_endpoint = authorization_url
        self.token_endpoint = token_url
        self._http_client = http_client or httpx.AsyncClient(timeout=30.0)
        self._owns_http_client = http_client is None

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "access_type": "offline",  # Request refresh token
            "prompt": "consent",       # Force consent to ensure refresh token
        }
        if state:
            params["state"] = state
        return f"{self.authorization_endpoint}?{urlencode(params)}"

    async def _token_request(self, payload: Dict[str, Any]) -> TokenResponse:
        response = await self._http_client.post(
            self.token_endpoint,
            data=payload,
            headers={"Accept": "application/json"},
        )
        logger.info(
            f"Token endpoint responded to '{payload.get('grant_type')}' grant with status: {response.status_code}"
        )
        response.raise_for_status()
        return TokenResponse.model_validate(response.json())

    async def exchange_code(self, code: str) -> Credential:
        """Exchange an authorization code for a credential."""
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        try:
            token = await self._token_request(payload)
        except httpx.HTTPStatusError as e_http:
            logger.error(
                f"HTTP error during token exchange: {e_http.response.status_code} - {e_http.response.text!r}"
            )
            raise AuthenticationFailedError() from e_http
        except httpx.RequestError as e_req:
            logger.error(f"Token exchange request failed: {e_req}")
            raise AuthenticationFailedError() from e_req
        except (PydanticValidationError, ValueError) as e_parse:
            logger.error(f"Token exchange returned an unusable response: {e_parse}")
            raise AuthenticationFailedError() from e_parse

        credential = Credential.from_token_response(token)
        logger.info(
            f"Authorization code exchanged. Scopes: {credential.scopes}, "
            f"refresh token: {'SET' if credential.refresh_token else 'NOT_SET'}"
        )
        return credential

    async def refresh(self, credential: Credential) -> Credential:
        """Obtain a new access token using the credential's refresh token."""
        if not credential.refresh_token:
            raise TokenRefreshError("Credential has no refresh token.")

        payload = {
            "grant_type": "refresh_token",
            "refresh_token": credential.refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        try:
            token = await self._token_request(payload)
        except httpx.HTTPStatusError as e_http:
            logger.error(
                f"HTTP error during token refresh: {e_http.response.status_code} - {e_http.response.text!r}"
            )
            raise TokenRefreshError(f"Token refresh rejected ({e_http.response.status_code}).") from e_http
        except httpx.RequestError as e_req:
            logger.error(f"Token refresh request failed: {e_req}")
            raise TokenRefreshError(f"Token refresh failed: {e_req}") from e_req
        except (PydanticValidationError, ValueError) as e_parse:
            raise TokenRefreshError(f"Token refresh returned an unusable response: {e_parse}") from e_parse

        logger.info("Token refresh successful.")
        return Credential.from_token_response(token, previous=credential)

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()
