# gsc_mcp/oauth/auth.py
import asyncio
import logging
from typing import AsyncGenerator, Awaitable, Callable

import httpx

from .models import Credential

logger = logging.getLogger(__name__)

CredentialRefresher = Callable[[Credential], Awaitable[Credential]]


class CredentialAuth(httpx.Auth):
    """
    httpx auth flow that signs requests with a bound credential.

    The credential is refreshed before a request when it has expired, and once
    more if the API answers 401. Concurrent requests share a single refresh.
    """

    def __init__(self, credential: Credential, refresher: CredentialRefresher):
        self._credential = credential
        self._refresher = refresher
        self._lock = asyncio.Lock()

    @property
    def credential(self) -> Credential:
        return self._credential

    async def _refresh(self, stale: Credential) -> Credential:
        async with self._lock:
            # Another request already replaced the stale credential.
            if self._credential is not stale:
                return self._credential
            logger.info("CredentialAuth: Refreshing access token.")
            self._credential = await self._refresher(stale)
            return self._credential

    async def _current(self) -> Credential:
        credential = self._credential
        if credential.is_expired() and credential.can_refresh:
            credential = await self._refresh(credential)
        return credential

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        credential = await self._current()
        request.headers["Authorization"] = f"Bearer {credential.access_token}"
        response = yield request

        if response.status_code == 401 and credential.can_refresh:
            logger.info(f"CredentialAuth: 401 from {request.url.host}, retrying once with a refreshed token.")
            credential = await self._refresh(credential)
            request.headers["Authorization"] = f"Bearer {credential.access_token}"
            yield request
