# tests/conftest.py
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

import httpx
import pytest

from gsc_mcp.oauth.google_oauth import GOOGLE_TOKEN_URL, GoogleOAuthClient
from gsc_mcp.oauth.models import Credential
from gsc_mcp.oauth.storage_interfaces import AbstractCredentialStore
from gsc_mcp.settings import Settings

logger = logging.getLogger("gsc_mcp.tests")

TEST_BASE_URL = "http://testserver"
GOOD_CODE = "good-code"
BAD_CODE = "bad-code"


class StubOperations:
    """Records every call; returns canned results or raises `fail_with`."""

    def __init__(self, credential: Optional[Credential] = None, fail_with: Optional[Exception] = None):
        self.credential = credential
        self.fail_with = fail_with
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.sites: List[Dict[str, Any]] = []
        self.rows: List[Dict[str, Any]] = []
        self.closed = False

    async def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        logger.debug(f"StubOperations.{name}{args}")
        if self.fail_with is not None:
            raise self.fail_with

    async def list_sites(self):
        await self._record("list_sites")
        return self.sites

    async def get_search_analytics(self, site_url, start_date, end_date, dimensions, dimension_filter_groups=None):
        await self._record("get_search_analytics", site_url, start_date, end_date, dimensions, dimension_filter_groups)
        return self.rows

    async def inspect_url(self, site_url, inspection_url):
        await self._record("inspect_url", site_url, inspection_url)
        return {"inspectionResult": {"indexStatusResult": {"verdict": "PASS"}}}

    async def list_sitemaps(self, site_url):
        await self._record("list_sitemaps", site_url)
        return []

    async def submit_sitemap(self, site_url, feedpath):
        await self._record("submit_sitemap", site_url, feedpath)
        return {"success": True, "message": f"Sitemap submitted: {feedpath}"}

    async def get_top_queries(self, site_url, start_date, end_date, limit=10):
        await self._record("get_top_queries", site_url, start_date, end_date, limit)
        return self.rows

    async def aclose(self):
        self.closed = True


class StubOperationsFactory:
    """Operations factory that remembers every operation set it built."""

    def __init__(self):
        self.built: List[StubOperations] = []

    def __call__(self, credential: Credential, refresher: Callable) -> StubOperations:
        operations = StubOperations(credential)
        self.built.append(operations)
        return operations


class MemoryCredentialStore(AbstractCredentialStore):
    def __init__(self, credential: Optional[Credential] = None):
        self.credential = credential
        self.load_count = 0
        self.save_count = 0

    async def load_credential(self) -> Optional[Credential]:
        self.load_count += 1
        return self.credential

    async def save_credential(self, credential: Credential) -> None:
        self.save_count += 1
        self.credential = credential

    async def delete_credential(self) -> None:
        self.credential = None

    async def initialize(self) -> None:
        pass

    async def teardown(self) -> None:
        pass


def google_token_handler(request: httpx.Request) -> httpx.Response:
    """Stands in for Google's token endpoint."""
    assert str(request.url) == GOOGLE_TOKEN_URL
    form = {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
    grant_type = form.get("grant_type")
    logger.debug(f"Token endpoint stub: grant_type={grant_type}")

    if grant_type == "authorization_code" and form.get("code") == GOOD_CODE:
        return httpx.Response(200, json={
            "access_token": "access-1",
            "refresh_token": "refresh-1",
            "expires_in": 3599,
            "scope": "https://www.googleapis.com/auth/webmasters",
            "token_type": "Bearer",
        })
    if grant_type == "refresh_token" and form.get("refresh_token") == "refresh-1":
        return httpx.Response(200, json={
            "access_token": "access-2",
            "expires_in": 3599,
            "token_type": "Bearer",
        })
    return httpx.Response(400, content=json.dumps({"error": "invalid_grant"}))


@pytest.fixture
def oauth_client() -> GoogleOAuthClient:
    return GoogleOAuthClient(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri=f"{TEST_BASE_URL}/oauth2callback",
        scopes=["https://www.googleapis.com/auth/webmasters"],
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(google_token_handler)),
    )


@pytest.fixture
def make_settings(tmp_path) -> Callable[..., Settings]:
    def _make(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "google_client_id": "test-client-id",
            "google_client_secret": "test-client-secret",
            "redirect_uri": f"{TEST_BASE_URL}/oauth2callback",
            "token_storage_dir": str(tmp_path / "data"),
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def operations_factory() -> StubOperationsFactory:
    return StubOperationsFactory()
