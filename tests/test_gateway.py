# tests/test_gateway.py
import json
import logging

import pytest
from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND

from gsc_mcp.mcp_handlers.gateway import DISPATCH_TABLE, ToolErrorKind, ToolGateway
from gsc_mcp.mcp_handlers.tool_catalog import TOOL_CATALOG
from gsc_mcp.oauth.provider import ProcessCredentialProvider, SessionCredentialProvider
from gsc_mcp.sessions import SessionRegistry

from .conftest import TEST_BASE_URL, MemoryCredentialStore, StubOperations

logger = logging.getLogger("gsc_mcp.tests.gateway")

SITE = "https://example.com/"


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def gateway(registry, oauth_client, operations_factory):
    provider = SessionCredentialProvider(oauth_client, registry, TEST_BASE_URL, operations_factory)
    return ToolGateway(registry, provider)


@pytest.fixture
async def authenticated(registry):
    """A session with a stub operation set bound to it."""
    session_id = await registry.create()
    operations = StubOperations()
    await registry.bind_credential(session_id, operations)
    return session_id, operations


async def test_call_without_credential_requires_authentication(gateway, registry):
    session_id = await registry.create()

    outcome = await gateway.call_tool(session_id, "list_sites", {})

    assert outcome.is_error
    assert outcome.error.kind == ToolErrorKind.AUTHENTICATION_REQUIRED
    assert outcome.error.code == INTERNAL_ERROR
    assert outcome.error.message == (
        f"Authentication required. Please visit {TEST_BASE_URL}/auth?sessionId={session_id} to authenticate."
    )
    assert outcome.error.data["authorization_url"] == f"{TEST_BASE_URL}/auth?sessionId={session_id}"


async def test_unauthenticated_call_never_reaches_operations(registry, oauth_client, operations_factory):
    provider = SessionCredentialProvider(oauth_client, registry, TEST_BASE_URL, operations_factory)
    gateway = ToolGateway(registry, provider)
    session_id = await registry.create()

    for tool in TOOL_CATALOG:
        outcome = await gateway.call_tool(session_id, tool.name, {"siteUrl": SITE})
        assert outcome.error.kind == ToolErrorKind.AUTHENTICATION_REQUIRED

    assert operations_factory.built == []


async def test_unknown_tool_is_rejected_without_backend_call(gateway, authenticated):
    session_id, operations = authenticated

    outcome = await gateway.call_tool(session_id, "delete_site", {"siteUrl": SITE})

    assert outcome.error.kind == ToolErrorKind.UNKNOWN_TOOL
    assert outcome.error.code == METHOD_NOT_FOUND
    assert outcome.error.message == "Unknown tool: delete_site"
    assert operations.calls == []


async def test_empty_site_list_renders_as_empty_json_array(gateway, authenticated):
    session_id, operations = authenticated

    outcome = await gateway.call_tool(session_id, "list_sites", {})

    assert not outcome.is_error
    assert outcome.text == "[]"
    assert operations.calls == [("list_sites", ())]


async def test_results_are_rendered_with_two_space_indentation(gateway, authenticated):
    session_id, operations = authenticated
    operations.sites = [{"siteUrl": SITE, "permissionLevel": "siteOwner"}]

    outcome = await gateway.call_tool(session_id, "list_sites", None)

    assert outcome.text == json.dumps(operations.sites, indent=2)
    assert '\n  {\n    "siteUrl"' in outcome.text


@pytest.mark.parametrize("arguments", [
    {"siteUrl": SITE, "startDate": "2024-01-01", "endDate": "2024-01-31"},
    {"siteUrl": SITE, "startDate": "2024-01-01", "endDate": "2024-01-31", "dimensions": None},
])
async def test_search_analytics_defaults_dimensions_to_date(gateway, authenticated, arguments):
    session_id, operations = authenticated

    outcome = await gateway.call_tool(session_id, "get_search_analytics", arguments)

    assert not outcome.is_error
    assert operations.calls == [
        ("get_search_analytics", (SITE, "2024-01-01", "2024-01-31", ["date"], None)),
    ]


async def test_search_analytics_passes_dimensions_and_filters(gateway, authenticated):
    session_id, operations = authenticated
    filters = [{"filters": [{"dimension": "country", "operator": "equals", "expression": "usa"}]}]

    await gateway.call_tool(session_id, "get_search_analytics", {
        "siteUrl": SITE,
        "startDate": "2024-01-01",
        "endDate": "2024-01-31",
        "dimensions": ["query", "page"],
        "dimensionFilterGroups": filters,
    })

    assert operations.calls == [
        ("get_search_analytics", (SITE, "2024-01-01", "2024-01-31", ["query", "page"], filters)),
    ]


async def test_top_queries_limit_defaults_to_ten(gateway, authenticated):
    session_id, operations = authenticated

    await gateway.call_tool(session_id, "get_top_queries", {
        "siteUrl": SITE, "startDate": "2024-01-01", "endDate": "2024-01-31",
    })

    assert operations.calls == [("get_top_queries", (SITE, "2024-01-01", "2024-01-31", 10))]


async def test_remaining_tools_dispatch_to_their_operations(gateway, authenticated):
    session_id, operations = authenticated

    inspect = await gateway.call_tool(session_id, "inspect_url", {"siteUrl": SITE, "inspectionUrl": f"{SITE}page"})
    sitemaps = await gateway.call_tool(session_id, "list_sitemaps", {"siteUrl": SITE})
    submitted = await gateway.call_tool(
        session_id, "submit_sitemap", {"siteUrl": SITE, "feedpath": f"{SITE}sitemap.xml"}
    )

    assert json.loads(inspect.text)["inspectionResult"]["indexStatusResult"]["verdict"] == "PASS"
    assert sitemaps.text == "[]"
    assert json.loads(submitted.text) == {"success": True, "message": f"Sitemap submitted: {SITE}sitemap.xml"}
    assert [name for name, _ in operations.calls] == ["inspect_url", "list_sitemaps", "submit_sitemap"]


@pytest.mark.parametrize("name, arguments", [
    ("inspect_url", {"siteUrl": SITE}),
    ("get_search_analytics", {"siteUrl": SITE, "startDate": "2024-01-01", "endDate": "2024-01-31", "dimensions": ["week"]}),
    ("get_top_queries", {"siteUrl": SITE, "startDate": "2024-01-01", "endDate": "2024-01-31", "limit": 0}),
    ("list_sitemaps", {"siteUrl": 42}),
])
async def test_invalid_arguments_are_reported_before_dispatch(gateway, authenticated, name, arguments):
    session_id, operations = authenticated

    outcome = await gateway.call_tool(session_id, name, arguments)

    logger.info(f"{name}: {outcome.error.message}")
    assert outcome.error.kind == ToolErrorKind.INVALID_ARGUMENTS
    assert outcome.error.code == INVALID_PARAMS
    assert outcome.error.message.startswith(f"Invalid arguments for {name}: ")
    assert operations.calls == []


async def test_backend_failure_becomes_an_error_outcome(gateway, authenticated):
    session_id, operations = authenticated
    operations.fail_with = RuntimeError("quota exceeded")

    outcome = await gateway.call_tool(session_id, "list_sites", {})

    assert outcome.error.kind == ToolErrorKind.BACKEND_FAILURE
    assert outcome.error.code == INTERNAL_ERROR
    assert outcome.error.message.startswith("Failed to list sites: quota exceeded\n")
    assert "Traceback" in outcome.error.message


async def test_unknown_session_is_reported(gateway):
    outcome = await gateway.call_tool("not-a-session", "list_sites", {})

    assert outcome.error.kind == ToolErrorKind.SESSION_NOT_FOUND


async def test_catalog_is_identical_before_and_after_authentication(gateway, registry):
    session_id = await registry.create()
    before = [tool.to_mcp_tool().model_dump() for tool in gateway.list_tools()]

    await registry.bind_credential(session_id, StubOperations())
    after = [tool.to_mcp_tool().model_dump() for tool in gateway.list_tools()]

    assert before == after


def test_catalog_and_dispatch_table_are_in_lockstep():
    names = [tool.name for tool in TOOL_CATALOG]

    assert len(names) == len(set(names)) == 6
    assert set(names) == set(DISPATCH_TABLE)
    for tool in TOOL_CATALOG:
        schema = tool.input_schema
        assert schema["type"] == "object"
        assert set(schema.get("required", [])) <= set(schema["properties"])


async def test_process_mode_points_at_plain_auth_link(registry, oauth_client, operations_factory):
    provider = ProcessCredentialProvider(oauth_client, MemoryCredentialStore(), TEST_BASE_URL, operations_factory)
    gateway = ToolGateway(registry, provider)
    session_id = await registry.create()

    outcome = await gateway.call_tool(session_id, "list_sites", {})

    assert outcome.error.kind == ToolErrorKind.AUTHENTICATION_REQUIRED
    assert outcome.error.message == f"Authentication required. Please visit {TEST_BASE_URL}/auth to authenticate."
