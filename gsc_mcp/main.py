# gsc_mcp/main.py
from fastapi import APIRouter, Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from starlette.routing import Route, Router as StarletteRouter
from starlette.endpoints import HTTPEndpoint
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response as StarletteResponse
from starlette.types import Receive, Scope, Send
from contextlib import asynccontextmanager
from html import escape
import asyncio
import logging
from typing import Annotated, Any, Dict, Optional

from .settings import Settings, settings as default_settings
from .dependencies import (
    get_credential_provider,
    get_session_registry,
    get_settings,
    get_sse_transport,
    get_tool_gateway,
)
from .mcp_handlers.gateway import ToolGateway
from .mcp_handlers.session_server import create_session_server
from .mcp_handlers.sse_transport import SessionSseTransport
from .oauth.credential_store import get_credential_store
from .oauth.errors import OAuthError
from .oauth.google_oauth import GoogleOAuthClient
from .oauth.provider import (
    CredentialProvider,
    OperationsFactory,
    ProcessCredentialProvider,
    SessionCredentialProvider,
    search_console_operations_factory,
)
from .oauth.storage_interfaces import AbstractCredentialStore
from .sessions import SessionRegistry

# Configure logging based on debug mode setting
if not logging.getLogger().hasHandlers():
    logging.basicConfig(
        level="DEBUG" if default_settings.debug_mode else default_settings.log_level.upper(),
        format='%(asctime)s - %(name)s [%(levelname)s] - %(message)s'
    )

logger = logging.getLogger(__name__)

MCP_SERVER_NAME = "google-search-console-mcp"
SSE_PATH = "/sse"
MESSAGES_PATH = "/messages"


async def sweep_idle_sessions(registry: SessionRegistry, max_idle_seconds: float, interval_seconds: float) -> None:
    """Periodically close sessions that have been idle for too long."""
    logger.info(f"Idle-session sweep started: timeout {max_idle_seconds}s, interval {interval_seconds}s.")
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            expired = await registry.expire_idle(max_idle_seconds)
            if expired:
                logger.info(f"Idle-session sweep closed {len(expired)} session(s).")
        except Exception as e:
            logger.error(f"Idle-session sweep failed: {e}", exc_info=True)


@asynccontextmanager
async def gsc_app_lifespan(app_instance: FastAPI):
    """
    Initializes the credential provider (and its store) before serving and
    tears it down afterwards. Runs the idle-session sweep when configured.
    """
    app_settings: Settings = app_instance.state.settings
    provider: CredentialProvider = app_instance.state.credential_provider
    registry: SessionRegistry = app_instance.state.session_registry

    logger.info("Application startup initiated.")
    try:
        await provider.initialize()
    except Exception as e:
        logger.error(f"Error during credential provider initialization: {e}", exc_info=True)
        raise

    if isinstance(provider, ProcessCredentialProvider):
        if await provider.load_persisted():
            logger.info("Process-wide credential available. Authentication is not required.")
        else:
            logger.info(f"No stored credential. Visit {provider.auth_link()} to authenticate.")

    sweep_task: Optional[asyncio.Task] = None
    if app_settings.session_idle_timeout_seconds:
        sweep_task = asyncio.create_task(
            sweep_idle_sessions(
                registry,
                app_settings.session_idle_timeout_seconds,
                app_settings.session_sweep_interval_seconds,
            )
        )

    try:
        yield
    finally:
        logger.info("Application shutdown initiated.")
        if sweep_task:
            sweep_task.cancel()
            try:
                await sweep_task
            except asyncio.CancelledError:
                pass
        try:
            await provider.teardown()
        except Exception as e_td:
            logger.error(f"Teardown error: {e_td}", exc_info=True)
        logger.info("All components torn down.")


class ResponseHandled(StarletteResponse):
    """
    A response class indicating that the response has been handled elsewhere
    and no further processing is needed. Used when the SSE transport has
    already sent the response through its own ASGI calls.
    """
    def __init__(self):
        super().__init__(content=b"", media_type="text/plain")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        return


class SseEndpoint(HTTPEndpoint):
    """Opens a session stream and runs that session's MCP server until it closes."""

    async def get(self, req: StarletteRequest) -> ResponseHandled:
        transport = get_sse_transport(req)
        gateway = get_tool_gateway(req)
        app_settings = get_settings(req)

        async with transport.connect_sse(self.scope, self.receive, self.send) as (read_stream, write_stream, session_id):
            server = create_session_server(
                gateway, session_id, name=MCP_SERVER_NAME, version=app_settings.server_version
            )
            await server.run(read_stream, write_stream, server.create_initialization_options())
        return ResponseHandled()


class MessagesEndpoint(HTTPEndpoint):
    """Receives client-to-server JSON-RPC messages for an open session."""

    async def post(self, req: StarletteRequest) -> ResponseHandled:
        transport = get_sse_transport(req)
        await transport.handle_post_message(self.scope, self.receive, self.send)
        return ResponseHandled()


mcp_starlette_router = StarletteRouter(routes=[
    Route(SSE_PATH, SseEndpoint),
    Route(MESSAGES_PATH, MessagesEndpoint),
])


http_router = APIRouter()

SUCCESS_PAGE = (
    "<h1>Authentication successful!</h1>"
    "<p>You can now close this window and use the MCP server.</p>"
)


@http_router.get("/", response_class=HTMLResponse)
async def status_page(
    app_settings: Annotated[Settings, Depends(get_settings)],
    provider: Annotated[CredentialProvider, Depends(get_credential_provider)],
):
    parts = [
        f"<h1>{escape(app_settings.app_name)}</h1>",
        "<p>Status: <strong>Running</strong></p>",
        f"<p>MCP Endpoint: <code>{SSE_PATH}</code></p>",
    ]
    if provider.mode == "process":
        if await provider.is_authenticated():
            parts.append("<p>Authentication: <strong>Authenticated</strong></p>")
        else:
            parts.append("<p>Authentication: <strong>Not authenticated</strong></p>")
            parts.append(f'<p><a href="{escape(provider.auth_link())}">Authenticate with Google</a></p>')
    else:
        parts.append("<p><em>Authentication is handled per-connection. Connect your MCP client to start.</em></p>")
    return HTMLResponse("\n".join(parts))


@http_router.get("/health")
async def health_api(
    provider: Annotated[CredentialProvider, Depends(get_credential_provider)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    """Health check reporting the credential mode, live sessions and credential store connectivity."""
    details: Dict[str, Any] = {"active_sessions": len(registry)}
    all_healthy = True

    if isinstance(provider, ProcessCredentialProvider):
        store_status = await provider.store.health()
        details["credential_store"] = store_status
        details["authenticated"] = await provider.is_authenticated()
        all_healthy = store_status == "healthy"

    return {
        "status": "healthy" if all_healthy else "degraded",
        "credential_mode": provider.mode,
        "details": details,
    }


@http_router.get("/auth")
async def start_authorization(
    provider: Annotated[CredentialProvider, Depends(get_credential_provider)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
    session_id: Annotated[Optional[str], Query(alias="sessionId")] = None,
):
    """Redirects the browser to Google's consent screen."""
    if provider.mode == "session":
        if not session_id:
            return PlainTextResponse("Missing sessionId parameter", status_code=400)
        if session_id not in registry:
            logger.warning(f"/auth: sessionId {session_id} does not name a live session.")
        authorization_url = provider.build_authorization_url(session_id)
    else:
        authorization_url = provider.build_authorization_url()
    logger.info(f"/auth: Redirecting to Google consent (session: {session_id or 'n/a'}).")
    return RedirectResponse(authorization_url, status_code=302)


@http_router.get("/oauth2callback")
async def oauth2callback(
    provider: Annotated[CredentialProvider, Depends(get_credential_provider)],
    code: Annotated[Optional[str], Query()] = None,
    state: Annotated[Optional[str], Query()] = None,
    error: Annotated[Optional[str], Query()] = None,
    error_description: Annotated[Optional[str], Query()] = None,
):
    """Completes the consent flow started at /auth."""
    logger.info(
        f"OAuth callback received. Code: {'SET' if code else 'NOT_SET'}, State: '{state}', Error: {error}"
    )

    # Handle OAuth errors reported by Google (e.g. the user denied access)
    if error:
        logger.error(f"Error from Google authorization: {error} - {error_description}")
        return PlainTextResponse(f"Authorization failed: {error}", status_code=400)

    try:
        await provider.complete_authorization(code, state)
    except OAuthError as e:
        logger.warning(f"OAuth callback failed: {e.error} - {e.error_description}")
        return PlainTextResponse(e.error_description or e.error, status_code=e.status_code)
    except Exception as e:
        logger.error(f"Error during OAuth callback: {e}", exc_info=True)
        return PlainTextResponse("Authentication failed.", status_code=500)

    return HTMLResponse(SUCCESS_PAGE)


def build_credential_provider(
    app_settings: Settings,
    registry: SessionRegistry,
    oauth_client: GoogleOAuthClient,
    operations_factory: OperationsFactory,
    credential_store: Optional[AbstractCredentialStore] = None,
) -> CredentialProvider:
    if app_settings.credential_mode == "session":
        return SessionCredentialProvider(
            oauth_client, registry, app_settings.auth_base_url, operations_factory
        )
    if app_settings.credential_mode == "process":
        store = credential_store or get_credential_store(app_settings)
        return ProcessCredentialProvider(
            oauth_client, store, app_settings.auth_base_url, operations_factory
        )
    raise ValueError(f"Unsupported credential_mode: {app_settings.credential_mode}")


def create_app(
    app_settings: Optional[Settings] = None,
    operations_factory: Optional[OperationsFactory] = None,
    oauth_client: Optional[GoogleOAuthClient] = None,
    credential_store: Optional[AbstractCredentialStore] = None,
) -> FastAPI:
    """
    Build the application. Raises ConfigurationError when the Google OAuth
    client is not configured.
    """
    app_settings = app_settings or default_settings
    app_settings.require_oauth_client()

    registry = SessionRegistry()
    oauth_client = oauth_client or GoogleOAuthClient(
        client_id=app_settings.google_client_id,
        client_secret=app_settings.google_client_secret,
        redirect_uri=app_settings.redirect_uri,
        scopes=app_settings.oauth_scopes,
    )
    operations_factory = operations_factory or search_console_operations_factory(
        app_settings.google_api_timeout_seconds
    )
    provider = build_credential_provider(
        app_settings, registry, oauth_client, operations_factory, credential_store
    )

    app = FastAPI(
        title=app_settings.app_name,
        debug=app_settings.debug_mode,
        version=app_settings.server_version,
        lifespan=gsc_app_lifespan,
    )
    app.state.settings = app_settings
    app.state.session_registry = registry
    app.state.credential_provider = provider
    app.state.tool_gateway = ToolGateway(registry, provider)
    app.state.sse_transport = SessionSseTransport(registry, message_path=MESSAGES_PATH)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(http_router)
    app.mount(path="/", app=mcp_starlette_router)

    logger.info(
        f"{app_settings.app_name} created. Credential mode: {provider.mode}. "
        f"Redirect URI: {app_settings.redirect_uri}"
    )
    return app
