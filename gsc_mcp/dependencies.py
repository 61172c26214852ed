# gsc_mcp/dependencies.py
import logging
from fastapi import HTTPException, Request, status

from .mcp_handlers.gateway import ToolGateway
from .mcp_handlers.sse_transport import SessionSseTransport
from .oauth.provider import CredentialProvider
from .sessions import SessionRegistry
from .settings import Settings

logger = logging.getLogger(__name__)


def _app_state_attr(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        logger.critical(f"app.state.{name} is not set. The application was not created with create_app().")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Server is not initialized.",
        )
    return value


def get_settings(request: Request) -> Settings:
    return _app_state_attr(request, "settings")


def get_session_registry(request: Request) -> SessionRegistry:
    return _app_state_attr(request, "session_registry")


def get_credential_provider(request: Request) -> CredentialProvider:
    return _app_state_attr(request, "credential_provider")


def get_tool_gateway(request: Request) -> ToolGateway:
    return _app_state_attr(request, "tool_gateway")


def get_sse_transport(request: Request) -> SessionSseTransport:
    return _app_state_attr(request, "sse_transport")
