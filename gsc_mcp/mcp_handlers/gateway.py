# gsc_mcp/mcp_handlers/gateway.py
import json
import logging
import traceback
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from mcp.types import ErrorData, INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST, METHOD_NOT_FOUND
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from ..external_services.interfaces import AnalyticsOperations
from ..oauth.errors import AuthenticationRequiredError
from ..oauth.provider import CredentialProvider
from ..sessions import SessionRegistry
from .tool_catalog import (
    TOOL_CATALOG,
    TOOLS_BY_NAME,
    InspectUrlArguments,
    NoArguments,
    SearchAnalyticsArguments,
    SiteArguments,
    SubmitSitemapArguments,
    ToolArguments,
    ToolDescriptor,
    TopQueriesArguments,
)

logger = logging.getLogger(__name__)


class ToolErrorKind(str, Enum):
    AUTHENTICATION_REQUIRED = "authentication_required"
    UNKNOWN_TOOL = "unknown_tool"
    INVALID_ARGUMENTS = "invalid_arguments"
    BACKEND_FAILURE = "backend_failure"
    SESSION_NOT_FOUND = "session_not_found"


# JSON-RPC error code each kind is reported with.
ERROR_CODES: Dict[ToolErrorKind, int] = {
    ToolErrorKind.AUTHENTICATION_REQUIRED: INTERNAL_ERROR,
    ToolErrorKind.UNKNOWN_TOOL: METHOD_NOT_FOUND,
    ToolErrorKind.INVALID_ARGUMENTS: INVALID_PARAMS,
    ToolErrorKind.BACKEND_FAILURE: INTERNAL_ERROR,
    ToolErrorKind.SESSION_NOT_FOUND: INVALID_REQUEST,
}


class ToolError(BaseModel):
    kind: ToolErrorKind
    code: int
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)

    def to_error_data(self) -> ErrorData:
        return ErrorData(code=self.code, message=self.message, data={"kind": self.kind.value, **self.data})


class ToolOutcome(BaseModel):
    """Result of one tool call: rendered text on success, or a ToolError."""

    text: Optional[str] = None
    error: Optional[ToolError] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def success(cls, value: Any) -> "ToolOutcome":
        return cls(text=json.dumps(value, indent=2))

    @classmethod
    def failure(cls, kind: ToolErrorKind, message: str, **data: Any) -> "ToolOutcome":
        return cls(error=ToolError(kind=kind, code=ERROR_CODES[kind], message=message, data=data))


ToolHandler = Callable[[AnalyticsOperations, Any], Awaitable[Any]]


async def _list_sites(ops: AnalyticsOperations, args: NoArguments) -> Any:
    return await ops.list_sites()


async def _get_search_analytics(ops: AnalyticsOperations, args: SearchAnalyticsArguments) -> Any:
    return await ops.get_search_analytics(
        args.site_url,
        args.start_date,
        args.end_date,
        list(args.dimensions),
        args.dimension_filter_groups,
    )


async def _inspect_url(ops: AnalyticsOperations, args: InspectUrlArguments) -> Any:
    return await ops.inspect_url(args.site_url, args.inspection_url)


async def _list_sitemaps(ops: AnalyticsOperations, args: SiteArguments) -> Any:
    return await ops.list_sitemaps(args.site_url)


async def _submit_sitemap(ops: AnalyticsOperations, args: SubmitSitemapArguments) -> Any:
    return await ops.submit_sitemap(args.site_url, args.feedpath)


async def _get_top_queries(ops: AnalyticsOperations, args: TopQueriesArguments) -> Any:
    return await ops.get_top_queries(args.site_url, args.start_date, args.end_date, args.limit)


# One handler per catalog entry.
DISPATCH_TABLE: Mapping[str, ToolHandler] = {
    "list_sites": _list_sites,
    "get_search_analytics": _get_search_analytics,
    "inspect_url": _inspect_url,
    "list_sitemaps": _list_sitemaps,
    "submit_sitemap": _submit_sitemap,
    "get_top_queries": _get_top_queries,
}


def _format_validation_error(error: PydanticValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(item) for item in detail.get("loc", ())) or "arguments"
        parts.append(f"{location}: {detail.get('msg')}")
    return "; ".join(parts)


class ToolGateway:
    """
    Session-scoped list-tools / call-tool dispatcher.

    call_tool never raises: every failure below it is returned as a
    ToolOutcome carrying a ToolError.
    """

    def __init__(self, registry: SessionRegistry, provider: CredentialProvider):
        self.registry = registry
        self.provider = provider

    def list_tools(self) -> Tuple[ToolDescriptor, ...]:
        return TOOL_CATALOG

    def _decode(self, tool: ToolDescriptor, arguments: Optional[Dict[str, Any]]) -> ToolArguments:
        return tool.arguments_model.model_validate(arguments or {})

    async def call_tool(
        self, session_id: str, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> ToolOutcome:
        session = self.registry.get(session_id)
        if session is None:
            logger.warning(f"call_tool: Session {session_id} not found for tool '{name}'.")
            return ToolOutcome.failure(ToolErrorKind.SESSION_NOT_FOUND, f"Session not found: {session_id}")
        session.touch()

        try:
            operations = await self.provider.require_operations(session)
        except AuthenticationRequiredError as e:
            logger.info(f"call_tool: Session {session_id} called '{name}' without a credential.")
            return ToolOutcome.failure(
                ToolErrorKind.AUTHENTICATION_REQUIRED,
                e.detail_message,
                authorization_url=e.authorization_url,
            )

        tool = TOOLS_BY_NAME.get(name)
        handler = DISPATCH_TABLE.get(name)
        if tool is None or handler is None:
            logger.warning(f"call_tool: Unknown tool '{name}' requested by session {session_id}.")
            return ToolOutcome.failure(ToolErrorKind.UNKNOWN_TOOL, f"Unknown tool: {name}")

        try:
            args = self._decode(tool, arguments)
        except PydanticValidationError as e:
            message = f"Invalid arguments for {name}: {_format_validation_error(e)}"
            logger.info(f"call_tool: {message}")
            return ToolOutcome.failure(ToolErrorKind.INVALID_ARGUMENTS, message)

        logger.debug(f"call_tool: Session {session_id} invoking '{name}' with {args!r}")
        try:
            result = await handler(operations, args)
            return ToolOutcome.success(result)
        except Exception as e:
            logger.error(f"call_tool: '{name}' failed for session {session_id}: {e}", exc_info=True)
            return ToolOutcome.failure(
                ToolErrorKind.BACKEND_FAILURE,
                f"Failed to {tool.action}: {e}\n{traceback.format_exc()}",
            )
