# gsc_mcp/sessions/session_data.py
import logging
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


class Session(BaseModel):
    """
    One live SSE connection.

    The registry owns these records. Handlers resolve them by identifier on
    every request and must not hold on to them across requests.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str = Field(
        description="Opaque identifier issued when the stream opened. Never reused while live."
    )

    # Writer end of the session's inbound message stream. Closing it ends the
    # MCP server loop and with it the outbound SSE stream.
    inbound_writer: Optional[Any] = Field(default=None, exclude=True)

    # Operation set bound to the session's credential (session credential mode only).
    operations: Optional[Any] = Field(default=None, exclude=True)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_activity_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_authenticated(self) -> bool:
        return self.operations is not None

    def touch(self) -> None:
        """Records activity on the session."""
        self.last_activity_at = datetime.now(timezone.utc)

    def idle_seconds(self, now: Optional[datetime] = None) -> float:
        current = now or datetime.now(timezone.utc)
        return (current - self.last_activity_at).total_seconds()

    async def close_operations(self) -> None:
        """Detach the bound operation set and close its HTTP client."""
        operations, self.operations = self.operations, None
        if operations is None:
            return
        try:
            await operations.aclose()
        except Exception as e:
            logger.error(f"close_operations: Error closing operations for session {self.session_id}: {e}", exc_info=True)
