# gsc_mcp/sessions/session_registry.py
import asyncio
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from .session_data import Session

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Concurrency-safe map of live sessions keyed by session identifier.

    Stream-open, OAuth-callback and stream-close handlers mutate the registry
    while the message path reads it. Mutations are serialized by a single
    asyncio lock; lookups are plain dict reads.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._lock = asyncio.Lock()
        logger.info("SessionRegistry initialized.")

    def _generate_session_id(self) -> str:
        return uuid4().hex

    async def create(self, inbound_writer: Optional[Any] = None) -> str:
        """Allocate a fresh session with no bound credential and return its identifier."""
        async with self._lock:
            session_id = self._generate_session_id()
            while session_id in self._sessions:
                logger.warning(f"create: Generated session ID collided with a live session: {session_id}")
                session_id = self._generate_session_id()
            self._sessions[session_id] = Session(session_id=session_id, inbound_writer=inbound_writer)
        logger.info(f"create: Session created: {session_id} (live sessions: {len(self._sessions)})")
        return session_id

    def get(self, session_id: Optional[str]) -> Optional[Session]:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    async def bind_credential(self, session_id: str, operations: Any) -> bool:
        """
        Attach an operation set to a session.

        Returns False when the session is gone, e.g. the client disconnected
        while the user was on the consent screen.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                logger.warning(f"bind_credential: Session {session_id} no longer exists.")
                return False
            previous = session.operations
            session.operations = operations
            session.touch()
        if previous is not None and previous is not operations:
            logger.info(f"bind_credential: Replacing credential already bound to session {session_id}.")
            try:
                await previous.aclose()
            except Exception as e:
                logger.error(f"bind_credential: Error closing replaced operations for {session_id}: {e}", exc_info=True)
        logger.info(f"bind_credential: Credential bound to session {session_id}.")
        return True

    async def remove(self, session_id: str) -> Optional[Session]:
        """
        Remove a session and close its bound operation set. Safe to call for
        sessions that are already gone.
        """
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            logger.debug(f"remove: Session {session_id} already removed.")
        else:
            logger.info(f"remove: Session removed: {session_id} (live sessions: {len(self._sessions)})")
            await session.close_operations()
        return session

    def touch(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.touch()

    async def expire_idle(self, max_idle_seconds: float) -> List[str]:
        """
        Remove sessions idle for longer than max_idle_seconds and close their
        inbound writers so the owning stream shuts down.
        """
        async with self._lock:
            expired = [
                session for session in self._sessions.values()
                if session.idle_seconds() > max_idle_seconds
            ]
            for session in expired:
                self._sessions.pop(session.session_id, None)

        for session in expired:
            logger.info(
                f"expire_idle: Session {session.session_id} idle for more than {max_idle_seconds}s. Closing."
            )
            if session.inbound_writer is not None:
                try:
                    await session.inbound_writer.aclose()
                except Exception as e:
                    logger.error(f"expire_idle: Error closing stream for {session.session_id}: {e}", exc_info=True)
            await session.close_operations()
        return [session.session_id for session in expired]

    def ids(self) -> List[str]:
        return list(self._sessions.keys())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
