# gsc_mcp/oauth/provider.py
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import httpx

from ..external_services.google.search_console_service import SearchConsoleService
from ..external_services.interfaces import AnalyticsOperations
from ..sessions import Session, SessionRegistry
from .auth import CredentialAuth, CredentialRefresher
from .errors import AuthenticationRequiredError, InvalidRequestError, SessionExpiredError
from .google_oauth import GoogleOAuthClient
from .models import Credential
from .storage_interfaces import AbstractCredentialStore

logger = logging.getLogger(__name__)

OperationsFactory = Callable[[Credential, CredentialRefresher], AnalyticsOperations]


def search_console_operations_factory(timeout_seconds: float = 30.0) -> OperationsFactory:
    """Build SearchConsoleService instances whose HTTP client signs and refreshes with the credential."""

    def factory(credential: Credential, refresher: CredentialRefresher) -> AnalyticsOperations:
        client = httpx.AsyncClient(
            auth=CredentialAuth(credential, refresher),
            timeout=timeout_seconds,
        )
        return SearchConsoleService(client)

    return factory


class CredentialProvider(ABC):
    """
    Produces the operation set available to a session.

    Implementations decide where the credential lives: bound to one session
    in memory, or shared by the whole process and persisted.
    """

    mode: str = ""

    def __init__(self, oauth: GoogleOAuthClient, auth_base_url: str, operations_factory: OperationsFactory):
        self.oauth = oauth
        self.auth_base_url = auth_base_url.rstrip("/")
        self.operations_factory = operations_factory

    def build_authorization_url(self, correlation: Optional[str] = None) -> str:
        """Google consent URL. `correlation` travels back to the callback as `state`."""
        return self.oauth.build_authorization_url(state=correlation)

    async def exchange_code(self, code: str) -> Credential:
        return await self.oauth.exchange_code(code)

    async def refresh(self, credential: Credential) -> Credential:
        return await self.oauth.refresh(credential)

    @abstractmethod
    def auth_link(self, session_id: Optional[str] = None) -> str:
        """The local /auth link a human should open to grant access."""
        pass

    @abstractmethod
    async def complete_authorization(self, code: str, state: Optional[str]) -> Credential:
        """Exchange the callback's code and make the credential available to the caller."""
        pass

    @abstractmethod
    async def operations_for(self, session: Session) -> Optional[AnalyticsOperations]:
        pass

    async def require_operations(self, session: Session) -> AnalyticsOperations:
        operations = await self.operations_for(session)
        if operations is None:
            link = self.auth_link(session.session_id)
            raise AuthenticationRequiredError(
                authorization_url=link,
                detail_message=f"Authentication required. Please visit {link} to authenticate.",
            )
        return operations

    async def is_authenticated(self) -> bool:
        """Whether a process-wide credential is available. Always False for per-session credentials."""
        return False

    async def initialize(self) -> None:
        pass

    async def teardown(self) -> None:
        await self.oauth.aclose()


class SessionCredentialProvider(CredentialProvider):
    """Each SSE session authenticates on its own; credentials live only in memory."""

    mode = "session"

    def __init__(
        self,
        oauth: GoogleOAuthClient,
        registry: SessionRegistry,
        auth_base_url: str,
        operations_factory: OperationsFactory,
    ):
        super().__init__(oauth, auth_base_url, operations_factory)
        self.registry = registry

    def auth_link(self, session_id: Optional[str] = None) -> str:
        return f"{self.auth_base_url}/auth?sessionId={session_id}"

    async def complete_authorization(self, code: str, state: Optional[str]) -> Credential:
        if not code or not state:
            raise InvalidRequestError("Missing code or state.")

        credential = await self.exchange_code(code)
        operations = self.operations_factory(credential, self.refresh)
        if not await self.registry.bind_credential(state, operations):
            logger.warning(f"complete_authorization: Session {state} closed before the callback arrived.")
            await operations.aclose()
            raise SessionExpiredError(session_id=state)
        logger.info(f"complete_authorization: Session {state} authenticated.")
        return credential

    async def operations_for(self, session: Session) -> Optional[AnalyticsOperations]:
        return session.operations


class ProcessCredentialProvider(CredentialProvider):
    """
    One credential for every connection, loaded from and written to a
    credential store so restarts skip the consent flow.
    """

    mode = "process"

    def __init__(
        self,
        oauth: GoogleOAuthClient,
        store: AbstractCredentialStore,
        auth_base_url: str,
        operations_factory: OperationsFactory,
    ):
        super().__init__(oauth, auth_base_url, operations_factory)
        self.store = store
        self._credential: Optional[Credential] = None
        self._operations: Optional[AnalyticsOperations] = None
        self._loaded = False
        self._lock = asyncio.Lock()

    def auth_link(self, session_id: Optional[str] = None) -> str:
        return f"{self.auth_base_url}/auth"

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    async def _install(self, credential: Optional[Credential]) -> None:
        """Swap in a credential (or none) and close the operation set it replaces. Caller holds the lock."""
        previous = self._operations
        self._credential = credential
        self._operations = self.operations_factory(credential, self.refresh) if credential is not None else None
        if previous is not None:
            try:
                await previous.aclose()
            except Exception as e:
                logger.error(f"_install: Error closing replaced operations: {e}", exc_info=True)

    async def load_persisted(self) -> Optional[Credential]:
        """Load the stored credential once. Later calls return what is installed."""
        if self._loaded:
            return self._credential
        async with self._lock:
            if self._loaded:
                return self._credential
            try:
                credential = await self.store.load_credential()
            except Exception as e:
                logger.error(f"load_persisted: Could not read the credential store: {e}", exc_info=True)
                credential = None
            if credential is not None:
                await self._install(credential)
                logger.info("load_persisted: Stored credential loaded.")
            else:
                logger.info("load_persisted: No stored credential. Authentication required.")
            self._loaded = True
        return self._credential

    async def persist(self, credential: Credential) -> None:
        await self.store.save_credential(credential)

    async def refresh(self, credential: Credential) -> Credential:
        """
        Refresh and persist the installed credential. A credential that was
        replaced or cleared in the meantime is refreshed for the caller only and
        never written back.
        """
        refreshed = await self.oauth.refresh(credential)
        async with self._lock:
            if credential is not self._credential:
                logger.warning("refresh: Credential was replaced or cleared during refresh. Not storing it.")
                return refreshed
            self._credential = refreshed
            try:
                await self.persist(refreshed)
            except Exception as e:
                logger.error(f"refresh: Refreshed credential could not be persisted: {e}", exc_info=True)
        return refreshed

    async def complete_authorization(self, code: str, state: Optional[str]) -> Credential:
        if not code:
            raise InvalidRequestError("Missing code.")

        credential = await self.exchange_code(code)
        await self.persist(credential)
        async with self._lock:
            await self._install(credential)
            self._loaded = True
        logger.info("complete_authorization: Process-wide credential stored.")
        return credential

    async def clear(self) -> None:
        """Forget the shared credential, in memory and in the store."""
        async with self._lock:
            await self.store.delete_credential()
            await self._install(None)
            self._loaded = True
        logger.info("clear: Process-wide credential removed.")

    async def operations_for(self, session: Session) -> Optional[AnalyticsOperations]:
        await self.load_persisted()
        return self._operations

    async def is_authenticated(self) -> bool:
        return await self.load_persisted() is not None

    async def initialize(self) -> None:
        await self.store.initialize()

    async def teardown(self) -> None:
        async with self._lock:
            await self._install(None)
        await super().teardown()
        await self.store.teardown()
