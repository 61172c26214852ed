# gsc_mcp/oauth/storage_interfaces.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from .models import Credential

logger = logging.getLogger(__name__)


class AbstractCredentialStore(ABC):
    """Stable storage for the process-wide credential."""

    @abstractmethod
    async def load_credential(self) -> Optional[Credential]:
        """Return the stored credential, or None when nothing usable is stored."""
        pass

    @abstractmethod
    async def save_credential(self, credential: Credential) -> None:
        """Store the credential, replacing any previous one."""
        pass

    @abstractmethod
    async def delete_credential(self) -> None:
        """Remove the stored credential."""
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the storage backend."""
        pass

    @abstractmethod
    async def teardown(self) -> None:
        """Clean up storage resources."""
        pass

    async def health(self) -> str:
        return "healthy"
