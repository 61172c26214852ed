# gsc_mcp/oauth/credential_store.py
import logging
import os
from pathlib import Path
from typing import Optional

import redis.asyncio as aioredis
from pydantic import ValidationError as PydanticValidationError

from ..settings import Settings
from ..utils.security import FernetEncryptor
from .models import Credential
from .storage_interfaces import AbstractCredentialStore

logger = logging.getLogger(__name__)

ENCRYPTED_PREFIX = "fernet:"


class CredentialCodec:
    """Serializes credentials, encrypting them when a Fernet key is configured."""

    def __init__(self, encryption_key: Optional[str] = None):
        # Raises EncryptionKeyError (a ValueError) for malformed keys.
        self.encryptor = FernetEncryptor(encryption_key) if encryption_key else None

    def encode(self, credential: Credential) -> str:
        raw = credential.model_dump_json()
        if self.encryptor:
            return ENCRYPTED_PREFIX + self.encryptor.encrypt(raw)
        return raw

    def decode(self, payload: str) -> Optional[Credential]:
        if payload.startswith(ENCRYPTED_PREFIX):
            if not self.encryptor:
                logger.error("Stored credential is encrypted but TOKEN_ENCRYPTION_KEY is not set.")
                return None
            payload = self.encryptor.decrypt(payload[len(ENCRYPTED_PREFIX):])
            if payload is None:
                return None
        try:
            return Credential.model_validate_json(payload)
        except PydanticValidationError as e:
            logger.error(f"Stored credential could not be parsed: {e}")
            return None


class FileCredentialStore(AbstractCredentialStore):
    """Keeps the credential as a JSON document inside the token storage directory."""

    TOKEN_FILE_NAME = "token.json"

    def __init__(self, storage_dir: str, codec: Optional[CredentialCodec] = None):
        self.storage_dir = Path(storage_dir)
        self.token_path = self.storage_dir / self.TOKEN_FILE_NAME
        self.codec = codec or CredentialCodec()
        logger.info(f"FileCredentialStore initialized at: {self.token_path}")

    async def initialize(self) -> None:
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    async def teardown(self) -> None:
        pass

    async def load_credential(self) -> Optional[Credential]:
        if not self.token_path.exists():
            logger.info(f"No stored credential at {self.token_path}.")
            return None
        try:
            payload = self.token_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Could not read stored credential at {self.token_path}: {e}")
            return None
        credential = self.codec.decode(payload)
        if credential:
            logger.info(f"Loaded stored credential from {self.token_path}.")
        return credential

    async def save_credential(self, credential: Credential) -> None:
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.token_path.with_suffix(".tmp")
        tmp_path.write_text(self.codec.encode(credential), encoding="utf-8")
        os.chmod(tmp_path, 0o600)
        tmp_path.replace(self.token_path)
        logger.info(f"Saved credential to {self.token_path}.")

    async def delete_credential(self) -> None:
        if self.token_path.exists():
            self.token_path.unlink()
            logger.info(f"Deleted stored credential at {self.token_path}.")

    async def health(self) -> str:
        if self.storage_dir.is_dir() and os.access(self.storage_dir, os.W_OK):
            return "healthy"
        return f"unhealthy: {self.storage_dir} is not a writable directory"


class RedisCredentialStore(AbstractCredentialStore):
    """Keeps the credential under a single Redis key."""

    _redis_client: Optional[aioredis.Redis] = None

    def __init__(self, settings: Settings, codec: Optional[CredentialCodec] = None):
        self.settings = settings
        self.key = settings.redis_credential_key
        self.codec = codec or CredentialCodec()
        logger.info(f"RedisCredentialStore initialized. Key: {self.key}")

    async def initialize(self) -> None:
        if self._redis_client:
            return

        connection_params = {
            "host": self.settings.redis_host,
            "port": self.settings.redis_port,
            "db": self.settings.redis_db,
            "ssl": self.settings.redis_ssl,
            "decode_responses": False,
        }
        if self.settings.redis_password:
            connection_params["password"] = self.settings.redis_password

        logger.info(
            f"Connecting to Redis at {connection_params['host']}:"
            f"{connection_params['port']}, DB: {connection_params['db']}"
        )
        try:
            self._redis_client = aioredis.Redis(**connection_params)
            await self._redis_client.ping()
            logger.info("RedisCredentialStore: Connected.")
        except Exception as e:
            logger.error(f"RedisCredentialStore: Connect failed: {e}", exc_info=True)
            self._redis_client = None
            raise

    async def teardown(self) -> None:
        if self._redis_client:
            await self._redis_client.aclose()
            self._redis_client = None
            logger.info("RedisCredentialStore: Closed.")

    async def _get_client(self) -> aioredis.Redis:
        if not self._redis_client:
            await self.initialize()
            if not self._redis_client:
                raise RuntimeError("RedisCredentialStore not initialized or connection failed.")
        return self._redis_client

    async def load_credential(self) -> Optional[Credential]:
        client = await self._get_client()
        data_bytes = await client.get(self.key)
        if not data_bytes:
            logger.info(f"No stored credential under Redis key '{self.key}'.")
            return None
        return self.codec.decode(data_bytes.decode("utf-8"))

    async def save_credential(self, credential: Credential) -> None:
        client = await self._get_client()
        await client.set(self.key, self.codec.encode(credential).encode("utf-8"))
        logger.info(f"Saved credential under Redis key '{self.key}'.")

    async def delete_credential(self) -> None:
        client = await self._get_client()
        await client.delete(self.key)
        logger.info(f"Deleted credential under Redis key '{self.key}'.")

    async def health(self) -> str:
        try:
            client = await self._get_client()
            await client.ping()
            return "healthy"
        except Exception as e:
            return f"unhealthy: {e}"


def get_credential_store(settings: Settings) -> AbstractCredentialStore:
    """Build the credential store selected by CREDENTIAL_STORE_BACKEND."""
    codec = CredentialCodec(settings.token_encryption_key)
    if settings.credential_store_backend == "file":
        return FileCredentialStore(settings.token_storage_dir, codec=codec)
    if settings.credential_store_backend == "redis":
        return RedisCredentialStore(settings, codec=codec)
    raise ValueError(f"Unsupported credential_store_backend: {settings.credential_store_backend}")
