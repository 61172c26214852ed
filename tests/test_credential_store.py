# tests/test_credential_store.py
import json
import logging
import os
import stat

import pytest

from gsc_mcp.oauth.credential_store import (
    CredentialCodec,
    FileCredentialStore,
    RedisCredentialStore,
    get_credential_store,
)
from gsc_mcp.oauth.models import Credential
from gsc_mcp.utils.security import EncryptionKeyError, generate_fernet_key

logger = logging.getLogger("gsc_mcp.tests.credential_store")


def credential() -> Credential:
    return Credential(access_token="access-1", refresh_token="refresh-1", scopes=["webmasters"])


async def test_missing_file_means_no_credential(tmp_path):
    store = FileCredentialStore(str(tmp_path / "absent"))

    assert await store.load_credential() is None


async def test_file_store_writes_owner_only_json(tmp_path):
    store = FileCredentialStore(str(tmp_path))

    await store.save_credential(credential())

    token_path = tmp_path / FileCredentialStore.TOKEN_FILE_NAME
    assert json.loads(token_path.read_text())["refresh_token"] == "refresh-1"
    assert stat.S_IMODE(os.stat(token_path).st_mode) == 0o600
    assert (await store.load_credential()).access_token == "access-1"

    await store.delete_credential()
    assert not token_path.exists()
    await store.delete_credential()


async def test_encrypted_file_does_not_contain_tokens(tmp_path):
    key = generate_fernet_key()
    store = FileCredentialStore(str(tmp_path), CredentialCodec(key))

    await store.save_credential(credential())

    raw = (tmp_path / FileCredentialStore.TOKEN_FILE_NAME).read_text()
    assert raw.startswith("fernet:")
    assert "refresh-1" not in raw
    assert (await store.load_credential()).refresh_token == "refresh-1"


async def test_encrypted_file_with_wrong_key_is_treated_as_absent(tmp_path):
    await FileCredentialStore(str(tmp_path), CredentialCodec(generate_fernet_key())).save_credential(credential())

    other_key_store = FileCredentialStore(str(tmp_path), CredentialCodec(generate_fernet_key()))
    no_key_store = FileCredentialStore(str(tmp_path))

    assert await other_key_store.load_credential() is None
    assert await no_key_store.load_credential() is None


async def test_corrupted_file_is_treated_as_absent(tmp_path):
    (tmp_path / FileCredentialStore.TOKEN_FILE_NAME).write_text("{not json")

    assert await FileCredentialStore(str(tmp_path)).load_credential() is None


def test_invalid_encryption_key_is_rejected():
    with pytest.raises(EncryptionKeyError):
        CredentialCodec("not-a-fernet-key")


async def test_health_reflects_storage_directory(tmp_path):
    store = FileCredentialStore(str(tmp_path / "data"))
    assert (await store.health()).startswith("unhealthy")

    await store.initialize()
    assert await store.health() == "healthy"


def test_backend_selection(make_settings):
    assert isinstance(get_credential_store(make_settings()), FileCredentialStore)
    assert isinstance(get_credential_store(make_settings(credential_store_backend="redis")), RedisCredentialStore)
