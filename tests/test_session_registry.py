# tests/test_session_registry.py
import asyncio
import logging
from datetime import datetime, timedelta, timezone

import anyio
import pytest

from gsc_mcp.sessions import SessionRegistry

from .conftest import StubOperations

logger = logging.getLogger("gsc_mcp.tests.session_registry")


async def test_concurrent_create_and_remove_keeps_exactly_the_survivors():
    registry = SessionRegistry()
    first_wave = await asyncio.gather(*(registry.create() for _ in range(50)))
    to_remove = first_wave[:25]

    results = await asyncio.gather(
        *(registry.remove(session_id) for session_id in to_remove),
        *(registry.create() for _ in range(50)),
    )
    second_wave = [r for r in results if isinstance(r, str)]

    expected = set(first_wave[25:]) | set(second_wave)
    logger.info(f"Registry holds {len(registry)} sessions, expected {len(expected)}")
    assert set(registry.ids()) == expected
    assert len(registry) == 75
    assert len(set(first_wave) | set(second_wave)) == 100


async def test_new_session_has_no_credential():
    registry = SessionRegistry()
    session_id = await registry.create()

    session = registry.get(session_id)
    assert session is not None
    assert session.session_id == session_id
    assert not session.is_authenticated
    assert registry.get(None) is None
    assert registry.get("missing") is None


async def test_bind_credential_attaches_operations():
    registry = SessionRegistry()
    session_id = await registry.create()
    operations = object()

    assert await registry.bind_credential(session_id, operations) is True
    assert registry.get(session_id).operations is operations
    assert registry.get(session_id).is_authenticated


async def test_bind_credential_after_removal_reports_expired_session():
    registry = SessionRegistry()
    session_id = await registry.create()
    await registry.remove(session_id)

    assert await registry.bind_credential(session_id, object()) is False
    assert session_id not in registry


async def test_remove_is_idempotent():
    registry = SessionRegistry()
    session_id = await registry.create()

    removed = await registry.remove(session_id)
    assert removed is not None and removed.session_id == session_id
    assert await registry.remove(session_id) is None
    assert len(registry) == 0


async def test_expire_idle_closes_the_inbound_stream():
    registry = SessionRegistry()
    writer, reader = anyio.create_memory_object_stream(1)
    idle_id = await registry.create(inbound_writer=writer)
    active_id = await registry.create()

    registry.get(idle_id).last_activity_at = datetime.now(timezone.utc) - timedelta(seconds=600)

    expired = await registry.expire_idle(300)

    assert expired == [idle_id]
    assert idle_id not in registry
    assert active_id in registry
    with pytest.raises(anyio.EndOfStream):
        await reader.receive()


async def test_touch_resets_idle_time():
    registry = SessionRegistry()
    session_id = await registry.create()
    registry.get(session_id).last_activity_at = datetime.now(timezone.utc) - timedelta(seconds=600)

    registry.touch(session_id)

    assert registry.get(session_id).idle_seconds() < 5
    assert await registry.expire_idle(300) == []


async def test_remove_closes_bound_operations():
    registry = SessionRegistry()
    session_id = await registry.create()
    operations = StubOperations()
    await registry.bind_credential(session_id, operations)

    await registry.remove(session_id)

    assert operations.closed is True


async def test_expire_idle_closes_bound_operations():
    registry = SessionRegistry()
    session_id = await registry.create()
    operations = StubOperations()
    await registry.bind_credential(session_id, operations)
    registry.get(session_id).last_activity_at = datetime.now(timezone.utc) - timedelta(seconds=600)

    assert await registry.expire_idle(300) == [session_id]
    assert operations.closed is True
