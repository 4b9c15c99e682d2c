from __future__ import annotations

import asyncio

import pytest

from bridge.errors import ProfileAlreadyBoundError
from bridge.sessions import SessionRegistry, generate_session_id


def test_get_or_create_returns_the_same_session():
    async def _run():
        registry = SessionRegistry()
        first = await registry.get_or_create("CA1")
        second = await registry.get_or_create("CA1")
        return registry, first, second

    registry, first, second = asyncio.run(_run())
    assert first is second
    assert len(registry) == 1
    assert "CA1" in registry


def test_concurrent_get_or_create_creates_one_session():
    async def _run():
        registry = SessionRegistry()
        sessions = await asyncio.gather(*(registry.get_or_create("CA1") for _ in range(50)))
        return registry, sessions

    registry, sessions = asyncio.run(_run())
    assert len(registry) == 1
    assert all(session is sessions[0] for session in sessions)


def test_remove_is_idempotent():
    async def _run():
        registry = SessionRegistry()
        await registry.get_or_create("CA1")
        removed = await registry.remove("CA1")
        again = await registry.remove("CA1")
        lookup = await registry.get("CA1")
        return removed, again, lookup

    removed, again, lookup = asyncio.run(_run())
    assert removed is not None and removed.session_id == "CA1"
    assert again is None
    assert lookup is None


def test_bind_profile_is_one_way(patient):
    other = patient.model_copy(update={"id": 2, "user_id": "23456789", "name": "Jane Smith"})

    async def _run():
        registry = SessionRegistry()
        session = await registry.bind_profile("CA1", patient, caller_number="+1234567890")
        # Re-binding the same patient is harmless.
        await registry.bind_profile("CA1", patient)
        with pytest.raises(ProfileAlreadyBoundError):
            await registry.bind_profile("CA1", other)
        return session

    session = asyncio.run(_run())
    assert session.profile == patient
    assert session.caller_number == "+1234567890"


def test_generated_session_ids_are_timestamp_based():
    assert generate_session_id().startswith("session_")
