"""In-memory registry of active calls."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from bridge.errors import ProfileAlreadyBoundError
from bridge.schemas import PatientProfile
from bridge.transcript import TranscriptRecorder

LOGGER = logging.getLogger(__name__)


def generate_session_id() -> str:
    return f"session_{int(time.time() * 1000)}"


@dataclass
class CallSession:
    session_id: str
    transcript: TranscriptRecorder = field(default_factory=TranscriptRecorder)
    caller_number: str | None = None
    stream_sid: str | None = None
    profile: PatientProfile | None = None

    def bind_profile(self, profile: PatientProfile) -> None:
        """Attach the authenticated patient. Binding is one-way."""

        if self.profile is not None and self.profile.id != profile.id:
            raise ProfileAlreadyBoundError()
        self.profile = profile


class SessionRegistry:
    """Maps call ids to sessions for every active call.

    Note: This is a single-process store. For multi-worker deployments, replace
    with Redis or another shared store.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._sessions: dict[str, CallSession] = {}

    async def get_or_create(self, session_id: str) -> CallSession:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = CallSession(session_id=session_id)
                self._sessions[session_id] = session
                LOGGER.debug("Session %s created", session_id)
            return session

    async def get(self, session_id: str) -> CallSession | None:
        async with self._lock:
            return self._sessions.get(session_id)

    async def bind_profile(
        self,
        session_id: str,
        profile: PatientProfile,
        *,
        caller_number: str | None = None,
    ) -> CallSession:
        session = await self.get_or_create(session_id)
        session.bind_profile(profile)
        if caller_number:
            session.caller_number = caller_number
        return session

    async def remove(self, session_id: str) -> CallSession | None:
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            LOGGER.debug("Session %s removed", session_id)
        return session

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
