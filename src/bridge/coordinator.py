"""Top-level object shared by every call handled by this process."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from enum import Enum

from bridge.attempts import AttemptTracker, AuthStage
from bridge.auth import IdentityVerifier
from bridge.errors import DatabaseOperationError, ProfileAlreadyBoundError
from bridge.relay import AudioRelay, CallerStream, Connector
from bridge.schemas import PatientProfile
from bridge.sessions import SessionRegistry
from bridge.tools import TOOL_SCHEMAS, ToolDispatcher
from config.settings import Settings, get_settings
from db.repository import PatientRepository
from integrations.openai_realtime import RealtimeConfig, connect_realtime, session_update
from prompts.loader import system_message

LOGGER = logging.getLogger(__name__)

FALLBACK_FIRST_MESSAGE = "Welcome to City Medical Center. How can I assist you today?"


class AuthDecision(str, Enum):
    ACCEPTED = "accepted"
    RETRY = "retry"
    LOCKED_OUT = "locked_out"


@dataclass(frozen=True)
class CredentialCheck:
    decision: AuthDecision
    profile: PatientProfile | None = None
    first_message: str | None = None


class VoiceBridge:
    """Owns the session registry and attempt counters and hands them to each call."""

    def __init__(
        self,
        repository: PatientRepository | None = None,
        *,
        settings: Settings | None = None,
        connector: Connector | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.repository = repository or PatientRepository()
        self.registry = SessionRegistry()
        self.attempts = AttemptTracker(
            self.settings.max_auth_attempts,
            max_entries=self.settings.auth_attempt_max_entries,
        )
        self.verifier = IdentityVerifier(self.repository)
        self.dispatcher = ToolDispatcher(self.repository)
        self._connector = connector

    async def check_identifier(self, identifier: str) -> AuthDecision:
        count = self.attempts.record_attempt(identifier, AuthStage.IDENTIFIER)
        if await self.verifier.identifier_exists(identifier):
            self.attempts.reset(identifier, AuthStage.IDENTIFIER)
            return AuthDecision.ACCEPTED
        return self._reject(identifier, AuthStage.IDENTIFIER, count)

    async def check_credential(self, call_sid: str | None, identifier: str, credential: str) -> CredentialCheck:
        count = self.attempts.record_attempt(identifier, AuthStage.CREDENTIAL)
        profile = await self.verifier.verify(identifier, credential)
        if profile is None:
            return CredentialCheck(self._reject(identifier, AuthStage.CREDENTIAL, count))

        self.attempts.reset(identifier, AuthStage.CREDENTIAL)
        if call_sid:
            try:
                await self.registry.bind_profile(call_sid, profile, caller_number=profile.phone_number)
            except ProfileAlreadyBoundError:
                LOGGER.error("Call %s is already bound to another patient; hanging up", call_sid)
                return CredentialCheck(AuthDecision.LOCKED_OUT)
        else:
            LOGGER.warning("Verified patient %s without a CallSid; tools will be unavailable", profile.id)

        LOGGER.info("Patient %s verified", profile.id)
        return CredentialCheck(AuthDecision.ACCEPTED, profile, await self.first_message(profile))

    def _reject(self, identifier: str, stage: AuthStage, count: int) -> AuthDecision:
        if self.attempts.is_locked_out(count):
            LOGGER.warning("Too many failed %s attempts; disconnecting caller", stage.value)
            self.attempts.reset(identifier, stage)
            return AuthDecision.LOCKED_OUT
        LOGGER.info("Failed %s attempt %s of %s", stage.value, count, self.attempts.threshold)
        return AuthDecision.RETRY

    async def first_message(self, profile: PatientProfile) -> str:
        """Greeting the AI repeats at the start of the conversation."""

        try:
            last_transcript = await self.repository.latest_call_transcript(profile.id)
        except DatabaseOperationError:
            LOGGER.exception("Error getting last call info")
            return FALLBACK_FIRST_MESSAGE

        if last_transcript:
            summary = " ".join(last_transcript.split())
            visit = f'I see your last call summary: "{summary}". How can I assist you today?'
        else:
            visit = f"I see your last visit was on {profile.last_visit}. How can I assist you today?"
        return f"Welcome back {profile.name}. {visit}"

    def create_relay(self, caller: CallerStream, *, session_id_hint: str | None = None) -> AudioRelay:
        config = RealtimeConfig.from_settings(self.settings)
        connector = self._connector or functools.partial(connect_realtime, config)
        return AudioRelay(
            caller,
            registry=self.registry,
            dispatcher=self.dispatcher,
            repository=self.repository,
            connector=connector,
            session_config=session_update(config, instructions=system_message(), tools=TOOL_SCHEMAS),
            session_id_hint=session_id_hint,
        )
