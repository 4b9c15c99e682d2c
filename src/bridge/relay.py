"""Bridges one Twilio Media Stream to one OpenAI Realtime connection.

The caller pump (Twilio -> OpenAI) runs in the websocket handler's task, the AI
pump (OpenAI -> Twilio) in a task of its own. Each pump handles its events one at
a time, so tool calls for a call never overlap. The only cross-pump coordination
is the first conversational turn, which waits until both the stream has started
and the AI connection is configured, then goes out exactly once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from websockets.exceptions import ConnectionClosed

from bridge.errors import UnsupportedToolError
from bridge.schemas import ToolResult
from bridge.sessions import CallSession, SessionRegistry, generate_session_id
from integrations import openai_realtime as realtime
from integrations.twilio_streaming import (
    StreamStart,
    inbound_media_payload,
    media_frame,
    parse_twilio_ws_message,
)

if TYPE_CHECKING:  # pragma: no cover
    from bridge.tools import ToolDispatcher
    from db.repository import PatientRepository

LOGGER = logging.getLogger(__name__)

DEFAULT_FIRST_MESSAGE = "Hello, how can I assist you?"
TOOL_RESPONSE_INSTRUCTIONS = "Respond to the user based on this information: {message}. Be professional and clear."


class RelayState(str, Enum):
    AWAITING_UPSTREAM = "awaiting_upstream"
    BRIDGING = "bridging"
    CLOSING = "closing"
    CLOSED = "closed"


class CallerStream(Protocol):
    """The parts of a server-side websocket the relay uses (FastAPI's WebSocket fits)."""

    def iter_text(self) -> AsyncIterator[str]: ...

    async def send_text(self, data: str) -> None: ...


Connector = Callable[[], Awaitable[realtime.RealtimeConnection]]


class AudioRelay:
    def __init__(
        self,
        caller: CallerStream,
        *,
        registry: SessionRegistry,
        dispatcher: ToolDispatcher,
        repository: PatientRepository,
        connector: Connector,
        session_config: dict[str, Any],
        session_id_hint: str | None = None,
    ) -> None:
        self._caller = caller
        self._registry = registry
        self._dispatcher = dispatcher
        self._repo = repository
        self._connector = connector
        self._session_config = session_config
        self._session_id_hint = session_id_hint

        self.state = RelayState.AWAITING_UPSTREAM
        self._session: CallSession | None = None
        self._stream_sid: str | None = None

        self._upstream: realtime.RealtimeConnection | None = None
        self._upstream_open = False
        self._upstream_ready = False
        self._upstream_task: asyncio.Task | None = None

        self._queued_first_turn: str | None = None
        self._first_turn_sent = False
        self._closed = asyncio.Event()

    @property
    def session(self) -> CallSession | None:
        return self._session

    @property
    def stream_sid(self) -> str | None:
        return self._stream_sid

    @property
    def upstream_open(self) -> bool:
        return self._upstream_open

    async def run(self) -> None:
        """Relay until the caller stream ends, then tear down."""

        self.state = RelayState.BRIDGING
        self._upstream_task = asyncio.create_task(self._run_upstream(), name="openai-realtime")
        try:
            async for message in self._caller.iter_text():
                await self.handle_caller_message(message)
        finally:
            await self.close()

    # Twilio -> OpenAI

    async def handle_caller_message(self, message: str) -> None:
        if self.state is not RelayState.BRIDGING:
            return
        try:
            data = parse_twilio_ws_message(message)
        except ValueError:
            LOGGER.warning("Dropping malformed Twilio frame: %.200r", message)
            return

        event = data.get("event")
        try:
            if event == "media":
                await self._on_media(data)
            elif event == "start":
                await self._on_start(data)
            elif event == "stop":
                LOGGER.info("Twilio stream %s stopped", self._stream_sid)
            else:
                LOGGER.debug("Ignoring Twilio event %s", event)
        except (ValueError, TypeError, AttributeError, KeyError) as exc:
            LOGGER.warning("Dropping malformed Twilio %s frame: %s", event, exc)

    async def _on_start(self, data: dict[str, Any]) -> None:
        start = StreamStart.from_message(data)

        self._stream_sid = start.stream_sid
        session_id = start.call_sid or self._session_id_hint or generate_session_id()
        session = await self._registry.get_or_create(session_id)
        session.stream_sid = start.stream_sid
        caller_number = start.custom_parameters.get("callerNumber")
        if caller_number:
            session.caller_number = caller_number
        self._session = session
        LOGGER.info(
            "Stream %s started for call %s (caller %s)",
            start.stream_sid,
            session_id,
            session.caller_number or "unknown",
        )

        if not self._first_turn_sent and self._queued_first_turn is None:
            self._queued_first_turn = start.custom_parameters.get("firstMessage") or DEFAULT_FIRST_MESSAGE
        await self._release_first_turn()

    async def _on_media(self, data: dict[str, Any]) -> None:
        payload = inbound_media_payload(data)
        if payload is None or not self._upstream_open:
            return
        await self._send_upstream(realtime.input_audio_append(payload))

    async def _release_first_turn(self) -> None:
        if self._queued_first_turn is None or not self._upstream_ready:
            return
        text, self._queued_first_turn = self._queued_first_turn, None
        self._first_turn_sent = True
        LOGGER.info("Sending first turn to the AI service")
        await self._send_upstream(realtime.user_text_item(text))
        await self._send_upstream(realtime.response_create())

    async def _send_upstream(self, event: dict[str, Any]) -> bool:
        upstream = self._upstream
        if upstream is None or not self._upstream_open:
            return False
        try:
            await upstream.send(realtime.encode_event(event))
        except ConnectionClosed as exc:
            self._upstream_open = False
            LOGGER.warning("AI connection closed while sending %s: %s", event.get("type"), exc)
            return False
        return True

    # OpenAI -> Twilio

    async def _run_upstream(self) -> None:
        try:
            upstream = await self._connector()
        except Exception:
            LOGGER.exception("Connecting to the AI service failed; continuing without AI responses")
            return

        if self.state is not RelayState.BRIDGING:
            await upstream.close()
            return

        self._upstream = upstream
        self._upstream_open = True
        LOGGER.info("Connected to the AI service")
        try:
            await self._send_upstream(self._session_config)
            self._upstream_ready = True
            await self._release_first_turn()
            async for message in upstream:
                await self.handle_ai_message(message)
        except ConnectionClosed as exc:
            LOGGER.warning("AI connection closed: %s", exc)
        finally:
            self._upstream_open = False

    async def handle_ai_message(self, message: str | bytes) -> None:
        try:
            event = realtime.parse_event(message)
        except ValueError:
            LOGGER.warning("Dropping malformed AI event: %.200r", message)
            return

        event_type = event.get("type")
        try:
            await self._dispatch_ai_event(event_type, event)
        except (ValueError, TypeError, AttributeError, KeyError) as exc:
            LOGGER.warning("Dropping malformed AI %s event: %s", event_type, exc)

    async def _dispatch_ai_event(self, event_type: Any, event: dict[str, Any]) -> None:
        if event_type in realtime.AUDIO_DELTA_EVENTS:
            await self._forward_audio(event.get("delta"))
        elif event_type == realtime.FUNCTION_CALL_DONE:
            await self._handle_tool_call(event)
        elif event_type == realtime.RESPONSE_DONE:
            text = realtime.agent_transcript(event)
            if text:
                self._record("agent", text)
        elif event_type == realtime.INPUT_TRANSCRIPTION_DONE:
            text = str(event.get("transcript") or "").strip()
            if text:
                self._record("user", text)
        elif event_type == realtime.ERROR:
            LOGGER.warning("AI service error: %s", event.get("error"))
        elif event_type in realtime.INFO_EVENTS:
            LOGGER.debug("Received event: %s", event_type)

    def _record(self, speaker: str, text: str) -> None:
        if self._session is None:
            LOGGER.debug("No session yet; %s utterance not recorded", speaker)
            return
        if speaker == "agent":
            self._session.transcript.add_agent(text)
        else:
            self._session.transcript.add_user(text)
        LOGGER.debug("%s (%s): %s", speaker.capitalize(), self._session.session_id, text)

    async def _forward_audio(self, delta: Any) -> None:
        if not delta or self.state is not RelayState.BRIDGING or self._stream_sid is None:
            return
        try:
            await self._caller.send_text(media_frame(self._stream_sid, str(delta)))
        except Exception:
            LOGGER.exception("Forwarding audio to the caller failed")

    async def _handle_tool_call(self, event: dict[str, Any]) -> None:
        name = str(event.get("name") or "")
        profile = self._session.profile if self._session else None
        LOGGER.info("AI called tool %s", name)
        try:
            result = await self._dispatcher.dispatch(name, event.get("arguments"), profile)
        except UnsupportedToolError as exc:
            LOGGER.warning("AI requested unsupported tool %r", exc.name)
            result = ToolResult(message=exc.detail, ok=False)

        await self._send_upstream(realtime.function_call_output(event.get("call_id"), result.message))
        await self._send_upstream(
            realtime.response_create(TOOL_RESPONSE_INSTRUCTIONS.format(message=result.message))
        )

    # Teardown

    async def close(self) -> None:
        """Close the AI connection, flush the transcript and evict the session.

        Safe to call more than once; later calls wait for the first to finish.
        """

        if self.state in (RelayState.CLOSING, RelayState.CLOSED):
            await self._closed.wait()
            return
        self.state = RelayState.CLOSING

        task = self._upstream_task
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        upstream = self._upstream
        self._upstream_open = False
        if upstream is not None:
            await upstream.close()

        session = self._session
        if session is not None:
            LOGGER.info("Caller disconnected from call %s", session.session_id)
            LOGGER.debug("Full transcript:\n%s", session.transcript.text())
            await session.transcript.flush(self._repo, session.profile)
            await self._registry.remove(session.session_id)

        self.state = RelayState.CLOSED
        self._closed.set()
