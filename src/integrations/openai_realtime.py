"""OpenAI Realtime API connectivity and event builders.

Only the events the phone line uses are modelled here. Everything is plain JSON
sent over a websocket; see https://platform.openai.com/docs/api-reference/realtime.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urlencode

import websockets

from config.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)

# Inbound event types.
AUDIO_DELTA_EVENTS = frozenset({"response.audio.delta", "response.output_audio.delta"})
FUNCTION_CALL_DONE = "response.function_call_arguments.done"
RESPONSE_DONE = "response.done"
INPUT_TRANSCRIPTION_DONE = "conversation.item.input_audio_transcription.completed"
ERROR = "error"
INFO_EVENTS = frozenset(
    {
        "session.created",
        "session.updated",
        "rate_limits.updated",
        "response.content.done",
        "response.text.done",
        "input_audio_buffer.committed",
        "input_audio_buffer.speech_started",
        "input_audio_buffer.speech_stopped",
    }
)


class RealtimeConnection(Protocol):
    """The subset of a websocket client connection the bridge relies on."""

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...


@dataclass(frozen=True)
class RealtimeConfig:
    api_key: str
    url: str
    model: str
    voice: str
    temperature: float
    transcription_model: str

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RealtimeConfig:
        settings = settings or get_settings()
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is not configured")
        return cls(
            api_key=settings.openai_api_key,
            url=settings.openai_realtime_url,
            model=settings.openai_realtime_model,
            voice=settings.openai_voice,
            temperature=settings.openai_temperature,
            transcription_model=settings.openai_transcription_model,
        )

    @property
    def ws_url(self) -> str:
        return f"{self.url}?{urlencode({'model': self.model})}"

    def headers(self) -> list[tuple[str, str]]:
        return [
            ("Authorization", f"Bearer {self.api_key}"),
            ("OpenAI-Beta", "realtime=v1"),
        ]


async def connect_realtime(config: RealtimeConfig) -> RealtimeConnection:
    LOGGER.info("Connecting to OpenAI Realtime model=%s", config.model)
    return await websockets.connect(
        config.ws_url,
        additional_headers=config.headers(),
        ping_interval=20,
        ping_timeout=20,
        max_size=None,
    )


def session_update(
    config: RealtimeConfig,
    *,
    instructions: str,
    tools: Sequence[dict[str, Any]],
) -> dict[str, Any]:
    return {
        "type": "session.update",
        "session": {
            "turn_detection": {"type": "server_vad"},
            "input_audio_format": "g711_ulaw",
            "output_audio_format": "g711_ulaw",
            "voice": config.voice,
            "instructions": instructions,
            "modalities": ["text", "audio"],
            "temperature": config.temperature,
            "input_audio_transcription": {"model": config.transcription_model},
            "tools": list(tools),
            "tool_choice": "auto",
        },
    }


def input_audio_append(payload_b64: str) -> dict[str, Any]:
    return {"type": "input_audio_buffer.append", "audio": payload_b64}


def user_text_item(text: str) -> dict[str, Any]:
    return {
        "type": "conversation.item.create",
        "item": {
            "type": "message",
            "role": "user",
            "content": [{"type": "input_text", "text": text}],
        },
    }


def function_call_output(call_id: str | None, output: str) -> dict[str, Any]:
    item: dict[str, Any] = {"type": "function_call_output", "output": output}
    if call_id:
        item["call_id"] = call_id
    return {"type": "conversation.item.create", "item": item}


def response_create(instructions: str | None = None) -> dict[str, Any]:
    if instructions is None:
        return {"type": "response.create"}
    return {
        "type": "response.create",
        "response": {
            "modalities": ["text", "audio"],
            "instructions": instructions,
        },
    }


def agent_transcript(event: dict[str, Any]) -> str | None:
    """Return the spoken transcript of a ``response.done`` event, if any."""

    response = event.get("response") or {}
    if not isinstance(response, dict):
        raise ValueError("response.done without a response object")
    for item in response.get("output") or []:
        if not isinstance(item, dict):
            continue
        for content in item.get("content") or []:
            transcript = content.get("transcript") if isinstance(content, dict) else None
            if transcript:
                return str(transcript)
    return None


def encode_event(event: dict[str, Any]) -> str:
    return json.dumps(event)


def parse_event(message: str | bytes) -> dict[str, Any]:
    event = json.loads(message)
    if not isinstance(event, dict):
        raise ValueError("Realtime event is not a JSON object")
    return event
