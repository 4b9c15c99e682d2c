"""Twilio Media Streams frame helpers.

Twilio sends JSON text frames discriminated by ``event``: ``connected``, ``start``,
``media`` (base64 G.711 mu-law, 8kHz), ``mark`` and ``stop``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class StreamStart:
    stream_sid: str
    call_sid: str | None
    custom_parameters: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> StreamStart:
        start = message.get("start") or {}
        if not isinstance(start, dict):
            raise ValueError("start event payload is not an object")
        stream_sid = str(start.get("streamSid") or message.get("streamSid") or "")
        if not stream_sid:
            raise ValueError("start event without streamSid")
        params = start.get("customParameters") or {}
        if not isinstance(params, dict):
            raise ValueError("customParameters is not an object")
        return cls(
            stream_sid=stream_sid,
            call_sid=str(start.get("callSid") or "").strip() or None,
            custom_parameters={str(k): str(v) for k, v in params.items()},
        )


def parse_twilio_ws_message(text: str | bytes) -> dict[str, Any]:
    message = json.loads(text)
    if not isinstance(message, dict):
        raise ValueError("Twilio frame is not a JSON object")
    return message


def inbound_media_payload(message: dict[str, Any]) -> str | None:
    """Return the caller's base64 audio payload of a ``media`` frame."""

    media = message.get("media") or {}
    if not isinstance(media, dict):
        raise ValueError("media payload is not an object")
    if media.get("track") and media.get("track") != "inbound":
        return None
    payload = media.get("payload")
    if isinstance(payload, str) and payload:
        return payload
    return None


def media_frame(stream_sid: str, payload_b64: str) -> str:
    return json.dumps(
        {
            "event": "media",
            "streamSid": stream_sid,
            "media": {"payload": payload_b64},
        }
    )
