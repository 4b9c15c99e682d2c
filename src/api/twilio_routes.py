"""Twilio Voice integration.

This module provides:
- TwiML webhooks collecting the patient's user ID and password over DTMF.
- The Media Streams websocket that bridges the call to the AI assistant.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, Request, Response, WebSocket

from api.dependencies import get_bridge
from bridge.coordinator import AuthDecision
from config.settings import get_settings
from integrations.twilio_client import verify_twilio_signature

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/twilio", tags=["twilio"])

ASK_USER_ID = "Please enter your user ID followed by the pound key."
ASK_PASSWORD = "Thank you. Now, please enter your 6 digit password followed by the pound key."
TRY_AGAIN = "Please try again."
NO_INPUT = "You did not enter any input. Please try again."
LOCKED_OUT = "Sorry, you have exceeded the maximum number of attempts. Goodbye."


def _attr(value: str) -> str:
    return escape(value, {'"': "&quot;"})


def _twiml_response(xml: str) -> Response:
    # Twilio expects application/xml
    return Response(content=xml, media_type="application/xml")


def _twiml_gather_digits(*, say_text: str, action_url: str, fallback_text: str) -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        f"<Say>{escape(say_text)}</Say>"
        f"<Gather input=\"dtmf\" finishOnKey=\"#\" action=\"{_attr(action_url)}\" method=\"POST\">"
        "<Pause length=\"3\"/>"
        "</Gather>"
        f"<Say>{escape(fallback_text)}</Say>"
        "</Response>"
    )


def _twiml_hangup(*, say_text: str) -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        f"<Say>{escape(say_text)}</Say>"
        "<Pause length=\"1\"/>"
        "<Hangup/>"
        "</Response>"
    )


def _twiml_connect_stream(*, say_text: str, stream_url: str, parameters: dict[str, str]) -> str:
    params = "".join(
        f"<Parameter name=\"{_attr(name)}\" value=\"{_attr(value)}\" />" for name, value in parameters.items()
    )
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        f"<Say>{escape(say_text)}</Say>"
        "<Pause length=\"1\"/>"
        "<Connect>"
        f"<Stream url=\"{_attr(stream_url)}\">{params}</Stream>"
        "</Connect>"
        "</Response>"
    )


def _to_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url.removeprefix("https://")
    if http_url.startswith("http://"):
        return "ws://" + http_url.removeprefix("http://")
    return http_url


def _webhook_url(request: Request, name: str, path: str) -> str:
    settings = get_settings()
    if settings.public_base_url:
        return f"{settings.public_base_url.rstrip('/')}/api/twilio/{path}"
    return str(request.url_for(name))


def _stream_url(request: Request) -> str:
    settings = get_settings()
    if settings.public_base_url:
        return _to_ws_url(f"{settings.public_base_url.rstrip('/')}/api/twilio/media-stream")
    # Twilio only connects over TLS; assume the host is fronted by one.
    host = request.headers.get("host") or request.url.netloc
    return f"wss://{host}/api/twilio/media-stream"


@router.api_route(
    "/incoming-call",
    methods=["GET", "POST"],
    dependencies=[Depends(verify_twilio_signature)],
)
async def twilio_incoming_call(request: Request) -> Response:
    action = _webhook_url(request, "twilio_process_user_id", "process-user-id")
    return _twiml_response(_twiml_gather_digits(say_text=ASK_USER_ID, action_url=action, fallback_text=TRY_AGAIN))


@router.post("/process-user-id", dependencies=[Depends(verify_twilio_signature)])
async def twilio_process_user_id(request: Request, bridge=Depends(get_bridge)) -> Response:
    form = await request.form()
    user_id = str(form.get("Digits") or "").strip()

    decision = await bridge.check_identifier(user_id)
    if decision is AuthDecision.ACCEPTED:
        action = _webhook_url(request, "twilio_process_password", "process-password")
        action = f"{action}?{urlencode({'userId': user_id})}"
        return _twiml_response(_twiml_gather_digits(say_text=ASK_PASSWORD, action_url=action, fallback_text=NO_INPUT))

    if decision is AuthDecision.LOCKED_OUT:
        return _twiml_response(_twiml_hangup(say_text=LOCKED_OUT))

    action = _webhook_url(request, "twilio_process_user_id", "process-user-id")
    return _twiml_response(_twiml_gather_digits(say_text=TRY_AGAIN, action_url=action, fallback_text=NO_INPUT))


@router.post("/process-password", dependencies=[Depends(verify_twilio_signature)])
async def twilio_process_password(request: Request, bridge=Depends(get_bridge)) -> Response:
    form = await request.form()
    user_id = str(request.query_params.get("userId") or "").strip()
    password = str(form.get("Digits") or "").strip()
    call_sid = str(form.get("CallSid") or "").strip() or None

    check = await bridge.check_credential(call_sid, user_id, password)
    if check.decision is AuthDecision.ACCEPTED and check.profile is not None:
        first_message = check.first_message or ""
        return _twiml_response(
            _twiml_connect_stream(
                say_text=f"Login successful. {first_message}",
                stream_url=_stream_url(request),
                parameters={
                    "firstMessage": first_message,
                    "callerNumber": check.profile.phone_number or "Unknown",
                },
            )
        )

    if check.decision is AuthDecision.LOCKED_OUT:
        return _twiml_response(_twiml_hangup(say_text=LOCKED_OUT))

    action = _webhook_url(request, "twilio_process_password", "process-password")
    action = f"{action}?{urlencode({'userId': user_id})}"
    return _twiml_response(_twiml_gather_digits(say_text=TRY_AGAIN, action_url=action, fallback_text=TRY_AGAIN))


@router.websocket("/media-stream")
async def twilio_media_stream(websocket: WebSocket, bridge=Depends(get_bridge)) -> None:
    await websocket.accept()
    LOGGER.info("Client connected to media-stream")
    relay = bridge.create_relay(
        websocket,
        session_id_hint=websocket.headers.get("x-twilio-call-sid"),
    )
    await relay.run()
