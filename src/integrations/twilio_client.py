"""Twilio webhook request validation."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from twilio.request_validator import RequestValidator

from config.settings import get_settings

LOGGER = logging.getLogger(__name__)


def _public_url(request: Request) -> str:
    # Behind a tunnel or proxy Twilio signs the public URL, not the one we see.
    settings = get_settings()
    if settings.public_base_url:
        url = settings.public_base_url.rstrip("/") + request.url.path
        if request.url.query:
            url = f"{url}?{request.url.query}"
        return url
    return str(request.url)


async def verify_twilio_signature(request: Request) -> None:
    """FastAPI dependency rejecting webhooks that were not signed by Twilio."""

    settings = get_settings()
    if not settings.twilio_validate_signatures:
        return
    if not settings.twilio_auth_token:
        raise RuntimeError("TWILIO_AUTH_TOKEN is required when signature validation is enabled")

    form = await request.form() if request.method == "POST" else {}
    params = {key: str(value) for key, value in form.items()}
    signature = request.headers.get("X-Twilio-Signature", "")

    validator = RequestValidator(settings.twilio_auth_token)
    if not validator.validate(_public_url(request), params, signature):
        LOGGER.warning("Rejected webhook with invalid Twilio signature: %s", request.url.path)
        raise HTTPException(status_code=403, detail="Invalid Twilio signature")
