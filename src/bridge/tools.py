"""Backend actions the AI may invoke mid-conversation."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from bridge.errors import DatabaseOperationError, ToolArgumentsError, UnsupportedToolError
from bridge.schemas import PatientProfile, ScheduleAppointmentArgs, SendDoctorMessageArgs, ToolResult

if TYPE_CHECKING:  # pragma: no cover
    from db.repository import PatientRepository

LOGGER = logging.getLogger(__name__)

GET_MEDICAL_HISTORY = "get_medical_history"
SCHEDULE_APPOINTMENT = "schedule_appointment"
SEND_DOCTOR_EMAIL = "send_doctor_email"

PATIENT_NOT_FOUND = "Patient not found in our records."

TOOL_SCHEMAS: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": GET_MEDICAL_HISTORY,
        "description": "Retrieve patient's medical history and information",
        "parameters": {"type": "object", "properties": {}, "required": []},
    },
    {
        "type": "function",
        "name": SCHEDULE_APPOINTMENT,
        "description": "Schedule a doctor's appointment",
        "parameters": {
            "type": "object",
            "properties": {
                "doctor": {"type": "string"},
                "date": {"type": "string"},
                "reason": {"type": "string"},
            },
            "required": ["doctor", "date", "reason"],
        },
    },
    {
        "type": "function",
        "name": SEND_DOCTOR_EMAIL,
        "description": "Send an email to the patient's doctor",
        "parameters": {
            "type": "object",
            "properties": {
                "doctor": {"type": "string"},
                "subject": {"type": "string"},
                "content": {"type": "string"},
            },
            "required": ["doctor", "subject", "content"],
        },
    },
]

ToolHandler = Callable[[PatientProfile, dict[str, Any]], Awaitable[ToolResult]]


def decode_arguments(raw: Any) -> dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, (str, bytes)):
        raise ToolArgumentsError()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ToolArgumentsError() from exc
    if not isinstance(payload, dict):
        raise ToolArgumentsError()
    return payload


class ToolDispatcher:
    """Runs one tool call against the repository for the call's patient."""

    def __init__(self, repository: PatientRepository) -> None:
        self._repo = repository
        self._handlers: dict[str, ToolHandler] = {
            GET_MEDICAL_HISTORY: self._get_medical_history,
            SCHEDULE_APPOINTMENT: self._schedule_appointment,
            SEND_DOCTOR_EMAIL: self._send_doctor_email,
        }

    async def dispatch(
        self,
        name: str,
        arguments: Any,
        profile: PatientProfile | None,
    ) -> ToolResult:
        handler = self._handlers.get(name)
        if handler is None:
            raise UnsupportedToolError(name)

        if profile is None:
            LOGGER.warning("Tool %s invoked without an authenticated patient", name)
            return ToolResult(message=PATIENT_NOT_FOUND, ok=False)

        try:
            payload = decode_arguments(arguments)
        except ToolArgumentsError as exc:
            LOGGER.warning("Tool %s received unparsable arguments: %r", name, arguments)
            return ToolResult(message=exc.detail, ok=False)

        return await handler(profile, payload)

    async def _get_medical_history(self, profile: PatientProfile, payload: dict[str, Any]) -> ToolResult:
        try:
            history = await self._repo.list_medical_history(profile.id)
        except DatabaseOperationError:
            LOGGER.exception("Error getting medical history")
            return ToolResult(message="Error retrieving medical history.", ok=False)

        body = {
            "patient": profile.summary(),
            "history": [entry.model_dump() for entry in history],
        }
        return ToolResult(message=json.dumps(body))

    async def _schedule_appointment(self, profile: PatientProfile, payload: dict[str, Any]) -> ToolResult:
        try:
            args = ScheduleAppointmentArgs.model_validate(payload)
        except ValidationError as exc:
            return self._missing_details(SCHEDULE_APPOINTMENT, exc)

        try:
            await self._repo.add_appointment(
                profile.id,
                doctor=args.doctor,
                date=args.date,
                reason=args.reason,
            )
        except DatabaseOperationError:
            LOGGER.exception("Error scheduling appointment")
            return ToolResult(message="Unable to schedule appointment at this time.", ok=False)

        return ToolResult(message=f"Appointment scheduled with {args.doctor} on {args.date} for {args.reason}.")

    async def _send_doctor_email(self, profile: PatientProfile, payload: dict[str, Any]) -> ToolResult:
        try:
            args = SendDoctorMessageArgs.model_validate(payload)
        except ValidationError as exc:
            return self._missing_details(SEND_DOCTOR_EMAIL, exc)

        try:
            await self._repo.add_doctor_message(
                profile.id,
                doctor=args.doctor,
                subject=args.subject,
                content=args.content,
            )
        except DatabaseOperationError:
            LOGGER.exception("Error sending doctor message")
            return ToolResult(message="Unable to send message at this time.", ok=False)

        return ToolResult(message=f"Message sent to Dr. {args.doctor}. They will respond to your inquiry soon.")

    @staticmethod
    def _missing_details(name: str, exc: ValidationError) -> ToolResult:
        fields = sorted({str(error["loc"][0]) for error in exc.errors() if error.get("loc")})
        LOGGER.info("Tool %s is missing arguments: %s", name, fields)
        detail = ToolArgumentsError.default_detail
        if fields:
            detail = f"{detail} Missing: {', '.join(fields)}."
        return ToolResult(message=detail, ok=False)
