"""Pydantic schemas exchanged between the bridge components."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PatientProfile(BaseModel):
    """Read-only view of an authenticated patient."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    user_id: str
    password: str = Field(repr=False)
    phone_number: str | None = None
    name: str
    date_of_birth: str | None = None
    allergies: str | None = None
    conditions: str | None = None
    medications: str | None = None
    last_visit: str | None = None
    primary_doctor: str | None = None

    def summary(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "dob": self.date_of_birth,
            "allergies": self.allergies,
            "conditions": self.conditions,
            "medications": self.medications,
            "lastVisit": self.last_visit,
        }


class MedicalHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    date: str
    type: str
    description: str
    doctor: str


class _ToolArguments(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("*")
    @classmethod
    def text_not_empty(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("Value may not be empty.")
        return text


class ScheduleAppointmentArgs(_ToolArguments):
    doctor: str
    date: str
    reason: str


class SendDoctorMessageArgs(_ToolArguments):
    doctor: str
    subject: str
    content: str


class ToolResult(BaseModel):
    """Outcome of a tool call, phrased for the AI to relay to the caller."""

    message: str
    ok: bool = True
