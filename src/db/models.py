"""SQLAlchemy models for patients and the records the phone line writes."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Patient record, also holding the keypad credentials."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    password: Mapped[str] = mapped_column(String(64))
    phone_number: Mapped[str | None] = mapped_column(String(32), unique=True)
    name: Mapped[str] = mapped_column(String(128))
    date_of_birth: Mapped[str | None] = mapped_column(String(16))
    allergies: Mapped[str | None] = mapped_column(Text())
    conditions: Mapped[str | None] = mapped_column(Text())
    medications: Mapped[str | None] = mapped_column(Text())
    last_visit: Mapped[str | None] = mapped_column(String(16))
    primary_doctor: Mapped[str | None] = mapped_column(String(128))

    medical_history: Mapped[list[MedicalHistory]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )


class MedicalHistory(Base):
    """Past visits and treatments."""

    __tablename__ = "medical_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    date: Mapped[str] = mapped_column(String(16))
    type: Mapped[str] = mapped_column(String(64))
    description: Mapped[str] = mapped_column(Text())
    doctor: Mapped[str] = mapped_column(String(128))

    user: Mapped[User] = relationship(back_populates="medical_history")


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    doctor: Mapped[str] = mapped_column(String(128))
    # Free-form, as spoken by the caller ("next Tuesday at 3pm").
    date: Mapped[str] = mapped_column(String(64))
    reason: Mapped[str] = mapped_column(Text())
    status: Mapped[str] = mapped_column(String(32), default="scheduled")


class DoctorMessage(Base):
    """Message left for a doctor, delivered out of band."""

    __tablename__ = "emails"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    doctor: Mapped[str] = mapped_column(String(128))
    subject: Mapped[str] = mapped_column(String(256))
    content: Mapped[str] = mapped_column(Text())
    timestamp: Mapped[datetime] = mapped_column(default=_utcnow)
    status: Mapped[str] = mapped_column(String(32), default="pending")


class CallRecord(Base):
    """Transcript of a finished call."""

    __tablename__ = "calls"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    transcript: Mapped[str] = mapped_column(Text())
    date: Mapped[datetime] = mapped_column(default=_utcnow, index=True)
