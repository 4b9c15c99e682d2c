"""Repository utilities for reading patients and persisting call outcomes."""

from __future__ import annotations

import logging

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bridge.errors import DatabaseOperationError
from bridge.schemas import MedicalHistoryEntry, PatientProfile
from db.base import AsyncSessionFactory
from db.models import Appointment, CallRecord, DoctorMessage, MedicalHistory, User

LOGGER = logging.getLogger(__name__)


class PatientRepository:
    """Async repository encapsulating storage operations."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or AsyncSessionFactory

    async def get_by_identifier(self, identifier: str) -> PatientProfile | None:
        query = select(User).where(User.user_id == identifier)
        return await self._fetch_profile(query)

    async def find_by_credentials(self, identifier: str, password: str) -> PatientProfile | None:
        query = select(User).where(User.user_id == identifier, User.password == password)
        return await self._fetch_profile(query)

    async def _fetch_profile(self, query) -> PatientProfile | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                user = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise DatabaseOperationError(f"Patient lookup failed: {exc}") from exc
        if user is None:
            return None
        return PatientProfile.model_validate(user)

    async def list_medical_history(self, patient_id: int) -> list[MedicalHistoryEntry]:
        """Return history entries, most recent first."""

        query = (
            select(MedicalHistory)
            .where(MedicalHistory.user_id == patient_id)
            .order_by(desc(MedicalHistory.date), desc(MedicalHistory.id))
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                rows = list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise DatabaseOperationError(f"Medical history lookup failed: {exc}") from exc
        return [MedicalHistoryEntry.model_validate(row) for row in rows]

    async def latest_call_transcript(self, patient_id: int) -> str | None:
        query = (
            select(CallRecord.transcript)
            .where(CallRecord.user_id == patient_id)
            .order_by(desc(CallRecord.date), desc(CallRecord.id))
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise DatabaseOperationError(f"Call lookup failed: {exc}") from exc

    async def add_appointment(self, patient_id: int, *, doctor: str, date: str, reason: str) -> int:
        appointment = Appointment(
            user_id=patient_id,
            doctor=doctor,
            date=date,
            reason=reason,
            status="scheduled",
        )
        return await self._insert(appointment)

    async def add_doctor_message(
        self,
        patient_id: int,
        *,
        doctor: str,
        subject: str,
        content: str,
    ) -> int:
        message = DoctorMessage(
            user_id=patient_id,
            doctor=doctor,
            subject=subject,
            content=content,
            status="pending",
        )
        return await self._insert(message)

    async def save_transcript(self, patient_id: int, transcript: str) -> int:
        return await self._insert(CallRecord(user_id=patient_id, transcript=transcript))

    async def list_appointments(self, patient_id: int) -> list[Appointment]:
        query = select(Appointment).where(Appointment.user_id == patient_id).order_by(Appointment.id)
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise DatabaseOperationError(f"Appointment lookup failed: {exc}") from exc

    async def _insert(self, row) -> int:
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except SQLAlchemyError as exc:
            LOGGER.error("Insert into %s failed: %s", row.__tablename__, exc)
            raise DatabaseOperationError(f"Insert into {row.__tablename__} failed.") from exc
        return row.id
