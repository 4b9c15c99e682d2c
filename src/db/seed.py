"""Sample patients for local development and demos.

Run with ``python -m db.seed`` from ``src/``.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import get_settings
from db.base import AsyncSessionFactory, init_db
from db.models import MedicalHistory, User

LOGGER = logging.getLogger(__name__)

SAMPLE_USERS = [
    {
        "user_id": "12345678",
        "password": "123456",
        "phone_number": "+1234567890",
        "name": "John Doe",
        "date_of_birth": "1980-05-15",
        "allergies": "Penicillin, Peanuts",
        "conditions": "Hypertension, Asthma",
        "medications": "Lisinopril 10mg, Albuterol inhaler",
        "last_visit": "2024-03-15",
        "primary_doctor": "Dr. Smith",
    },
    {
        "user_id": "23456789",
        "password": "234567",
        "phone_number": "+1234567891",
        "name": "Jane Smith",
        "date_of_birth": "1992-10-12",
        "allergies": "None",
        "conditions": "None",
        "medications": "None",
        "last_visit": "2024-01-10",
        "primary_doctor": "Dr. Johnson",
    },
]

SAMPLE_MEDICAL_HISTORY = [
    {
        "phone_number": "+1234567890",
        "date": "2024-03-15",
        "type": "Check-up",
        "description": "Regular blood pressure check. BP: 125/82. Prescribed medication refill.",
        "doctor": "Dr. Smith",
    },
    {
        "phone_number": "+1234567890",
        "date": "2024-02-01",
        "type": "Urgent Care",
        "description": "Acute asthma exacerbation. Administered nebulizer treatment.",
        "doctor": "Dr. Johnson",
    },
]


async def seed_sample_data(session_factory: async_sessionmaker[AsyncSession] | None = None) -> int:
    """Insert the sample patients that are not present yet.

    Returns the number of patients inserted. History is only added for new patients
    so running the seeder twice does not duplicate rows.
    """

    factory = session_factory or AsyncSessionFactory
    inserted = 0
    async with factory() as session:
        for payload in SAMPLE_USERS:
            existing = await session.execute(select(User.id).where(User.user_id == payload["user_id"]))
            if existing.scalar_one_or_none() is not None:
                continue

            user = User(**payload)
            user.medical_history = [
                MedicalHistory(
                    date=entry["date"],
                    type=entry["type"],
                    description=entry["description"],
                    doctor=entry["doctor"],
                )
                for entry in SAMPLE_MEDICAL_HISTORY
                if entry["phone_number"] == payload["phone_number"]
            ]
            session.add(user)
            inserted += 1
        await session.commit()

    LOGGER.info("Sample data populated (%s new patients)", inserted)
    return inserted


async def _amain() -> None:
    await init_db()
    await seed_sample_data()


def main() -> None:
    logging.basicConfig(level=get_settings().log_level)
    asyncio.run(_amain())


if __name__ == "__main__":
    main()
