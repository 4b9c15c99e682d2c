from __future__ import annotations

import os
import sys
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# Must be set before importing modules that create the SQLAlchemy engine.
_RUNTIME_DIR = Path(tempfile.mkdtemp(prefix="patient-line-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{(_RUNTIME_DIR / 'app.db').as_posix()}"
os.environ["DATA_DIR"] = str(_RUNTIME_DIR)
os.environ["AUTO_CREATE_DB_SCHEMA"] = "true"
os.environ["SEED_SAMPLE_DATA"] = "false"
os.environ["OPENAI_API_KEY"] = "sk-test"
os.environ.pop("PUBLIC_BASE_URL", None)
os.environ.pop("TWILIO_VALIDATE_SIGNATURES", None)

from bridge.errors import DatabaseOperationError  # noqa: E402
from bridge.schemas import MedicalHistoryEntry, PatientProfile  # noqa: E402


class FakeRepository:
    """In-memory stand-in for PatientRepository."""

    def __init__(self, users: list[PatientProfile] | None = None) -> None:
        self.users = {user.user_id: user for user in users or []}
        self.history: dict[int, list[MedicalHistoryEntry]] = {}
        self.appointments: list[dict] = []
        self.messages: list[dict] = []
        self.calls: list[tuple[int, str]] = []
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise DatabaseOperationError("database unavailable")

    async def get_by_identifier(self, identifier: str) -> PatientProfile | None:
        self._check()
        return self.users.get(identifier)

    async def find_by_credentials(self, identifier: str, password: str) -> PatientProfile | None:
        self._check()
        user = self.users.get(identifier)
        if user is not None and user.password == password:
            return user
        return None

    async def list_medical_history(self, patient_id: int) -> list[MedicalHistoryEntry]:
        self._check()
        return list(self.history.get(patient_id, []))

    async def latest_call_transcript(self, patient_id: int) -> str | None:
        self._check()
        transcripts = [text for owner, text in self.calls if owner == patient_id]
        return transcripts[-1] if transcripts else None

    async def add_appointment(self, patient_id: int, *, doctor: str, date: str, reason: str) -> int:
        self._check()
        self.appointments.append(
            {"user_id": patient_id, "doctor": doctor, "date": date, "reason": reason, "status": "scheduled"}
        )
        return len(self.appointments)

    async def add_doctor_message(self, patient_id: int, *, doctor: str, subject: str, content: str) -> int:
        self._check()
        self.messages.append(
            {"user_id": patient_id, "doctor": doctor, "subject": subject, "content": content, "status": "pending"}
        )
        return len(self.messages)

    async def save_transcript(self, patient_id: int, transcript: str) -> int:
        self._check()
        self.calls.append((patient_id, transcript))
        return len(self.calls)


@pytest.fixture()
def patient() -> PatientProfile:
    return PatientProfile(
        id=1,
        user_id="12345678",
        password="123456",
        phone_number="+1234567890",
        name="John Doe",
        date_of_birth="1980-05-15",
        allergies="Penicillin, Peanuts",
        conditions="Hypertension, Asthma",
        medications="Lisinopril 10mg, Albuterol inhaler",
        last_visit="2024-03-15",
        primary_doctor="Dr. Smith",
    )


@pytest.fixture()
def fake_repository(patient: PatientProfile) -> FakeRepository:
    return FakeRepository([patient])


@pytest.fixture()
def voice_bridge(fake_repository: FakeRepository):
    from bridge.coordinator import VoiceBridge

    return VoiceBridge(fake_repository)


@pytest.fixture(scope="session")
def app():
    import importlib

    main = importlib.import_module("main")
    return main.app


@pytest.fixture()
def client(app, voice_bridge):
    # Override the bridge so tests never reach the database or OpenAI.
    import api.dependencies as deps

    app.dependency_overrides[deps.get_bridge] = lambda: voice_bridge

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def repository_factory(tmp_path: Path):
    """Open a PatientRepository on a fresh SQLite file inside the running event loop."""

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
    from sqlalchemy.pool import NullPool

    import db.models  # noqa: F401
    from db.base import Base
    from db.repository import PatientRepository

    url = f"sqlite+aiosqlite:///{(tmp_path / 'repository.db').as_posix()}"

    @asynccontextmanager
    async def _open():
        engine = create_async_engine(url, poolclass=NullPool)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
        try:
            yield PatientRepository(factory), factory
        finally:
            await engine.dispose()

    return _open
