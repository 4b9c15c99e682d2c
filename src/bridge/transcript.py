"""Per-call conversation transcript."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bridge.errors import DatabaseOperationError

if TYPE_CHECKING:  # pragma: no cover
    from bridge.schemas import PatientProfile
    from db.repository import PatientRepository

LOGGER = logging.getLogger(__name__)


class TranscriptRecorder:
    """Append-only buffer of labelled utterances, in the order events arrive."""

    def __init__(self) -> None:
        self._lines: list[tuple[str, str]] = []
        self._flushed = False

    def add_agent(self, text: str) -> None:
        self._append("Agent", text)

    def add_user(self, text: str) -> None:
        self._append("User", text.strip())

    def _append(self, speaker: str, text: str) -> None:
        if self._flushed:
            LOGGER.warning("Dropping %s utterance received after transcript flush", speaker)
            return
        self._lines.append((speaker, text))

    @property
    def lines(self) -> list[tuple[str, str]]:
        return list(self._lines)

    @property
    def flushed(self) -> bool:
        return self._flushed

    def text(self) -> str:
        return "".join(f"{speaker}: {text}\n" for speaker, text in self._lines)

    async def flush(self, repository: PatientRepository, profile: PatientProfile | None) -> bool:
        """Persist the transcript once. Failures are logged, never raised."""

        if self._flushed:
            return False
        self._flushed = True

        if profile is None:
            LOGGER.error("No authenticated patient bound to the call; transcript not saved")
            return False

        try:
            await repository.save_transcript(profile.id, self.text())
        except DatabaseOperationError:
            LOGGER.exception("Saving transcript for patient %s failed", profile.id)
            return False
        return True
