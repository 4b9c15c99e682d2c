"""Identity verification against the patient store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bridge.errors import DatabaseOperationError
from bridge.schemas import PatientProfile

if TYPE_CHECKING:  # pragma: no cover
    from db.repository import PatientRepository

LOGGER = logging.getLogger(__name__)


class IdentityVerifier:
    """Checks keypad-entered identifiers and credentials.

    The credential is compared as a plain string by the store. A lookup error is
    reported the same way as a mismatch so attempt tracking applies uniformly.
    """

    def __init__(self, repository: PatientRepository) -> None:
        self._repo = repository

    async def identifier_exists(self, identifier: str) -> bool:
        if not identifier:
            return False
        try:
            return await self._repo.get_by_identifier(identifier) is not None
        except DatabaseOperationError:
            LOGGER.exception("Identifier lookup failed")
            return False

    async def verify(self, identifier: str, credential: str) -> PatientProfile | None:
        if not identifier or not credential:
            return None
        try:
            return await self._repo.find_by_credentials(identifier, credential)
        except DatabaseOperationError:
            LOGGER.exception("Credential verification failed")
            return None
