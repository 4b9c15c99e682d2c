"""Keypad authentication attempt counters."""

from __future__ import annotations

import logging
from collections import OrderedDict
from enum import Enum

LOGGER = logging.getLogger(__name__)

DEFAULT_LOCKOUT_THRESHOLD = 3


class AuthStage(str, Enum):
    IDENTIFIER = "identifier"
    CREDENTIAL = "credential"


class AttemptTracker:
    """Per-identifier attempt counters, one budget per authentication stage.

    Counters live in process memory only and never expire by time. They are
    zeroed on success or lockout by the caller. Increments are not locked per
    identifier, so two concurrent attempts for the same identifier may race.

    With ``max_entries`` set, the least recently touched counter is evicted once
    the cap is exceeded. Without it the map grows with every distinct identifier.
    """

    def __init__(
        self,
        threshold: int = DEFAULT_LOCKOUT_THRESHOLD,
        *,
        max_entries: int | None = None,
    ) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self._max_entries = max_entries
        self._counts: OrderedDict[tuple[str, AuthStage], int] = OrderedDict()

    def record_attempt(self, identifier: str, stage: AuthStage) -> int:
        key = (identifier, stage)
        count = self._counts.pop(key, 0) + 1
        self._counts[key] = count
        if self._max_entries is not None:
            while len(self._counts) > self._max_entries:
                evicted, _ = self._counts.popitem(last=False)
                LOGGER.debug("Evicted attempt counter for %s", evicted)
        return count

    def reset(self, identifier: str, stage: AuthStage) -> None:
        self._counts.pop((identifier, stage), None)

    def count(self, identifier: str, stage: AuthStage) -> int:
        return self._counts.get((identifier, stage), 0)

    def is_locked_out(self, count: int) -> bool:
        return count >= self.threshold

    def __len__(self) -> int:
        return len(self._counts)
