"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from bridge.coordinator import VoiceBridge


@lru_cache(maxsize=1)
def _bridge_factory() -> VoiceBridge:
    # One bridge per process: it owns the session registry and attempt counters.
    from bridge.coordinator import VoiceBridge

    return VoiceBridge()


def get_bridge() -> VoiceBridge:
    return _bridge_factory()
