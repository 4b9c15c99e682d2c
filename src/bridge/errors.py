"""Domain-specific exceptions for the voice bridge.

These exceptions are safe to import from API layers without opening any sockets.
"""

from __future__ import annotations


class BridgeError(Exception):
    default_detail: str = "Voice bridge error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class DatabaseOperationError(BridgeError):
    default_detail = "Database operation failed."


class ProfileAlreadyBoundError(BridgeError):
    default_detail = "A different patient is already bound to this call."


class UnsupportedToolError(BridgeError):
    default_detail = "I'm sorry, I can't help with that request."

    def __init__(self, name: str) -> None:
        super().__init__()
        self.name = name


class ToolArgumentsError(BridgeError):
    default_detail = "Some required details are missing. Please ask the patient for them."
