"""Failure taxonomy for the kiosk client.

None of these are fatal to the process: each is scoped to one session or one
operation and is recovered from by a retry or a session reset.
"""

from __future__ import annotations

from typing import Optional


class KioskError(Exception):
    """Base class for every kiosk failure."""


class TransientNetworkError(KioskError):
    """Transport failure or an unexpected, non-terminal HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionCreationError(KioskError):
    """The session service refused or failed to register a new session."""


class SessionNotFoundError(KioskError):
    """The session service answered 404 while polling pairing status."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class UnknownTerminalError(KioskError, LookupError):
    """No session was ever started on this terminal."""

    def __init__(self, terminal_id: str) -> None:
        super().__init__(f"Unknown terminal: {terminal_id}")
        self.terminal_id = terminal_id


class SessionNotPairedError(KioskError):
    pass


class MalformedResponseError(KioskError):
    """The conversation service answered 2xx with an unusable body."""


class UploadError(KioskError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CapabilityDeniedError(KioskError):
    """A device capability (the microphone) was refused by the user."""


class OrderNotReadyError(KioskError):
    pass


class OrderSubmissionError(KioskError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "KioskError",
    "TransientNetworkError",
    "SessionCreationError",
    "SessionNotFoundError",
    "SessionNotPairedError",
    "UnknownTerminalError",
    "MalformedResponseError",
    "UploadError",
    "CapabilityDeniedError",
    "OrderNotReadyError",
    "OrderSubmissionError",
]
