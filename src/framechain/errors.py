"""Exception hierarchy for framechain."""

from __future__ import annotations

from datetime import datetime, timezone


class FramechainError(Exception):
    """Base error carrying the UTC time it was raised at."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.time = datetime.now(timezone.utc).isoformat()


class ArgumentError(FramechainError):
    """Invalid caller input: registration, run arguments or expressions."""


class DataError(FramechainError):
    """Malformed annotation or frame data."""


class ScriptingError(FramechainError):
    """An action broke its contract during a run."""
