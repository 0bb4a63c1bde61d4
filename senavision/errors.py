"""Exception hierarchy for SENAVISION."""

from typing import Optional


class SenavisionError(Exception):
    """Base exception for all navigation core errors."""


class RoutingError(SenavisionError):
    """The routing backend could not produce a route."""

    def __init__(self, message: str, *, status: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status


class GeocodeNotFound(SenavisionError):
    """Neither the gazetteer nor the geocoder knows the requested place."""

    def __init__(self, query: str, *, reason: Optional[str] = None) -> None:
        message = f"Location not found: {query}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.query = query
        self.reason = reason


class RecognitionError(SenavisionError):
    """Speech recognition reported an error code."""

    PERMISSION_CODES = frozenset({"not-allowed", "permission-denied", "service-not-allowed"})
    TRANSIENT_CODES = frozenset({"no-speech", "aborted"})

    def __init__(self, code: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Recognition error: {code}")
        self.code = code

    @property
    def is_permission_denied(self) -> bool:
        return self.code in self.PERMISSION_CODES

    @property
    def is_transient(self) -> bool:
        return self.code in self.TRANSIENT_CODES


class SpeechError(SenavisionError):
    """The speech synthesis sink failed to speak an utterance."""
