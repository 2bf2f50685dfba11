from __future__ import annotations

from typing import Any


class TrackerError(RuntimeError):
    error_type = "TrackerError"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.error_type)
        self.message = message or self.error_type

    def to_result(self) -> dict[str, Any]:
        return {"status": "error", "message": self.message, "errorType": self.error_type}


class StoreUnavailable(TrackerError):
    error_type = "StoreUnavailable"


class InvalidArgument(TrackerError):
    error_type = "InvalidArgument"


class NotFound(TrackerError):
    error_type = "NotFound"


class UnknownAction(TrackerError):
    error_type = "UnknownAction"


class NetworkFailure(TrackerError):
    error_type = "NetworkFailure"


class NotYetSynced(TrackerError):
    error_type = "NotYetSynced"


_ERRORS_BY_TYPE: dict[str, type[TrackerError]] = {
    cls.error_type: cls
    for cls in (StoreUnavailable, InvalidArgument, NotFound, UnknownAction, NetworkFailure, NotYetSynced)
}


def error_from_result(result: dict[str, Any]) -> TrackerError:
    """Rebuild the exception described by an error result returned over the wire."""
    message = str(result.get("message") or "Unknown error")
    error_cls = _ERRORS_BY_TYPE.get(str(result.get("errorType") or ""), TrackerError)
    return error_cls(message)
