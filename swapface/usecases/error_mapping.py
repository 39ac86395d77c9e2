"""Classify submission failures and map them to user-facing messages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from swapface.adapters.api_errors import RemoteError, TransferCancelled
from swapface.domain.entities import ErrorCounts

MSG_FACE_NOT_DETECTED_FIRST = "Your face was not detected by the server, please wait."
MSG_FACE_NOT_DETECTED_AGAIN = "Face not detected, try again with more light."
MSG_TOO_MANY_DETECTION_ERRORS = "Too many detection errors, please wait, redirecting."
MSG_GENERIC_ERROR = "An error occurred, please wait."
MSG_API_UNREACHABLE = "The API is unreachable, the application cannot start."


class FailureKind(str, Enum):
    DETECTION = "detection"
    TRANSPORT = "transport"


@dataclass(frozen=True)
class FailureOutcome:
    """Decision taken for one failed submission."""

    kind: FailureKind
    message: str
    terminal: bool = False
    """The transport budget is exhausted; the workflow must stop."""
    device_lost: bool = False
    """The detection budget is exhausted; switch to the no-device path."""


def is_detection_failure(exc: Optional[BaseException], markers: Iterable[str]) -> bool:
    """Return True when a remote text error reports an undetected face."""
    if not isinstance(exc, RemoteError):
        return False
    text = (exc.message or "").lower()
    return any(marker.lower() in text for marker in markers if marker)


def classify_failure(
    exc: Optional[BaseException],
    counts: ErrorCounts,
    *,
    max_transport_errors: int,
    max_detection_errors: int,
    markers: Iterable[str],
) -> FailureOutcome:
    """Update ``counts`` for ``exc`` and decide what the workflow does next.

    Detection failures are checked against the ceiling before incrementing:
    once ``detection_errors`` already equals ``max_detection_errors`` the next
    one resets the counter and reports ``device_lost``. Any other failure
    increments ``transport_errors`` and is terminal when it reaches
    ``max_transport_errors``.

    Raises:
        ValueError: If ``exc`` is a cancellation, which never counts as a failure.
    """
    if isinstance(exc, TransferCancelled):
        raise ValueError("Cancelled transfers are not submission failures")

    if is_detection_failure(exc, markers):
        if counts.detection_errors >= max_detection_errors:
            counts.detection_errors = 0
            return FailureOutcome(FailureKind.DETECTION, MSG_TOO_MANY_DETECTION_ERRORS, device_lost=True)
        message = MSG_FACE_NOT_DETECTED_FIRST if counts.detection_errors == 0 else MSG_FACE_NOT_DETECTED_AGAIN
        counts.detection_errors += 1
        return FailureOutcome(FailureKind.DETECTION, message)

    counts.transport_errors += 1
    if counts.transport_errors >= max_transport_errors:
        return FailureOutcome(FailureKind.TRANSPORT, MSG_API_UNREACHABLE, terminal=True)
    return FailureOutcome(FailureKind.TRANSPORT, MSG_GENERIC_ERROR)


__all__ = [
    "FailureKind",
    "FailureOutcome",
    "MSG_API_UNREACHABLE",
    "MSG_FACE_NOT_DETECTED_AGAIN",
    "MSG_FACE_NOT_DETECTED_FIRST",
    "MSG_GENERIC_ERROR",
    "MSG_TOO_MANY_DETECTION_ERRORS",
    "classify_failure",
    "is_detection_failure",
]
