from __future__ import annotations

import pytest

from swapface.adapters.api_errors import RemoteError, TransferCancelled, TransportFailure
from swapface.domain.entities import ErrorCounts
from swapface.usecases.error_mapping import (
    MSG_API_UNREACHABLE,
    MSG_FACE_NOT_DETECTED_AGAIN,
    MSG_FACE_NOT_DETECTED_FIRST,
    MSG_GENERIC_ERROR,
    MSG_TOO_MANY_DETECTION_ERRORS,
    FailureKind,
    classify_failure,
    is_detection_failure,
)
from swapface.viewmodels.settings_vm import DEFAULT_DETECTION_MARKERS


def _classify(exc, counts, *, max_transport=2, max_detection=2):
    return classify_failure(
        exc,
        counts,
        max_transport_errors=max_transport,
        max_detection_errors=max_detection,
        markers=DEFAULT_DETECTION_MARKERS,
    )


@pytest.mark.parametrize(
    "message",
    [
        "face not detected in submitted photo",
        "Error: FACE NOT DETECTED IN SUBMITTED PHOTO.",
        "error reading user photo",
    ],
)
def test_detection_markers_match_case_insensitively(message: str) -> None:
    assert is_detection_failure(RemoteError(message), DEFAULT_DETECTION_MARKERS)


def test_transport_failure_is_never_a_detection_failure() -> None:
    exc = TransportFailure("face not detected in submitted photo")

    assert not is_detection_failure(exc, DEFAULT_DETECTION_MARKERS)


def test_detection_budget_flips_device_on_third_failure() -> None:
    counts = ErrorCounts()
    exc = RemoteError("face not detected in submitted photo")

    first = _classify(exc, counts)
    second = _classify(exc, counts)
    assert counts.detection_errors == 2
    third = _classify(exc, counts)

    assert [first.message, second.message, third.message] == [
        MSG_FACE_NOT_DETECTED_FIRST,
        MSG_FACE_NOT_DETECTED_AGAIN,
        MSG_TOO_MANY_DETECTION_ERRORS,
    ]
    assert not first.device_lost and not second.device_lost
    assert third.device_lost and third.kind is FailureKind.DETECTION
    assert counts.detection_errors == 0
    assert counts.transport_errors == 0


def test_transport_budget_is_terminal_when_reached() -> None:
    counts = ErrorCounts()

    first = _classify(RemoteError("server exploded"), counts)
    second = _classify(TransportFailure("refused"), counts)

    assert first.message == MSG_GENERIC_ERROR and not first.terminal
    assert second.terminal and second.message == MSG_API_UNREACHABLE
    assert counts.transport_errors == 2


def test_missing_error_counts_as_transport_failure() -> None:
    counts = ErrorCounts()

    outcome = _classify(None, counts, max_transport=3)

    assert outcome.kind is FailureKind.TRANSPORT
    assert counts.transport_errors == 1


def test_cancellation_is_rejected() -> None:
    with pytest.raises(ValueError):
        _classify(TransferCancelled("swap"), ErrorCounts())
