from __future__ import annotations

import pytest
from requests import exceptions as req_exc

from swapface.adapters.api_errors import TransferCancelled, TransportFailure
from swapface.adapters.http_client import ArmToken, HttpConfig, RetryingSession
from swapface.tests.unit.helpers import FakeResponse, FakeSession

URL = "http://swap.local/swapFace/images_count"


def test_retries_connection_errors_then_succeeds() -> None:
    outcomes = [req_exc.ConnectionError("down"), FakeResponse(json_data={"count": 1})]
    session = FakeSession({("GET", URL): lambda: outcomes.pop(0)})
    http = RetryingSession(HttpConfig(retries=1), session_factory=lambda: session)

    resp = http.get(URL, token=ArmToken())

    assert resp.json() == {"count": 1}
    assert len(session.calls) == 2
    assert session.calls[0][2]["timeout"] is None


def test_exhausted_retries_raise_transport_failure() -> None:
    session = FakeSession({("GET", URL): req_exc.Timeout("slow")})
    http = RetryingSession(HttpConfig(request_timeout_s=2.5, retries=2), session_factory=lambda: session)

    with pytest.raises(TransportFailure):
        http.get(URL, token=ArmToken())

    assert len(session.calls) == 3
    assert session.calls[0][2]["timeout"] == 2.5


def test_cancelled_token_stops_before_sending() -> None:
    session = FakeSession({("GET", URL): FakeResponse()})
    http = RetryingSession(HttpConfig(), session_factory=lambda: session)
    token = ArmToken()
    token.cancel()

    with pytest.raises(TransferCancelled):
        http.get(URL, token=token)

    assert session.calls == []


def test_aborted_session_reports_cancellation_not_failure() -> None:
    token = ArmToken()

    def _aborted():
        token.cancel()
        return req_exc.ConnectionError("connection closed")

    session = FakeSession({("GET", URL): _aborted})
    http = RetryingSession(HttpConfig(retries=3), session_factory=lambda: session)

    with pytest.raises(TransferCancelled):
        http.get(URL, token=token)

    assert len(session.calls) == 1


def test_reset_swaps_in_new_session() -> None:
    sessions = [FakeSession(), FakeSession()]
    http = RetryingSession(HttpConfig(), session_factory=lambda: sessions.pop(0))
    first = http.session

    http.abort()
    http.reset()

    assert first.closed
    assert http.session is not first
