"""Shared HTTP transport utilities for the transfer adapter.

This module provides a thin wrapper around ``requests.Session`` that adds
retry behavior and cooperative cancellation through arm tokens.

Dependencies:
    - ``requests`` for network I/O.
    - ``swapface.adapters.api_errors`` for typed transport failures.

Call context:
    - Constructed by ``swapface/adapters/transfer_rest.py``.
    - Used from transfer worker threads; ``abort``/``reset`` are called from
      the event-loop thread when the user cancels.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests
from requests import exceptions as req_exc

from swapface.adapters.api_errors import TransferCancelled, TransportFailure


@dataclass
class HttpConfig:
    """Timeout and retry configuration for transfer calls.

    Attributes:
        request_timeout_s: Timeout in seconds, ``None`` waits until the
            server answers or the call is canceled.
        retries: Number of retry attempts after the initial request.
    """
    request_timeout_s: Optional[float] = None
    retries: int = 0


class ArmToken:
    """Cancellation marker shared by every request issued while armed."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def check(self, context: str) -> None:
        """Raise ``TransferCancelled`` if the token was canceled."""
        if self._event.is_set():
            raise TransferCancelled(context=context)


class RetryingSession:
    """Requests wrapper with retry loops and abortable connections.

    This class is transport-only. Callers decide how to map responses into
    catalog items, results, or remote errors.
    """

    def __init__(
        self,
        cfg: HttpConfig,
        session_factory: Callable[[], Any] = requests.Session,
    ) -> None:
        self._log = logging.getLogger(__name__)
        self.cfg = cfg
        self._session_factory = session_factory
        self._lock = threading.Lock()
        self.session = session_factory()

    def _headers(self, accept: str, json_body: bool = False) -> Dict[str, str]:
        headers = {"Accept": accept}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _current(self):
        with self._lock:
            return self.session

    def _send(self, method: str, url: str, token: ArmToken, **kwargs: Any):
        context = f"{method} {url}"
        last_err: Optional[TransportFailure] = None
        attempts = self.cfg.retries + 1
        for _ in range(attempts):
            token.check(context)
            session = self._current()
            try:
                if method == "GET":
                    response = session.get(url, timeout=self.cfg.request_timeout_s, **kwargs)
                else:
                    response = session.post(url, timeout=self.cfg.request_timeout_s, **kwargs)
            except (req_exc.Timeout, req_exc.ConnectionError) as exc:
                # An aborted session surfaces as a connection error.
                token.check(context)
                last_err = TransportFailure(f"Cannot reach {url}: {exc}", context=context)
                continue
            except req_exc.RequestException as exc:
                token.check(context)
                raise TransportFailure(str(exc), context=context) from exc
            token.check(context)
            return response
        raise last_err

    def get(self, url: str, *, token: ArmToken, accept: str = "application/json"):
        """Send a GET request with retries on timeout/connectivity failures.

        Raises:
            TransportFailure: If all attempts fail with timeout/connection errors.
            TransferCancelled: If ``token`` is canceled before or after a call.
        """
        return self._send("GET", url, token, headers=self._headers(accept))

    def post_json(self, url: str, *, token: ArmToken, json_body: Dict[str, Any], accept: str = "*/*"):
        """Send a JSON POST request; the body is serialized once for all attempts."""
        data = json.dumps(json_body)
        return self._send("POST", url, token, data=data, headers=self._headers(accept, json_body=True))

    def abort(self) -> None:
        """Close pooled connections so blocked calls return as soon as possible."""
        session = self._current()
        try:
            session.close()
        except Exception as exc:
            self._log.debug("Closing HTTP session failed: %s", exc)

    def reset(self) -> None:
        """Replace the aborted session with a fresh one."""
        with self._lock:
            self.session = self._session_factory()


__all__ = ["ArmToken", "HttpConfig", "RetryingSession"]
