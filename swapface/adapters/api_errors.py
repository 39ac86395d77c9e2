"""Error types raised by the swap-service transfer adapters.

The swap service answers with an image on success and a short text body on
failure. ``RemoteError`` carries that text so the use-case layer can tell a
detection failure from any other failure; ``TransportFailure`` covers the
cases where no usable answer arrived at all.
"""

from __future__ import annotations

from typing import Any, Optional

# Service error bodies are short sentences; anything longer is an HTML page.
MAX_DETAIL_CHARS = 200


class ApiError(RuntimeError):
    """Base class for transfer adapter failures."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.context = context


class TransportFailure(ApiError):
    """No usable answer: connection refused, timeout, bad status or bad body."""


class RemoteError(ApiError):
    """The service answered the swap request with text instead of an image."""

    @property
    def message(self) -> str:
        return str(self)


class TransferCancelled(ApiError):
    """Raised inside a transfer worker once its arm token was cancelled.

    Callers never see it; the worker logs and drops it.
    """

    def __init__(self, context: Optional[str] = None) -> None:
        super().__init__("Transfer cancelled", context=context)


class TransferNotArmedError(RuntimeError):
    """An operation was issued after ``cancel()`` without ``rearm()``."""


def response_detail(resp: Any) -> Optional[str]:
    """Return the trimmed text body of ``resp``, or ``None`` when it has none."""
    text = (getattr(resp, "text", "") or "").strip()
    if not text:
        return None
    if len(text) > MAX_DETAIL_CHARS:
        return text[:MAX_DETAIL_CHARS].rstrip() + "..."
    return text


def failure_for_status(what: str, resp: Any, url: str) -> TransportFailure:
    """Build the ``TransportFailure`` for a non-2xx answer to a catalog request."""
    status = getattr(resp, "status_code", None)
    detail = response_detail(resp)
    message = f"{what} failed with HTTP {status}"
    if detail:
        message = f"{message}: {detail}"
    return TransportFailure(message, status=status, context=f"GET {url}")


__all__ = [
    "ApiError",
    "MAX_DETAIL_CHARS",
    "RemoteError",
    "TransferCancelled",
    "TransferNotArmedError",
    "TransportFailure",
    "failure_for_status",
    "response_detail",
]
