# swapface/adapters/transfer_rest.py
from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import cv2
import numpy as np

from swapface.domain.entities import ImageHandle
from swapface.domain.ports import (
    CatalogCallback,
    DispatchFn,
    SubmitCallback,
    TransferPort,
)

from .api_errors import (
    RemoteError,
    TransferCancelled,
    TransferNotArmedError,
    TransportFailure,
    failure_for_status,
    response_detail,
)
from .http_client import ArmToken, HttpConfig, RetryingSession

DEFAULT_BASE_URL = "http://localhost:34568/swapFace"


def _direct_dispatch(callback: Callable[[], None]) -> None:
    callback()


def _noop() -> None:
    pass


def encode_frame(frame: np.ndarray, quality: int = 100) -> bytes:
    """JPEG-encode a BGR frame for upload."""
    ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise ValueError("Frame could not be JPEG-encoded.")
    return buffer.tobytes()


@dataclass
class _Completion:
    """Outcome of a worker: how to deliver it, and how to free it if dropped."""

    deliver: Callable[[], None]
    discard: Callable[[], None] = _noop


class TransferManager(TransferPort):
    """REST adapter for the swap service.

    Endpoints:
      - GET  {base}/images_count          -> {"count": N}
      - GET  {base}/images/{i}            -> image bytes (1-based)
      - GET  {base}/swap/{i1}/{i2}        -> image bytes | text error
      - POST {base}/                      body: {"image2Index": "3", "imageWidth": w,
                                                 "imageHeight": h, "image": [..bytes..]}
                                          -> image bytes | text error

    Notes:
      - Work runs on an executor; completions go through ``dispatch`` so
        callers can serialize them onto their event loop.
      - ``cancel`` disarms the manager; ``rearm`` must be called before the
        next operation. Completions of canceled work are dropped and any
        image payload they carried is released.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        request_timeout_s: Optional[float] = None,
        retries: int = 0,
        dispatch: Optional[DispatchFn] = None,
        executor: Optional[Executor] = None,
        session_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self._log = logging.getLogger(__name__)
        self.base_url = base_url.rstrip("/")
        self.cfg = HttpConfig(request_timeout_s=request_timeout_s, retries=retries)
        if session_factory is None:
            self.http = RetryingSession(self.cfg)
        else:
            self.http = RetryingSession(self.cfg, session_factory=session_factory)
        self._dispatch = dispatch or _direct_dispatch
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="transfer")
        self._lock = threading.Lock()
        self._token = ArmToken()
        self._armed = True

    # ---------- Arming ----------

    @property
    def armed(self) -> bool:
        return self._armed

    def cancel(self) -> None:
        """Abort all in-flight operations; later completions are suppressed."""
        with self._lock:
            already = not self._armed
            self._token.cancel()
            self._armed = False
        if not already:
            self._log.info("Transfer cancelled")
            self.http.abort()

    def rearm(self) -> None:
        """Prepare for new operations after ``cancel``. No-op when armed."""
        with self._lock:
            if self._armed:
                return
            self._token = ArmToken()
            self._armed = True
        self.http.reset()

    def close(self) -> None:
        self.cancel()
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def _issue(
        self,
        name: str,
        work: Callable[[ArmToken], _Completion],
        on_failure: Callable[[Exception], _Completion],
    ) -> None:
        with self._lock:
            if not self._armed:
                raise TransferNotArmedError(f"{name} issued after cancel() without rearm()")
            token = self._token
        self._executor.submit(self._run, name, token, work, on_failure)

    def _run(
        self,
        name: str,
        token: ArmToken,
        work: Callable[[ArmToken], _Completion],
        on_failure: Callable[[Exception], _Completion],
    ) -> None:
        try:
            completion = work(token)
        except TransferCancelled:
            self._log.info("%s aborted", name)
            return
        except Exception as exc:
            self._log.exception("%s failed unexpectedly", name)
            completion = on_failure(exc)

        def _guarded() -> None:
            # Re-checked on the receiving thread: cancel may land after the worker returned.
            if token.cancelled:
                self._log.info("%s completed after cancel; result dropped", name)
                completion.discard()
                return
            completion.deliver()

        self._dispatch(_guarded)

    # ---------- Catalog ----------

    def fetch_catalog(self, on_done: CatalogCallback) -> None:
        """Fetch the image count, then each image in index order."""
        self._issue(
            "fetch_catalog",
            lambda token: self._fetch_catalog(token, on_done),
            lambda _exc: _Completion(lambda: on_done(None)),
        )

    def _fetch_catalog(self, token: ArmToken, on_done: CatalogCallback) -> _Completion:
        items: List[ImageHandle] = []
        try:
            count = self._fetch_count(token)
            # Strictly sequential so item i lands at position i.
            for index in range(1, count + 1):
                items.append(self._fetch_image(token, index))
        except TransferCancelled:
            self._release_all(items)
            raise
        except Exception as exc:
            self._log.error("Catalog load failed: %s", exc)
            self._release_all(items)
            return _Completion(lambda: on_done(None))

        self._log.info("Catalog loaded: %d image(s)", len(items))
        return _Completion(lambda: on_done(items), lambda: self._release_all(items))

    def _fetch_count(self, token: ArmToken) -> int:
        url = f"{self.base_url}/images_count"
        resp = self.http.get(url, token=token)
        if not resp.ok:
            raise failure_for_status("Image count", resp, url)
        payload = resp.json()
        count = int(payload["count"])
        if count < 0:
            raise ValueError(f"Negative image count {count}")
        return count

    def _fetch_image(self, token: ArmToken, index: int) -> ImageHandle:
        url = f"{self.base_url}/images/{index}"
        resp = self.http.get(url, token=token, accept="image/*")
        if not resp.ok:
            raise failure_for_status(f"Image {index}", resp, url)
        return ImageHandle(resp.content, self._content_type(resp), source=f"catalog#{index}")

    @staticmethod
    def _release_all(items: List[ImageHandle]) -> None:
        for item in items:
            item.release()

    # ---------- Submissions ----------

    def submit_by_frame(self, frame: np.ndarray, partner_index: int, on_done: SubmitCallback) -> None:
        """Upload a captured frame together with the catalog index to swap with."""
        image = np.array(frame, copy=True)
        self._issue(
            "submit_by_frame",
            lambda token: self._submit_frame(token, image, partner_index, on_done),
            self._submission_failed(on_done),
        )

    def submit_by_index_pair(self, index1: int, index2: int, on_done: SubmitCallback) -> None:
        """Ask the service to swap the faces of two catalog images."""
        url = f"{self.base_url}/swap/{int(index1)}/{int(index2)}"
        self._issue(
            "submit_by_index_pair",
            lambda token: self._submit(token, on_done, lambda: self.http.get(url, token=token, accept="*/*")),
            self._submission_failed(on_done),
        )

    def _submit_frame(
        self, token: ArmToken, frame: np.ndarray, partner_index: int, on_done: SubmitCallback
    ) -> _Completion:
        try:
            encoded = encode_frame(frame)
        except Exception as exc:
            err = TransportFailure(f"Cannot encode captured frame: {exc}")
            return _Completion(lambda: on_done(None, err))
        height, width = frame.shape[:2]
        body = {
            "image2Index": str(partner_index),
            "imageWidth": int(width),
            "imageHeight": int(height),
            "image": list(encoded),
        }
        url = f"{self.base_url}/"
        return self._submit(token, on_done, lambda: self.http.post_json(url, token=token, json_body=body))

    def _submit(self, token: ArmToken, on_done: SubmitCallback, send: Callable[[], Any]) -> _Completion:
        try:
            resp = send()
            content_type = self._content_type(resp)
            if not resp.ok or content_type.startswith("text/"):
                message = response_detail(resp) or f"HTTP {resp.status_code}"
                self._log.warning("Swap service returned an error: %s", message)
                err = RemoteError(message, status=resp.status_code, context="swap")
                return _Completion(lambda: on_done(None, err))
            handle = ImageHandle(resp.content, content_type, source="result")
        except TransferCancelled:
            raise
        except TransportFailure as exc:
            self._log.error("Submission failed: %s", exc)
            return _Completion(lambda: on_done(None, exc))
        except Exception as exc:
            self._log.error("Submission failed: %s", exc)
            failure = TransportFailure(f"Unreadable swap response: {exc}", context="swap")
            return _Completion(lambda: on_done(None, failure))

        return _Completion(lambda: on_done(handle, None), handle.release)

    @staticmethod
    def _submission_failed(on_done: SubmitCallback) -> Callable[[Exception], _Completion]:
        def _failed(exc: Exception) -> _Completion:
            err = TransportFailure(f"Swap request failed: {exc}", context="swap")
            return _Completion(lambda: on_done(None, err))

        return _failed

    @staticmethod
    def _content_type(resp: Any) -> str:
        headers = getattr(resp, "headers", None) or {}
        value = headers.get("Content-Type") or headers.get("content-type") or "application/octet-stream"
        return str(value).split(";", 1)[0].strip().lower()


__all__ = ["DEFAULT_BASE_URL", "TransferManager", "encode_frame"]
