"""Process-wide cache for classifier definition files.

Haar cascade XML files are fetched once per process and written to a private
temporary directory; every detector instance then loads from that path.

Concurrency:
    A module lock serializes the first fetch. The first caller writes the
    entry, concurrent callers block on the lock and then read it. Entries are
    never replaced, so no re-fetch happens once a file is present.
"""

from __future__ import annotations

import logging
import tempfile
import threading
from pathlib import Path
from typing import Callable, Dict, Optional

import requests

DEFAULT_CASCADE = "haarcascade_frontalface_default.xml"

_log = logging.getLogger(__name__)
_lock = threading.Lock()
_entries: Dict[str, Path] = {}
_cache_dir: Optional[Path] = None

Fetcher = Callable[[], bytes]


def http_fetcher(url: str, timeout_s: float = 30.0) -> Fetcher:
    """Build a fetcher that downloads the classifier with ``requests``."""

    def _fetch() -> bytes:
        resp = requests.get(url, timeout=timeout_s)
        resp.raise_for_status()
        return resp.content

    return _fetch


def packaged_fetcher(name: str = DEFAULT_CASCADE) -> Fetcher:
    """Build a fetcher that reads the cascade shipped with ``opencv-python``."""

    def _fetch() -> bytes:
        import cv2

        return (Path(cv2.data.haarcascades) / name).read_bytes()

    return _fetch


def classifier_path(name: str, fetch: Fetcher) -> Path:
    """Return the cached file for ``name``, fetching it on first use.

    Raises whatever ``fetch`` raises; a failed fetch leaves no entry so a
    later caller may try again.
    """
    global _cache_dir
    with _lock:
        cached = _entries.get(name)
        if cached is not None:
            return cached
        data = fetch()
        if not data:
            raise ValueError(f"Classifier {name} is empty")
        if _cache_dir is None:
            _cache_dir = Path(tempfile.mkdtemp(prefix="swapface-classifiers-"))
        path = _cache_dir / name
        path.write_bytes(data)
        _entries[name] = path
        _log.info("Classifier %s cached at %s (%d bytes)", name, path, len(data))
        return path


def cached_path(name: str) -> Optional[Path]:
    with _lock:
        return _entries.get(name)


def clear_cache() -> None:
    """Forget every entry; intended for tests."""
    global _cache_dir
    with _lock:
        _entries.clear()
        _cache_dir = None


__all__ = [
    "DEFAULT_CASCADE",
    "cached_path",
    "classifier_path",
    "clear_cache",
    "http_fetcher",
    "packaged_fetcher",
]
