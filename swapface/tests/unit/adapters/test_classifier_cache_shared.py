from __future__ import annotations

import threading
from typing import List

import pytest

from swapface.adapters import classifier_cache


@pytest.fixture(autouse=True)
def _fresh_cache():
    classifier_cache.clear_cache()
    yield
    classifier_cache.clear_cache()


def test_first_fetch_writes_file_and_later_calls_reuse_it() -> None:
    fetches: List[str] = []

    def _fetch() -> bytes:
        fetches.append("x")
        return b"<opencv_storage/>"

    first = classifier_cache.classifier_path("faces.xml", _fetch)
    second = classifier_cache.classifier_path("faces.xml", _fetch)

    assert first == second
    assert first.read_bytes() == b"<opencv_storage/>"
    assert fetches == ["x"]
    assert classifier_cache.cached_path("faces.xml") == first


def test_concurrent_callers_fetch_once() -> None:
    fetches: List[int] = []
    release = threading.Event()

    def _slow_fetch() -> bytes:
        fetches.append(1)
        release.wait(timeout=5)
        return b"data"

    paths = []
    threads = [
        threading.Thread(target=lambda: paths.append(classifier_cache.classifier_path("c.xml", _slow_fetch)))
        for _ in range(4)
    ]
    for t in threads:
        t.start()
    release.set()
    for t in threads:
        t.join(timeout=5)

    assert len(fetches) == 1
    assert len(set(paths)) == 1


def test_failed_fetch_leaves_no_entry() -> None:
    def _broken() -> bytes:
        raise OSError("offline")

    with pytest.raises(OSError):
        classifier_cache.classifier_path("broken.xml", _broken)

    assert classifier_cache.cached_path("broken.xml") is None
    with pytest.raises(ValueError):
        classifier_cache.classifier_path("broken.xml", lambda: b"")
