from __future__ import annotations

from typing import Any, List

import numpy as np
import pytest

from swapface.adapters.api_errors import TransferNotArmedError
from swapface.adapters.transfer_mock import TransferMock


def test_auto_complete_catalog_delivers_decodable_images() -> None:
    mock = TransferMock(catalog_size=3, auto_complete=True)
    received: List[Any] = []

    mock.fetch_catalog(received.append)

    items = received[0]
    assert len(items) == 3
    assert items[0].decode().shape == (64, 64, 3)


def test_dispatch_defers_delivery() -> None:
    queue: List[Any] = []
    mock = TransferMock(auto_complete=True, dispatch=queue.append)
    received: List[Any] = []

    mock.submit_by_frame(np.zeros((4, 4, 3), dtype=np.uint8), 2, lambda h, e: received.append((h, e)))

    assert received == []
    queue.pop()()
    assert received[0][1] is None
    assert mock.calls[0] == ("submit_by_frame", (4, 4, 3), 2)


def test_calls_from_before_cancel_never_complete() -> None:
    mock = TransferMock()
    received: List[Any] = []
    mock.submit_by_index_pair(2, 1, lambda h, e: received.append(h))

    mock.cancel()
    mock.rearm()
    mock.complete_submission()

    assert received == []
    assert mock.pending == []


def test_disarmed_mock_fails_fast() -> None:
    mock = TransferMock()
    mock.cancel()

    with pytest.raises(TransferNotArmedError):
        mock.fetch_catalog(lambda items: None)
