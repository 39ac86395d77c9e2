from __future__ import annotations

import numpy as np
import pytest

from swapface.domain.entities import (
    BoundingBox,
    FrameBuffer,
    ImageHandle,
    OrchestratorContext,
    WorkflowSnapshot,
    WorkflowState,
)


def test_image_handle_release_is_idempotent() -> None:
    handle = ImageHandle(b"abc", "image/png", source="catalog#1")

    assert handle.size == 3
    assert handle.release() is True
    assert handle.release() is False
    assert handle.released and handle.size == 0
    with pytest.raises(ValueError):
        _ = handle.data


def test_image_handle_decode_of_garbage_returns_none() -> None:
    assert ImageHandle(b"not an image").decode() is None


def test_frame_buffer_stores_a_copy() -> None:
    frame = np.zeros((3, 5, 3), dtype=np.uint8)
    buffer = FrameBuffer()

    buffer.store(frame)
    frame[0, 0, 0] = 255

    assert (buffer.width, buffer.height) == (5, 3)
    assert buffer.image[0, 0, 0] == 0
    buffer.clear()
    assert buffer.is_empty and buffer.width == 0


def test_bounding_box_corners_and_validation() -> None:
    assert BoundingBox(2, 3, 10, 20).corners == ((2, 3), (12, 23))
    with pytest.raises(ValueError):
        BoundingBox(0, 0, -1, 5)


def test_context_pick_limit_follows_device_path() -> None:
    assert OrchestratorContext(device_available=True).max_picks == 1
    assert OrchestratorContext(device_available=False).max_picks == 2


def test_request_ids_increase_and_mark_pending() -> None:
    ctx = OrchestratorContext()

    first = ctx.next_request_id()
    second = ctx.next_request_id()

    assert (first, second) == (1, 2)
    assert ctx.pending_request == 2


def test_snapshot_is_detached_from_context_lists() -> None:
    ctx = OrchestratorContext()
    ctx.selected_indexes.append(3)

    snap = WorkflowSnapshot.from_context(WorkflowState.AWAITING_SELECTION, ctx)
    ctx.selected_indexes.clear()

    assert snap.selected_indexes == (3,)
    assert str(snap.state) == "awaiting_selection"
