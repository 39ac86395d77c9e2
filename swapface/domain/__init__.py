"""Domain package exports for value objects and the workflow context."""

from .entities import (
    BoundingBox,
    ErrorCounts,
    FrameBuffer,
    ImageHandle,
    OrchestratorContext,
    WorkflowSnapshot,
    WorkflowState,
)

__all__ = [
    "BoundingBox",
    "ErrorCounts",
    "FrameBuffer",
    "ImageHandle",
    "OrchestratorContext",
    "WorkflowSnapshot",
    "WorkflowState",
]
