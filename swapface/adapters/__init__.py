"""Adapter package for external I/O implementations.

Purpose:
    Collect concrete implementations for domain ports (HTTP transfer, camera
    capture, face detection, settings files, and test doubles).

Dependencies:
    Individual submodules depend on ``requests``, ``opencv-python`` (``cv2``),
    ``numpy``, and domain protocol definitions.

Call context:
    Imported by app composition modules (for runtime wiring) and by tests (for
    mocks and transport-level behavior verification).
"""
