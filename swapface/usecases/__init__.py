"""Use-case layer for orchestrating the face-swap workflow.

Each module coordinates domain objects and ports without performing transport
or device I/O directly.
"""
