"""Application composition layer.

Controllers in this package wire the event loop, adapters, and the workflow
orchestrator into a runnable client without placing workflow logic in views.
"""
