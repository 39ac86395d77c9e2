"""ViewModel package for UI state and command surfaces.

Call context:
    ``swapface/app/main.py`` imports concrete viewmodels from this package to
    turn workflow snapshots into presenter-ready text and to hold settings.

Dependencies:
    Modules in this package depend on domain types only. I/O adapters and
    use-case orchestration remain outside.
"""
