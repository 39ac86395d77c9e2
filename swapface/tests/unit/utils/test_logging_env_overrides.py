from __future__ import annotations

import logging

from swapface.utils import logging as logging_utils


def test_debug_flag_forces_debug_level(monkeypatch) -> None:
    monkeypatch.delenv("SWAPFACE_LOG_LEVEL", raising=False)
    monkeypatch.setenv("SWAPFACE_DEBUG", "yes")

    assert logging_utils.env_debug_enabled()
    assert logging_utils.apply_preferences(False) == logging.DEBUG


def test_explicit_level_wins_over_preferences(monkeypatch) -> None:
    monkeypatch.setenv("SWAPFACE_LOG_LEVEL", "warning")
    monkeypatch.setenv("SWAPFACE_DEBUG", "1")

    assert logging_utils.apply_preferences(True) == logging.WARNING
    assert not logging_utils.env_debug_enabled()


def test_preferences_toggle_without_env(monkeypatch) -> None:
    monkeypatch.delenv("SWAPFACE_LOG_LEVEL", raising=False)
    monkeypatch.delenv("SWAPFACE_DEBUG", raising=False)
    root = logging.getLogger()
    previous = root.level
    try:
        assert logging_utils.apply_preferences(True) == logging.DEBUG
        assert logging_utils.apply_preferences(False) == logging.INFO
        assert logging_utils.level_name(root.level) == "INFO"
    finally:
        root.setLevel(previous)


def test_configure_root_quiets_http_loggers(monkeypatch) -> None:
    monkeypatch.setenv("SWAPFACE_LOG_LEVEL", "DEBUG")
    root = logging.getLogger()
    previous = root.level
    try:
        assert logging_utils.configure_root() == logging.DEBUG
        assert logging.getLogger("urllib3").level == logging.WARNING
    finally:
        root.setLevel(previous)


def test_resolve_level_accepts_names_numbers_and_garbage() -> None:
    assert logging_utils.resolve_level("error") == logging.ERROR
    assert logging_utils.resolve_level("15") == 15
    assert logging_utils.resolve_level(logging.DEBUG) == logging.DEBUG
    assert logging_utils.resolve_level("chatty", logging.WARNING) == logging.WARNING
    assert logging_utils.resolve_level(None) == logging.INFO
