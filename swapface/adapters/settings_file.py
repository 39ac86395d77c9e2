from __future__ import annotations
import json, os
from typing import Any, Dict, Optional

DEFAULT_SETTINGS_NAME = "swapface_settings.json"


class SettingsFile:
    """Read-only JSON settings source; nothing is ever written back."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or os.path.join(".", DEFAULT_SETTINGS_NAME)

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def load(self, *, required: bool = False) -> Dict[str, Any]:
        """Return the flat settings mapping, ``{}`` when the file is absent.

        Raises:
            FileNotFoundError: If ``required`` and the file does not exist.
            ValueError: If the file is not a JSON object.
        """
        if not self.exists():
            if required:
                raise FileNotFoundError(self.path)
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid settings file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {self.path} must hold a JSON object")
        return data


__all__ = ["DEFAULT_SETTINGS_NAME", "SettingsFile"]
