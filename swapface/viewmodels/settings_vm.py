from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from ..utils.logging import env_debug_enabled

DEFAULT_DETECTION_MARKERS: Tuple[str, ...] = (
    "face not detected in submitted photo",
    "error reading user photo",
)


@dataclass(frozen=True)
class SettingsConfig:
    """Typed runtime settings for the workflow and its adapters."""

    api_base_url: str = "http://localhost:34568/swapFace"
    request_timeout_s: Optional[float] = None
    retries: int = 0
    camera_index: int = 0
    fps: float = 30.0
    frame_width: int = 299
    frame_height: int = 275
    classifier_url: Optional[str] = None
    max_transport_errors: int = 2
    max_detection_errors: int = 2
    detection_delay_ms: int = 2000
    detection_result_ms: int = 3000
    error_display_ms: int = 4000
    require_single_face: bool = True
    detection_error_markers: Tuple[str, ...] = field(default=DEFAULT_DETECTION_MARKERS)
    debug_logging: bool = False


_POSITIVE_INTS = {
    "max_transport_errors",
    "max_detection_errors",
    "frame_width",
    "frame_height",
}
_NON_NEGATIVE_INTS = {
    "retries",
    "camera_index",
    "detection_delay_ms",
    "detection_result_ms",
    "error_display_ms",
}


class SettingsVM:
    """Keeps settings state and validation, no I/O here."""

    def __init__(self, *, config: Optional[SettingsConfig] = None) -> None:
        self.config = config or SettingsConfig(debug_logging=env_debug_enabled())

    def __getattr__(self, name: str) -> Any:
        # Bridge read access to the typed config (``vm.fps`` etc.).
        config = self.__dict__.get("config")
        if config is not None and name in SettingsConfig.__dataclass_fields__:
            return getattr(config, name)
        raise AttributeError(name)

    # ------------------------------------------------------------------
    def set(self, key: str, value: Any) -> None:
        """Validate and store one setting."""
        if key not in SettingsConfig.__dataclass_fields__:
            raise ValueError(f"Unknown setting '{key}'")
        self.config = replace(self.config, **{key: self._coerce(key, value)})

    def apply_dict(self, payload: Mapping[str, Any]) -> None:
        """Apply a flat mapping of settings (for example a parsed JSON file)."""
        if not isinstance(payload, Mapping):
            raise ValueError("Settings payload must be a mapping of flat keys.")
        unknown = set(payload.keys()) - set(SettingsConfig.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unsupported settings keys: {', '.join(sorted(str(key) for key in unknown))}")
        updates = {key: self._coerce(key, value) for key, value in payload.items()}
        self.config = replace(self.config, **updates)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self.config)
        data["detection_error_markers"] = list(self.config.detection_error_markers)
        return data

    # ------------------------------------------------------------------
    # Coercion helpers
    # ------------------------------------------------------------------
    def _coerce(self, key: str, value: Any) -> Any:
        if key in _POSITIVE_INTS:
            coerced = self._coerce_int(key, value)
            if coerced <= 0:
                raise ValueError(f"{key} must be greater than zero")
            return coerced
        if key in _NON_NEGATIVE_INTS:
            coerced = self._coerce_int(key, value)
            if coerced < 0:
                raise ValueError(f"{key} must not be negative")
            return coerced
        if key == "fps":
            try:
                fps = float(value)
            except (TypeError, ValueError) as exc:
                raise ValueError("fps must be a number") from exc
            if fps <= 0:
                raise ValueError("fps must be greater than zero")
            return fps
        if key == "request_timeout_s":
            if value in (None, "", 0, "0"):
                return None
            try:
                return float(value)
            except (TypeError, ValueError) as exc:
                raise ValueError("request_timeout_s must be a number") from exc
        if key in ("require_single_face", "debug_logging"):
            return self._coerce_bool(value)
        if key == "detection_error_markers":
            if isinstance(value, str):
                value = [value]
            markers = tuple(str(item).strip().lower() for item in (value or ()) if str(item).strip())
            if not markers:
                raise ValueError("detection_error_markers must not be empty")
            return markers
        if key == "classifier_url":
            text = str(value).strip() if value is not None else ""
            return text or None
        if key == "api_base_url":
            text = str(value or "").strip().rstrip("/")
            if not text.startswith(("http://", "https://")):
                raise ValueError("api_base_url must start with http:// or https://")
            return text
        return value

    @staticmethod
    def _coerce_int(key: str, value: Any) -> int:
        if isinstance(value, bool):
            raise ValueError(f"{key} must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{key} must be an integer") from exc

    @staticmethod
    def _coerce_bool(value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)


def config_field_names() -> Tuple[str, ...]:
    return tuple(f.name for f in fields(SettingsConfig))


__all__ = ["DEFAULT_DETECTION_MARKERS", "SettingsConfig", "SettingsVM", "config_field_names"]
