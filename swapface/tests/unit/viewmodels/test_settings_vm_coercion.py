from __future__ import annotations

import pytest

from swapface.viewmodels.settings_vm import SettingsConfig, SettingsVM


def test_defaults_match_service_and_timers() -> None:
    vm = SettingsVM(config=SettingsConfig())

    assert vm.api_base_url == "http://localhost:34568/swapFace"
    assert vm.request_timeout_s is None
    assert (vm.detection_delay_ms, vm.detection_result_ms, vm.error_display_ms) == (2000, 3000, 4000)
    assert (vm.max_transport_errors, vm.max_detection_errors) == (2, 2)
    assert vm.fps == 30.0


def test_apply_dict_coerces_values() -> None:
    vm = SettingsVM(config=SettingsConfig())

    vm.apply_dict(
        {
            "api_base_url": " http://10.0.0.5:34568/swapFace/ ",
            "fps": "15",
            "retries": "1",
            "request_timeout_s": "0",
            "require_single_face": "no",
            "detection_error_markers": ["Face Not Detected"],
        }
    )

    assert vm.api_base_url == "http://10.0.0.5:34568/swapFace"
    assert vm.fps == 15.0
    assert vm.retries == 1
    assert vm.request_timeout_s is None
    assert vm.require_single_face is False
    assert vm.detection_error_markers == ("face not detected",)


@pytest.mark.parametrize(
    "key,value",
    [
        ("fps", 0),
        ("max_transport_errors", 0),
        ("error_display_ms", -1),
        ("camera_index", "front"),
        ("retries", True),
        ("api_base_url", "ftp://nowhere"),
        ("detection_error_markers", []),
    ],
)
def test_invalid_values_are_rejected(key: str, value: object) -> None:
    vm = SettingsVM(config=SettingsConfig())

    with pytest.raises(ValueError):
        vm.set(key, value)


def test_unknown_keys_are_rejected_and_config_unchanged() -> None:
    vm = SettingsVM(config=SettingsConfig())

    with pytest.raises(ValueError):
        vm.apply_dict({"fps": 10, "colour": "blue"})

    assert vm.fps == 30.0


def test_to_dict_is_json_friendly() -> None:
    vm = SettingsVM(config=SettingsConfig())

    data = vm.to_dict()

    assert data["detection_error_markers"] == [
        "face not detected in submitted photo",
        "error reading user photo",
    ]
    assert set(data) == set(SettingsConfig.__dataclass_fields__)
