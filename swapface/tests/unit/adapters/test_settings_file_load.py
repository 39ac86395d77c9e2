from __future__ import annotations

import json

import pytest

from swapface.adapters.settings_file import SettingsFile


def test_missing_optional_file_yields_empty_mapping(tmp_path) -> None:
    source = SettingsFile(str(tmp_path / "absent.json"))

    assert source.load() == {}
    with pytest.raises(FileNotFoundError):
        source.load(required=True)


def test_loads_flat_object(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"fps": 12, "camera_index": 1}), encoding="utf-8")

    assert SettingsFile(str(path)).load() == {"fps": 12, "camera_index": 1}


@pytest.mark.parametrize("content", ["[1, 2]", "{not json"])
def test_rejects_non_object_payloads(tmp_path, content: str) -> None:
    path = tmp_path / "settings.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        SettingsFile(str(path)).load()
