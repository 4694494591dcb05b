"""Tests for helper_settings.py"""

import json
from pathlib import Path

import pytest

from config import GW2_DOCUMENTS_DIR
from helper_settings import (
    DEFAULT_SETTINGS,
    default_save_path,
    has_api_key,
    load_settings,
    save_settings,
)


def test_missing_file_gives_defaults(tmp_path):
    assert load_settings(tmp_path / "config.json") == DEFAULT_SETTINGS


def test_save_then_load(tmp_path):
    path = tmp_path / "sub" / "config.json"
    save_settings({**DEFAULT_SETTINGS, "api_key": "ABC-123"}, path)
    assert load_settings(path)["api_key"] == "ABC-123"


def test_saved_values_merge_over_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"homestead_path": "D:/Homes", "api_key": None}),
                    encoding="utf-8")
    settings = load_settings(path)
    assert settings["homestead_path"] == "D:/Homes"
    assert settings["api_key"] == ""
    assert settings["guild_hall_path"] == ""


@pytest.mark.parametrize("content", ["{ not json", "[1, 2]", ""])
def test_corrupt_file_gives_defaults(tmp_path, content):
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")
    assert load_settings(path) == DEFAULT_SETTINGS


def test_load_does_not_share_default_dict(tmp_path):
    settings = load_settings(tmp_path / "config.json")
    settings["api_key"] = "changed"
    assert DEFAULT_SETTINGS["api_key"] == ""


@pytest.mark.parametrize("key, expected", [
    ("", False),
    ("   ", False),
    (None, False),
    ("ABC", True),
])
def test_has_api_key(key, expected):
    assert has_api_key({"api_key": key}) is expected


def test_default_save_paths():
    assert default_save_path({}, "homestead") == GW2_DOCUMENTS_DIR / "Homesteads"
    assert default_save_path({"guild_hall_path": "  "}, "guild_hall") == \
        GW2_DOCUMENTS_DIR / "GuildHalls"
    assert default_save_path({"homestead_path": " D:/Homes "}, "homestead") == Path("D:/Homes")


def test_unknown_save_path_kind():
    with pytest.raises(ValueError):
        default_save_path({}, "castle")
