"""
helper_settings.py — User settings persisted as JSON in the data directory.

Keys:
  api_key          GW2 API key (account / guild endpoints; not needed for Mumble)
  homestead_path   default save folder for homestead decoration XML
  guild_hall_path  default save folder for guild hall decoration XML

A missing or corrupt file yields the defaults so startup never fails here.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from config import GW2_DOCUMENTS_DIR, SETTINGS_FILE

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "api_key": "",
    "homestead_path": "",
    "guild_hall_path": "",
}

_DEFAULT_SAVE_DIRS = {
    "homestead": GW2_DOCUMENTS_DIR / "Homesteads",
    "guild_hall": GW2_DOCUMENTS_DIR / "GuildHalls",
}


def load_settings(path: Path = SETTINGS_FILE) -> dict:
    """Load settings from disk, merging with defaults."""
    settings = dict(DEFAULT_SETTINGS)
    if not path.exists():
        return settings
    try:
        with open(path, encoding="utf-8") as f:
            saved = json.load(f)
        if not isinstance(saved, dict):
            raise ValueError("settings root is not an object")
        settings.update({k: v for k, v in saved.items() if v is not None})
    except Exception as e:
        logger.warning(f"Failed to load settings, using defaults: {e}")
        return dict(DEFAULT_SETTINGS)
    return settings


def save_settings(settings: dict, path: Path = SETTINGS_FILE):
    """Persist settings to disk."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings, f, indent=2)


def has_api_key(settings: dict) -> bool:
    return bool((settings.get("api_key") or "").strip())


def default_save_path(settings: dict, kind: str) -> Path:
    """Configured save folder for `kind` ("homestead" | "guild_hall"), or the game default."""
    if kind not in _DEFAULT_SAVE_DIRS:
        raise ValueError(f"Unknown save path kind: {kind}")
    configured: Optional[str] = settings.get(f"{kind}_path")
    if configured and configured.strip():
        return Path(configured.strip())
    return _DEFAULT_SAVE_DIRS[kind]
