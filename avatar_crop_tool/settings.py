"""
Persistent user settings for the entry point.

Only remembers the folder the last photo was picked from, so the file
picker reopens there.  Nothing about a crop session is persisted.

The on-disk format uses a versioned envelope::

    {
        "version": 1,
        "settings": {
            "last_folder": "/home/me/Pictures/class-3b",
            "last_used": "2026-10-17T09:12:00+00:00"
        }
    }

This module is Qt-free.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from avatar_crop_tool.config import config_dir

logger = logging.getLogger(__name__)

_SETTINGS_FILENAME = "settings.json"
_SETTINGS_VERSION = 1


def _settings_path() -> Path:
    return config_dir() / _SETTINGS_FILENAME


# =============================================================================
# Load / Save
# =============================================================================
def load_settings() -> dict:
    """
    Load settings from disk.

    Returns the ``settings`` dict from the versioned envelope, or an empty
    dict if the file is missing, corrupt, or has an unexpected version.
    """
    path = _settings_path()

    if not path.exists():
        logger.debug("No settings found at %s — using defaults", path)
        return {}

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read settings (%s) — using defaults", exc)
        return {}

    if not isinstance(raw, dict) or raw.get("version") != _SETTINGS_VERSION:
        logger.warning("Settings version mismatch or invalid format — using defaults")
        return {}

    settings = raw.get("settings")
    if not isinstance(settings, dict):
        logger.warning("Settings file missing 'settings' dict — using defaults")
        return {}
    return settings


def save_settings(settings: dict) -> None:
    """Write *settings* to disk in a versioned envelope."""
    envelope = {"version": _SETTINGS_VERSION, "settings": settings}
    path = _settings_path()
    try:
        path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("Saved settings to %s", path)
    except OSError as exc:
        logger.error("Could not write settings to %s: %s", path, exc)


# =============================================================================
# Accessors
# =============================================================================
def last_folder(settings: dict) -> Path | None:
    """Return the remembered folder if it still exists."""
    value = settings.get("last_folder")
    if not isinstance(value, str) or not value:
        return None
    folder = Path(value)
    return folder if folder.is_dir() else None


def remember_folder(settings: dict, folder: Path) -> None:
    settings["last_folder"] = str(folder)
    settings["last_used"] = datetime.now(timezone.utc).isoformat(timespec="seconds")
