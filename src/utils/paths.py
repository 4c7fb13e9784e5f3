"""Production file path resolution using platformdirs.

In dev mode (not bundled), paths resolve relative to the project root.
In bundled mode (PyInstaller), paths use platform-appropriate directories:
  macOS: ~/Library/Application Support/com.drivechat.app/
  Linux: ~/.local/share/com.drivechat.app/
"""

from pathlib import Path

import platformdirs

from src.utils.runtime import is_bundled

APP_NAME = "DriveChat"
# Bundle identifier (used by platformdirs when roaming=False)
_BUNDLE_ID = "com.drivechat.app"


def get_data_dir() -> Path:
    """Return the directory for persistent data (DB, provider settings).

    In dev mode: project root.
    In bundled mode: platform user data dir.
    """
    if is_bundled():
        return Path(platformdirs.user_data_dir(_BUNDLE_ID, appauthor=False))
    return Path(__file__).resolve().parent.parent.parent


def get_log_dir() -> Path:
    """Return the directory for application logs."""
    if is_bundled():
        return Path(platformdirs.user_log_dir(_BUNDLE_ID, appauthor=False))
    return Path(__file__).resolve().parent.parent.parent


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "drivechat.db"


def get_provider_settings_path() -> Path:
    """Return the JSON file holding persisted provider settings."""
    return get_data_dir() / "provider_settings.json"


def ensure_dirs_exist() -> None:
    """Create all required directories if they don't exist."""
    for d in [get_data_dir(), get_log_dir()]:
        d.mkdir(parents=True, exist_ok=True)
