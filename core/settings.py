"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "MoiLedger"


DATA_DIR = get_default_data_dir(APP_NAME)
STORAGE_DIR = DATA_DIR / "storage"
SECRETS_DIR = DATA_DIR / "secrets"
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, STORAGE_DIR, SECRETS_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


QUEUE_DB_PATH = STORAGE_DIR / "pending_writes.db"
CREDENTIALS_PATH = SECRETS_DIR / "service_account.json"
SYNC_LOG_PATH = LOG_DIR / "sync.log"


@dataclass(frozen=True)
class SyncSettings:
    debounce_ms: int = 300
    periodic_interval_sec: float = 30.0
    remote_timeout_sec: float = 15.0
    # False mirrors the original behaviour: unsynced writes are dropped on logout.
    persist_queue: bool = False
    probe_host: str = "8.8.8.8"
    probe_port: int = 53
    probe_interval_sec: float = 5.0
    probe_timeout_sec: float = 2.0


SYNC = SyncSettings()


@dataclass(frozen=True)
class FirestoreSettings:
    project_id: Optional[str] = os.environ.get("MOI_FIRESTORE_PROJECT")
    database: str = "(default)"
    credentials_path: Path = CREDENTIALS_PATH
    scopes: tuple[str, ...] = (
        "https://www.googleapis.com/auth/datastore",
    )


FIRESTORE = FirestoreSettings()


@dataclass(frozen=True)
class UISettings:
    app_title: str = APP_NAME
    theme_mode: str = "system"
    color_scheme_seed: str = "#4F46E5"
    window_min_width: int = 720
    window_min_height: int = 480
    online_color: str = "#4CAF50"
    syncing_color: str = "#FF9800"
    offline_color: str = "#F44336"
    pending_color: str = "#FFC107"


UI = UISettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "STORAGE_DIR",
    "SECRETS_DIR",
    "LOG_DIR",
    "QUEUE_DB_PATH",
    "CREDENTIALS_PATH",
    "SYNC_LOG_PATH",
    "SYNC",
    "FIRESTORE",
    "UI",
    "SyncSettings",
    "FirestoreSettings",
    "get_default_data_dir",
]
