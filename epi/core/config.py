"""
Runtime configuration for the immunization core.

All settings come from the environment (optionally a local .env file) and
default to an offline-capable local setup: one SQLite replica on the device
and a second SQLite file standing in for the remote counterpart.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

# Replica locations
DB_PATH = os.getenv("DB_PATH", "./data/epi.db")
REMOTE_DB_PATH = os.getenv("REMOTE_DB_PATH", "./data/epi_remote.db")

DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# Connectivity and synchronization
OFFLINE_MODE = os.getenv("OFFLINE_MODE", "false").lower() == "true"
SYNC_COLLECTIONS = os.getenv("SYNC_COLLECTIONS", "children,records")
SYNC_ON_RECONNECT = os.getenv("SYNC_ON_RECONNECT", "true").lower() == "true"
CONNECTIVITY_POLL_SEC = int(os.getenv("CONNECTIVITY_POLL_SEC", "5"))

# Collections every replica carries, in cascade order (owners before dependents)
KNOWN_COLLECTIONS = ("children", "records", "users", "vaccinators")

VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def ensure_db_directory(path: str = DB_PATH):
    """Ensure the directory holding a database file exists."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def get_sync_collections() -> List[str]:
    """Collections reconciled by a sync pass, in processing order."""
    names = [name.strip() for name in SYNC_COLLECTIONS.split(",")]
    return [name for name in names if name]


def get_connectivity_poll_interval():
    """Get connectivity poll interval in seconds."""
    return CONNECTIVITY_POLL_SEC


def is_sync_on_reconnect_enabled():
    return SYNC_ON_RECONNECT


def is_online(remote_path: Optional[str] = None) -> bool:
    """
    Connectivity signal for a remote counterpart (REMOTE_DB_PATH by default).

    OFFLINE_MODE forces the signal off. Otherwise the remote replica counts
    as reachable when the directory holding its database exists.
    """
    if os.getenv("OFFLINE_MODE", "false").lower() == "true":
        return False
    return Path(remote_path or REMOTE_DB_PATH).parent.is_dir()


def validate_sync_config():
    """Validate synchronization configuration and return any issues."""
    issues = []

    collections = get_sync_collections()
    if not collections:
        issues.append("SYNC_COLLECTIONS must name at least one collection")

    for name in collections:
        if name not in KNOWN_COLLECTIONS:
            issues.append(f"Unknown collection in SYNC_COLLECTIONS: {name}")

    if len(set(collections)) != len(collections):
        issues.append("SYNC_COLLECTIONS contains duplicates")

    if CONNECTIVITY_POLL_SEC < 1:
        issues.append("CONNECTIVITY_POLL_SEC must be >= 1")

    if os.path.abspath(DB_PATH) == os.path.abspath(REMOTE_DB_PATH):
        issues.append("DB_PATH and REMOTE_DB_PATH must point to different files")

    return issues
