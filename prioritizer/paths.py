"""
Filesystem locations for the prioritizer.

Everything lives under one home directory (``~/.prioritizer`` unless
PRIORITIZER_HOME says otherwise); the database can be pointed elsewhere
with PRIORITIZER_DB. Directory helpers create what they return.
"""

from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "PRIORITIZER_HOME"
APP_ENV_DB = "PRIORITIZER_DB"

BUCKETS_FILE = "buckets.yaml"
DB_FILE = "prioritizer.db"


def app_home() -> Path:
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".prioritizer").resolve()


def _subdir(name: str) -> Path:
    d = app_home() / name
    d.mkdir(parents=True, exist_ok=True)
    return d


def config_dir() -> Path:
    return _subdir("config")


def data_dir() -> Path:
    return _subdir("data")


def out_dir() -> Path:
    """Default destination for CSV exports."""
    return _subdir("output")


def buckets_file() -> Path:
    """Optional YAML file overriding bucket defaults. May not exist."""
    return config_dir() / BUCKETS_FILE


def db_path() -> Path:
    """
    SQLite database location.

    PRIORITIZER_DB wins when set; otherwise ``<home>/data/prioritizer.db``.
    """
    if os.environ.get(APP_ENV_DB):
        return Path(os.environ[APP_ENV_DB]).expanduser().resolve()
    return data_dir() / DB_FILE
