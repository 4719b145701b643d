"""
Centralized configuration for the prioritizer.

Deployment-dependent values are read from the environment here.
Bucket defaults can additionally be overridden with ``buckets.yaml`` in
the config directory.
"""

import logging
import os

import yaml

from . import paths

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


# ============================================================
# Logging
# ============================================================

LOG_LEVEL: str = os.environ.get("PRIORITIZER_LOG_LEVEL", "INFO")
"""Root log level for the API server."""

CLI_LOG_LEVEL: str = os.environ.get("PRIORITIZER_LOG_LEVEL", "WARNING")
"""Root log level for the CLI; keeps command output uncluttered."""

LOG_JSON: bool | None = (
    _env_bool("PRIORITIZER_LOG_JSON", "false") if "PRIORITIZER_LOG_JSON" in os.environ else None
)
"""Force JSON (true) or human (false) logs. Unset: JSON when stderr is not a TTY."""

# ============================================================
# Workflow
# ============================================================

DEFAULT_LOCKED: bool = _env_bool("PRIORITIZER_DEFAULT_LOCKED", "true")
"""Lock mode for a freshly created state."""

# ============================================================
# HTTP
# ============================================================

CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
"""Origins allowed by the API's CORS middleware."""

API_HOST: str = os.environ.get("PRIORITIZER_HOST", "127.0.0.1")
API_PORT: int = int(os.environ.get("PRIORITIZER_PORT", "8420"))


def load_bucket_overrides() -> dict:
    """
    Read ``buckets.yaml`` from the config directory.

    Shape: ``{dimension: {level: {weight, title, description, limit}}}``.
    Returns {} when the file is missing or unreadable.
    """
    config_file = paths.buckets_file()
    if not config_file.exists():
        return {}
    try:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not read %s: %s", config_file, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: expected a mapping at top level", config_file)
        return {}
    logger.info("Loaded bucket overrides from %s", config_file)
    return data
