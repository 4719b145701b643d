# CD3 Prioritizer - Core Library
"""
Exports for the API server, the CLI and other consumers.
"""

from pathlib import Path

from .analytics import Analytics
from .errors import NotFoundError, PrioritizerError, StateError, ValidationError
from .models import Dimension, Item, Stage
from .service import OperationResult, PrioritizerService
from .state import AppState
from .store import InMemoryStore, SQLiteStore, Store

__version__ = "1.0.0"


def build_service(db_path: str | Path | None = None) -> PrioritizerService:
    """Service over the SQLite store at ``db_path`` (default: configured path)."""
    from . import config, paths

    store = SQLiteStore(
        db_path or paths.db_path(),
        default_locked=config.DEFAULT_LOCKED,
        bucket_overrides=config.load_bucket_overrides(),
    )
    return PrioritizerService(store)


__all__ = [
    "build_service",
    "PrioritizerService",
    "OperationResult",
    "Store",
    "InMemoryStore",
    "SQLiteStore",
    "AppState",
    "Item",
    "Dimension",
    "Stage",
    "Analytics",
    "PrioritizerError",
    "ValidationError",
    "NotFoundError",
    "StateError",
]
