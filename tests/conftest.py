"""
Test configuration - puts the repo root on sys.path and isolates app data.

Every test runs with PRIORITIZER_HOME pointed at a temporary directory, and
sqlite3.connect refuses the user's real prioritizer DB.
"""

import sqlite3
import sys
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import prioritizer, api, cli
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from prioritizer.analytics import Analytics  # noqa: E402
from prioritizer.service import PrioritizerService  # noqa: E402
from prioritizer.store import InMemoryStore  # noqa: E402

# =============================================================================
# DETERMINISM GUARD: Block live database access
# =============================================================================

HOME_DB_ABSOLUTE = Path.home() / ".prioritizer" / "data" / "prioritizer.db"

_original_sqlite_connect = sqlite3.connect


def _guarded_sqlite_connect(database, *args, **kwargs):
    """Intercept sqlite3.connect to block live DB access."""
    db_str = str(database)
    if db_str != ":memory:" and Path(db_str).resolve() == HOME_DB_ABSOLUTE:
        raise RuntimeError(
            f"DETERMINISM VIOLATION: Test attempted to access live DB at {database}.\n"
            "Use the sqlite_store fixture (tmp_path) instead."
        )
    return _original_sqlite_connect(database, *args, **kwargs)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point app data at a temp dir and guard the live DB."""
    monkeypatch.setenv("PRIORITIZER_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("PRIORITIZER_DB", raising=False)
    monkeypatch.setattr(sqlite3, "connect", _guarded_sqlite_connect)
    return tmp_path / "home"


# =============================================================================
# STORE / SERVICE FIXTURES
# =============================================================================


class RecordingSink:
    """Analytics sink that remembers every event."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def __call__(self, event: str, properties: dict) -> None:
        self.events.append((event, properties))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def events():
    return RecordingSink()


@pytest.fixture
def service(store, events):
    return PrioritizerService(store, analytics=Analytics(events))


@pytest.fixture
def score_items():
    """
    Drive named items through the workflow to Results.

    Usage:
        ids = score_items(service, {"A": (1, 1, 1), "B": (3, 2, 1)})
    """

    def _score(service: PrioritizerService, levels: dict[str, tuple[int, int, int]]) -> dict:
        for name in levels:
            assert service.add_item(name).success
        ids = {item["name"]: item["id"] for item in service.get_items()["items"]}

        assert service.advance_stage().success
        for position, dimension in enumerate(("urgency", "value", "duration")):
            for name, triple in levels.items():
                result = service.set_item_property(ids[name], dimension, triple[position])
                assert result.success, result.error
            assert service.advance_stage().success
        return ids

    return _score


@pytest.fixture
def scored_service(service, score_items):
    """
    Service at Results with three items (default weights):

    - Alpha: urgency 1, value 1, duration 1 -> CD3 1
    - Beta:  urgency 1, value 2, duration 1 -> CD3 2
    - Gamma: urgency 3, value 1, duration 1 -> CD3 3
    """
    ids = score_items(service, {"Alpha": (1, 1, 1), "Beta": (1, 2, 1), "Gamma": (3, 1, 1)})
    service.ids = ids
    return service
