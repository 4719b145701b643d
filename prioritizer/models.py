"""
Item model - one backlog work item and its derived metrics.

Field names are snake_case in Python; ``to_dict``/``from_dict`` use the
camelCase wire names the stored data has always used (``urgencySet``,
``costOfDelay``, ``CD3``, ...). ``from_dict`` also normalizes legacy records.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from urllib.parse import urlparse


class Dimension(StrEnum):
    """The three ordinal attributes an item is scored on."""

    URGENCY = "urgency"
    VALUE = "value"
    DURATION = "duration"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class Stage(StrEnum):
    """Workflow stages. Values are the names stored in app state."""

    ITEM_LISTING = "Item Listing"
    URGENCY = "urgency"
    VALUE = "value"
    DURATION = "duration"
    RESULTS = "Results"


DIMENSIONS = (Dimension.URGENCY, Dimension.VALUE, Dimension.DURATION)
LEVELS = (1, 2, 3)
CONFIDENCE_LEVELS = (1, 2, 3, 4)

# Survey section key -> display name. Order matters for error messages.
SURVEY_SECTIONS = {
    "scopeConfidence": "Scope Confidence",
    "urgencyConfidence": "Urgency Confidence",
    "valueConfidence": "Value Confidence",
    "durationConfidence": "Duration Confidence",
}


def now_iso() -> str:
    return datetime.now().isoformat()


def is_valid_url(candidate) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not candidate or not isinstance(candidate, str):
        return False
    candidate = candidate.strip()
    try:
        parsed = urlparse(candidate)
    except ValueError:
        return False
    return parsed.scheme.lower() in ("http", "https") and bool(parsed.netloc)


def _empty_votes() -> list[int]:
    return [0, 0, 0, 0]


@dataclass
class Note:
    text: str
    created_at: str = field(default_factory=now_iso)
    modified_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict:
        return {"text": self.text, "createdAt": self.created_at, "modifiedAt": self.modified_at}

    @classmethod
    def from_dict(cls, data) -> "Note":
        # Very old exports stored bare strings.
        if isinstance(data, str):
            stamp = now_iso()
            return cls(text=data, created_at=stamp, modified_at=stamp)
        created = data.get("createdAt") or now_iso()
        return cls(
            text=data.get("text", ""),
            created_at=created,
            modified_at=data.get("modifiedAt") or created,
        )


@dataclass
class ConfidenceSurvey:
    """
    Vote distributions for one item.

    Each section is a fixed 4-slot list: index 0 holds the votes for
    confidence level 1, index 3 for level 4.
    """

    scope: list[int] = field(default_factory=_empty_votes)
    urgency: list[int] = field(default_factory=_empty_votes)
    value: list[int] = field(default_factory=_empty_votes)
    duration: list[int] = field(default_factory=_empty_votes)

    def votes_for(self, dimension: Dimension) -> list[int]:
        return getattr(self, dimension.value)

    def total(self, section: str) -> int:
        return sum(getattr(self, section))

    def selections_count(self) -> int:
        """Number of (section, level) cells holding at least one vote."""
        return sum(1 for section in ("scope", "urgency", "value", "duration")
                   for count in getattr(self, section) if count > 0)

    def to_dict(self) -> dict:
        return {
            f"{section}Confidence": {
                str(level): getattr(self, section)[level - 1] for level in CONFIDENCE_LEVELS
            }
            for section in ("scope", "urgency", "value", "duration")
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "ConfidenceSurvey":
        survey = cls()
        if not data:
            return survey
        for section in ("scope", "urgency", "value", "duration"):
            raw = data.get(f"{section}Confidence") or {}
            votes = _empty_votes()
            for level in CONFIDENCE_LEVELS:
                count = raw.get(level, raw.get(str(level), 0))
                try:
                    votes[level - 1] = max(0, int(count or 0))
                except (TypeError, ValueError):
                    votes[level - 1] = 0
            setattr(survey, section, votes)
        return survey


@dataclass
class ConfidenceWeightedValues:
    urgency: float
    value: float
    duration: float

    def to_dict(self) -> dict:
        return {"urgency": self.urgency, "value": self.value, "duration": self.duration}

    @classmethod
    def from_dict(cls, data: dict | None) -> "ConfidenceWeightedValues | None":
        if not data:
            return None
        try:
            return cls(
                urgency=float(data["urgency"]),
                value=float(data["value"]),
                duration=float(data["duration"]),
            )
        except (KeyError, TypeError, ValueError):
            return None


@dataclass
class BoardPosition:
    row: int = 0
    col: int = 0
    duration: int | None = None

    def to_dict(self) -> dict:
        return {"row": self.row, "col": self.col, "duration": self.duration}


@dataclass
class Item:
    id: str
    name: str
    link: str | None = None

    urgency: int = 0
    value: int = 0
    duration: int = 0
    urgency_set: bool = False
    value_set: bool = False
    duration_set: bool = False

    cost_of_delay: float = 0
    cd3: float = 0
    board_position: BoardPosition = field(default_factory=BoardPosition)

    active: bool = True
    sequence: int | None = None
    is_new_item: bool = False
    reordered: bool = False
    added_to_manually_sequenced_list: bool = False

    notes: list[Note] = field(default_factory=list)

    has_confidence_survey: bool = False
    confidence_survey: ConfidenceSurvey = field(default_factory=ConfidenceSurvey)
    confidence_weighted_values: ConfidenceWeightedValues | None = None
    confidence_weighted_cd3: float | None = None

    created_at: str = field(default_factory=now_iso)

    @classmethod
    def create(cls, name: str, link: str | None = None) -> "Item":
        """New item with every attribute unset. Invalid links are dropped."""
        return cls(
            id=f"{int(datetime.now().timestamp() * 1000)}-{uuid.uuid4().hex[:8]}",
            name=name,
            link=link.strip() if is_valid_url(link) else None,
        )

    def raw(self, dimension: Dimension) -> int:
        return getattr(self, dimension.value)

    def is_set(self, dimension: Dimension) -> bool:
        return getattr(self, f"{dimension.value}_set")

    def set_raw(self, dimension: Dimension, level: int) -> None:
        """Assign a raw level; the set flag only ever moves to True."""
        setattr(self, dimension.value, level)
        if level > 0:
            setattr(self, f"{dimension.value}_set", True)

    @property
    def has_cd3(self) -> bool:
        return (self.cd3 or 0) > 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "link": self.link,
            "urgency": self.urgency,
            "value": self.value,
            "duration": self.duration,
            "urgencySet": self.urgency_set,
            "valueSet": self.value_set,
            "durationSet": self.duration_set,
            "costOfDelay": self.cost_of_delay,
            "CD3": self.cd3,
            "boardPosition": self.board_position.to_dict(),
            "active": self.active,
            "sequence": self.sequence,
            "isNewItem": self.is_new_item,
            "reordered": self.reordered,
            "addedToManuallySequencedList": self.added_to_manually_sequenced_list,
            "notes": [note.to_dict() for note in self.notes],
            "hasConfidenceSurvey": self.has_confidence_survey,
            "confidenceSurvey": self.confidence_survey.to_dict(),
            "confidenceWeightedValues": (
                self.confidence_weighted_values.to_dict()
                if self.confidence_weighted_values
                else None
            ),
            "confidenceWeightedCD3": self.confidence_weighted_cd3,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Item":
        """Build an item from stored data, filling gaps left by older versions."""
        urgency = int(data.get("urgency") or 0)
        value = int(data.get("value") or 0)
        duration = int(data.get("duration") or 0)

        def flag(key: str, raw: int) -> bool:
            stored = data.get(key)
            return raw > 0 if stored is None else bool(stored)

        position = data.get("boardPosition") or {}
        link = data.get("link")
        active = data.get("active")
        weighted_cd3 = data.get("confidenceWeightedCD3")

        return cls(
            id=str(data.get("id") or uuid.uuid4().hex),
            name=data.get("name", ""),
            link=link.strip() if is_valid_url(link) else None,
            urgency=urgency,
            value=value,
            duration=duration,
            urgency_set=flag("urgencySet", urgency),
            value_set=flag("valueSet", value),
            duration_set=flag("durationSet", duration),
            cost_of_delay=data.get("costOfDelay") or 0,
            cd3=data.get("CD3") or 0,
            board_position=BoardPosition(
                row=position.get("row", 0),
                col=position.get("col", 0),
                duration=position.get("duration"),
            ),
            active=True if active is None else bool(active),
            sequence=data.get("sequence"),
            is_new_item=bool(data.get("isNewItem", False)),
            reordered=bool(data.get("reordered", False)),
            added_to_manually_sequenced_list=bool(data.get("addedToManuallySequencedList", False)),
            notes=[Note.from_dict(n) for n in data.get("notes") or []],
            has_confidence_survey=bool(data.get("hasConfidenceSurvey", False)),
            confidence_survey=ConfidenceSurvey.from_dict(data.get("confidenceSurvey")),
            confidence_weighted_values=ConfidenceWeightedValues.from_dict(
                data.get("confidenceWeightedValues")
            ),
            confidence_weighted_cd3=None if weighted_cd3 is None else float(weighted_cd3),
            created_at=data.get("createdAt") or now_iso(),
        )
