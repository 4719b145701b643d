"""
Bucket configuration - weights, titles, descriptions and limits per level.

Every dimension (urgency, value, duration) has three levels. The weight of
a level is what the metrics engine multiplies/divides by; title, description
and limit are informational. Limits never block a mutation, they only flag
``over_limit`` once more items sit in a level than the limit allows.

Also holds the confidence weight table (levels 1-4) used by the survey
reducer, and its display labels.
"""

import copy
import logging
import math
from dataclasses import asdict, dataclass

from .errors import ValidationError
from .models import DIMENSIONS, LEVELS, Dimension, Item

logger = logging.getLogger(__name__)

# =============================================================================
# DEFAULTS
# =============================================================================

BUCKET_DEFAULTS: dict[Dimension, dict[int, dict]] = {
    Dimension.URGENCY: {
        1: {
            "weight": 1,
            "limit": 30,
            "title": "WHENEVER",
            "description": (
                '"Whenever" represents the lowest band of urgency. The total value '
                "isn't massively affected by delay. Most cost-reducing initiatives "
                "normally fall into this band."
            ),
        },
        2: {
            "weight": 2,
            "limit": 30,
            "title": "SOON",
            "description": (
                '"Soon" represents the middle band of urgency. If we don\'t deliver '
                "this soon, the value will start to decline or the risk of loss "
                "increase."
            ),
        },
        3: {
            "weight": 3,
            "limit": 30,
            "title": "ASAP",
            "description": (
                '"ASAP" represents the highest band of urgency. If we don\'t deliver '
                "this ASAP, the value will quickly evaporate."
            ),
        },
    },
    Dimension.VALUE: {
        1: {
            "weight": 1,
            "limit": 30,
            "title": "MEH",
            "description": (
                '"Meh" represents the lowest total value band: maintenance-level work '
                "that keeps the lights on but won't move the needle."
            ),
        },
        2: {
            "weight": 2,
            "limit": 30,
            "title": "BONUS",
            "description": (
                '"Bonus" represents the middle band of total value: things worth '
                "telling customers about, or valuable enough that we all make bonus."
            ),
        },
        3: {
            "weight": 3,
            "limit": 30,
            "title": "KILLER",
            "description": (
                '"Killer" represents the highest band of total value: if we do this we '
                "make a killing, if we don't it will probably kill us."
            ),
        },
    },
    Dimension.DURATION: {
        1: {"weight": 1, "limit": None, "title": "1-3d", "description": "TBD"},
        2: {"weight": 2, "limit": None, "title": "1-3w", "description": "TBD"},
        3: {"weight": 3, "limit": None, "title": "1-3mo", "description": "TBD"},
    },
}

CONFIDENCE_WEIGHT_DEFAULTS: dict[int, float] = {1: 0.30, 2: 0.50, 3: 0.70, 4: 0.90}

CONFIDENCE_LEVEL_LABELS: dict[int, str] = {
    1: "Not Confident (rarely, unlikely, low probability)",
    2: "Somewhat Confident (maybe, possibly, moderate probability)",
    3: "Confident (likely, probably, high probability)",
    4: "Very Confident (almost certainly, almost always, certainly)",
}

BUCKET_FIELDS = ("weight", "limit", "title", "description")


# =============================================================================
# FIELD VALIDATORS
# =============================================================================


def _validate_weight(value) -> float:
    if isinstance(value, bool):
        raise ValidationError("Weight must be a non-negative number")
    try:
        weight = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Weight must be a non-negative number") from None
    if not math.isfinite(weight) or weight < 0:
        raise ValidationError("Weight must be a non-negative number")
    return weight


def _validate_limit(value) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError("Limit must be a non-negative integer")
    try:
        limit = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Limit must be a non-negative integer") from None
    if limit < 0 or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError("Limit must be a non-negative integer")
    return limit


def _validate_title(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Title cannot be empty")
    return value


def _validate_description(value) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError("Description must be a string")
    return value


FIELD_VALIDATORS = {
    "weight": _validate_weight,
    "limit": _validate_limit,
    "title": _validate_title,
    "description": _validate_description,
}


def parse_dimension(name) -> Dimension:
    try:
        return Dimension(name)
    except ValueError:
        raise ValidationError(
            f"Invalid property: {name}. Must be one of: {', '.join(d.value for d in DIMENSIONS)}"
        ) from None


def validate_level(level) -> int:
    if isinstance(level, bool) or level not in LEVELS:
        raise ValidationError(f"Invalid level: {level}. Must be 1, 2, or 3.")
    return int(level)


def validate_field(field_name: str, value):
    """Validate and coerce a bucket field value. Raises ValidationError."""
    validator = FIELD_VALIDATORS.get(field_name)
    if validator is None:
        raise ValidationError(f"Invalid field: {field_name}")
    return validator(value)


# =============================================================================
# BUCKET LEVEL / CONFIG
# =============================================================================


@dataclass
class BucketLevel:
    weight: float
    limit: int | None
    title: str
    description: str
    count: int = 0
    over_limit: bool = False

    def refresh(self, count: int) -> None:
        self.count = count
        self.over_limit = self.limit is not None and count > self.limit

    def to_dict(self) -> dict:
        data = asdict(self)
        data["overLimit"] = data.pop("over_limit")
        return data


class BucketConfig:
    """Per-dimension, per-level bucket settings."""

    def __init__(self, levels: dict[Dimension, dict[int, BucketLevel]] | None = None):
        self.levels = levels if levels is not None else self.defaults().levels

    @classmethod
    def defaults(cls, overrides: dict | None = None) -> "BucketConfig":
        """Factory defaults, with configured overrides applied on top."""
        return cls(normalize_buckets(None, overrides))

    def level(self, dimension: Dimension, level: int) -> BucketLevel:
        return self.levels[Dimension(dimension)][level]

    def get_weight(self, dimension: Dimension, level: int) -> float:
        """Weight for a level. Unset (0) or unknown levels weigh 0."""
        bucket = self.levels.get(Dimension(dimension), {}).get(level)
        return bucket.weight if bucket else 0

    def set_weight(self, dimension: Dimension, level: int, weight: float) -> None:
        self.level(dimension, level).weight = weight

    def set_title(self, dimension: Dimension, level: int, title: str) -> None:
        self.level(dimension, level).title = title

    def set_description(self, dimension: Dimension, level: int, description: str) -> None:
        self.level(dimension, level).description = description

    def set_limit(self, dimension: Dimension, level: int, limit: int | None) -> None:
        bucket = self.level(dimension, level)
        bucket.limit = limit
        bucket.refresh(bucket.count)

    def title_for(self, dimension: Dimension, level: int) -> str:
        bucket = self.levels.get(Dimension(dimension), {}).get(level)
        return bucket.title if bucket else ""

    def update_counts(self, items: list[Item]) -> None:
        counts = calculate_bucket_counts(items)
        for dimension in DIMENSIONS:
            for level in LEVELS:
                self.levels[dimension][level].refresh(counts[dimension][level])

    def to_dict(self) -> dict:
        return {
            dimension.value: {
                str(level): self.levels[dimension][level].to_dict() for level in LEVELS
            }
            for dimension in DIMENSIONS
        }

    @classmethod
    def from_dict(cls, raw: dict | None, overrides: dict | None = None) -> "BucketConfig":
        return cls(normalize_buckets(raw, overrides))


def _level_data(raw: dict, dimension: Dimension, level: int) -> dict:
    by_dimension = raw.get(dimension.value) or {}
    return by_dimension.get(level) or by_dimension.get(str(level)) or {}


def normalize_buckets(
    raw: dict | None, overrides: dict | None = None
) -> dict[Dimension, dict[int, BucketLevel]]:
    """
    Overlay stored bucket data on the defaults.

    Layers, lowest first: BUCKET_DEFAULTS, configured ``overrides``, ``raw``.
    Accepts level keys as ints or strings and ``overLimit``/``over_limit``.
    Override values are validated; invalid ones are logged and skipped.
    """
    raw = raw or {}
    overrides = overrides or {}
    levels: dict[Dimension, dict[int, BucketLevel]] = {}
    for dimension in DIMENSIONS:
        levels[dimension] = {}
        for level in LEVELS:
            merged = copy.deepcopy(BUCKET_DEFAULTS[dimension][level])
            for key, value in _level_data(overrides, dimension, level).items():
                if key not in BUCKET_FIELDS:
                    continue
                try:
                    merged[key] = validate_field(key, value)
                except ValidationError as e:
                    logger.warning("Ignoring bucket override %s.%s.%s: %s", dimension, level, key, e)
            stored = _level_data(raw, dimension, level)
            for key in BUCKET_FIELDS:
                if key in stored:
                    merged[key] = stored[key]
            bucket = BucketLevel(**merged)
            bucket.count = int(stored.get("count", 0) or 0)
            bucket.over_limit = bool(stored.get("overLimit", stored.get("over_limit", False)))
            levels[dimension][level] = bucket
    return levels


def calculate_bucket_counts(items: list[Item]) -> dict[Dimension, dict[int, int]]:
    counts = {dimension: dict.fromkeys(LEVELS, 0) for dimension in DIMENSIONS}
    for item in items:
        for dimension in DIMENSIONS:
            level = item.raw(dimension)
            if level in LEVELS:
                counts[dimension][level] += 1
    return counts


def update_buckets(buckets: BucketConfig, items: list[Item]) -> BucketConfig:
    """Refresh ``count``/``over_limit`` on every level from the item collection."""
    buckets.update_counts(items)
    over = [
        f"{dimension.value}:{level}"
        for dimension in DIMENSIONS
        for level in LEVELS
        if buckets.levels[dimension][level].over_limit
    ]
    if over:
        logger.debug("Buckets over limit: %s", ", ".join(over))
    return buckets


def normalize_confidence_weights(raw: dict | None) -> dict[int, float]:
    weights = dict(CONFIDENCE_WEIGHT_DEFAULTS)
    for key, value in (raw or {}).items():
        try:
            level = int(key)
            if level in weights:
                weights[level] = float(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid confidence weight %r=%r", key, value)
    return weights
