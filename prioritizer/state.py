"""
App state - workflow stage, lock mode, bucket configuration and confidence tables.

``AppState.from_dict`` is the migration point for stored state: it accepts
every older shape the prioritizer has written and returns a current one.
"""

import logging
from dataclasses import dataclass, field

from .buckets import (
    CONFIDENCE_LEVEL_LABELS,
    BucketConfig,
    normalize_confidence_weights,
)
from .models import Stage

logger = logging.getLogger(__name__)

STATE_VERSION = 1

STAGE_ORDER: tuple[Stage, ...] = (
    Stage.ITEM_LISTING,
    Stage.URGENCY,
    Stage.VALUE,
    Stage.DURATION,
    Stage.RESULTS,
)

# Older builds stored the results stage under its metric name.
LEGACY_STAGE_NAMES = {"CD3": Stage.RESULTS}


def parse_stage(name) -> Stage | None:
    """Stage for a stored/requested name, or None when unknown."""
    if isinstance(name, Stage):
        return name
    if name in LEGACY_STAGE_NAMES:
        return LEGACY_STAGE_NAMES[name]
    try:
        return Stage(name)
    except ValueError:
        return None


def stages_through(stage: Stage) -> list[Stage]:
    """Every stage from the first up to and including ``stage``."""
    return list(STAGE_ORDER[: STAGE_ORDER.index(stage) + 1])


@dataclass
class AppState:
    current_stage: Stage = Stage.ITEM_LISTING
    locked: bool = True
    buckets: BucketConfig = field(default_factory=BucketConfig.defaults)
    confidence_weights: dict[int, float] = field(
        default_factory=lambda: normalize_confidence_weights(None)
    )
    confidence_level_labels: dict[int, str] = field(
        default_factory=lambda: dict(CONFIDENCE_LEVEL_LABELS)
    )
    results_manually_reordered: bool = False
    visited_stages: list[Stage] = field(default_factory=lambda: [Stage.ITEM_LISTING])
    version: int = STATE_VERSION

    def mark_visited(self, stage: Stage) -> None:
        if stage not in self.visited_stages:
            self.visited_stages.append(stage)

    def to_dict(self) -> dict:
        return {
            "currentStage": self.current_stage.value,
            "locked": self.locked,
            "buckets": self.buckets.to_dict(),
            "confidenceWeights": {str(k): v for k, v in self.confidence_weights.items()},
            "confidenceLevelLabels": {
                str(k): v for k, v in self.confidence_level_labels.items()
            },
            "resultsManuallyReordered": self.results_manually_reordered,
            "visitedStages": [stage.value for stage in self.visited_stages],
            "version": self.version,
        }

    @classmethod
    def from_dict(
        cls,
        data: dict | None,
        default_locked: bool = True,
        bucket_overrides: dict | None = None,
    ) -> "AppState":
        """
        Build state from stored data, migrating legacy shapes.

        - ``entryStage`` (pre-workflow builds) is read when ``currentStage`` is absent
        - a legacy ``CD3`` stage becomes Results; unknown stages fall back to Item Listing
        - missing ``visitedStages`` is derived as every stage up to the current one
        - missing ``locked`` uses ``default_locked``
        - buckets are overlaid on defaults (plus configured overrides) so every
          level has every field
        """
        if not data:
            return cls(locked=default_locked, buckets=BucketConfig.defaults(bucket_overrides))

        raw_stage = data.get("currentStage", data.get("entryStage"))
        stage = parse_stage(raw_stage)
        if stage is None:
            if raw_stage is not None:
                logger.warning("Unknown stored stage %r, falling back to Item Listing", raw_stage)
            stage = Stage.ITEM_LISTING

        visited_raw = data.get("visitedStages")
        if visited_raw:
            visited = []
            for name in visited_raw:
                parsed = parse_stage(name)
                if parsed is not None and parsed not in visited:
                    visited.append(parsed)
        else:
            visited = stages_through(stage)
        if Stage.ITEM_LISTING not in visited:
            visited.insert(0, Stage.ITEM_LISTING)
        if stage not in visited:
            visited.append(stage)

        labels = dict(CONFIDENCE_LEVEL_LABELS)
        for key, label in (data.get("confidenceLevelLabels") or {}).items():
            try:
                if int(key) in labels and isinstance(label, str):
                    labels[int(key)] = label
            except (TypeError, ValueError):
                continue

        locked = data.get("locked")
        return cls(
            current_stage=stage,
            locked=default_locked if locked is None else bool(locked),
            buckets=BucketConfig.from_dict(data.get("buckets"), bucket_overrides),
            confidence_weights=normalize_confidence_weights(data.get("confidenceWeights")),
            confidence_level_labels=labels,
            results_manually_reordered=bool(data.get("resultsManuallyReordered", False)),
            visited_stages=visited,
            version=STATE_VERSION,
        )
