"""
Item metrics - cost of delay, CD3, board position and confidence weighting.

Scoring:
- cost_of_delay = weight(urgency) * weight(value), 0 until both are set
- cd3 = cost_of_delay / weight(duration), 0 until duration is set
- confidence weighting scales each raw weight by the vote-weighted average
  confidence for that dimension, then recombines them the same way as CD3

Everything here is pure except ``recompute_*``, which write the results
back onto the Item.
"""

import logging

from .buckets import BucketConfig
from .models import (
    CONFIDENCE_LEVELS,
    BoardPosition,
    ConfidenceWeightedValues,
    Dimension,
    Item,
)

logger = logging.getLogger(__name__)


def calculate_cost_of_delay(urgency: int, value: int, buckets: BucketConfig) -> float:
    if urgency <= 0 or value <= 0:
        return 0
    return buckets.get_weight(Dimension.URGENCY, urgency) * buckets.get_weight(
        Dimension.VALUE, value
    )


def calculate_cd3(cost_of_delay: float, duration: int, buckets: BucketConfig) -> float:
    if duration <= 0:
        return 0
    duration_weight = buckets.get_weight(Dimension.DURATION, duration)
    if not duration_weight:
        return 0
    return cost_of_delay / duration_weight


def calculate_board_position(item: Item) -> BoardPosition:
    return BoardPosition(
        row=item.value or 0,
        col=item.urgency or 0,
        duration=item.duration or None,
    )


def weighted_confidence(votes: list[int], confidence_weights: dict[int, float]) -> float | None:
    """
    Vote-weighted average confidence for one distribution.

    ``votes[i]`` is the vote count for confidence level ``i + 1``.
    Returns None when nobody voted.
    """
    total_votes = sum(votes)
    if total_votes <= 0:
        return None
    weighted_sum = sum(
        confidence_weights.get(level, 0) * votes[level - 1] for level in CONFIDENCE_LEVELS
    )
    return weighted_sum / total_votes


def calculate_confidence_weighted_values(
    item: Item, buckets: BucketConfig, confidence_weights: dict[int, float]
) -> tuple[ConfidenceWeightedValues | None, float | None]:
    """Return (weighted values, weighted CD3); both None unless fully defined."""
    if not item.has_confidence_survey:
        return None, None

    weighted: dict[Dimension, float] = {}
    for dimension in (Dimension.URGENCY, Dimension.VALUE, Dimension.DURATION):
        avg = weighted_confidence(item.confidence_survey.votes_for(dimension), confidence_weights)
        if avg is None:
            return None, None
        weighted[dimension] = buckets.get_weight(dimension, item.raw(dimension)) * avg

    if weighted[Dimension.DURATION] == 0:
        return None, None

    values = ConfidenceWeightedValues(
        urgency=weighted[Dimension.URGENCY],
        value=weighted[Dimension.VALUE],
        duration=weighted[Dimension.DURATION],
    )
    return values, (values.urgency * values.value) / values.duration


def recompute_confidence(
    item: Item, buckets: BucketConfig, confidence_weights: dict[int, float]
) -> Item:
    values, weighted_cd3 = calculate_confidence_weighted_values(item, buckets, confidence_weights)
    item.confidence_weighted_values = values
    item.confidence_weighted_cd3 = weighted_cd3
    return item


def recompute_item_metrics(
    item: Item, buckets: BucketConfig, confidence_weights: dict[int, float]
) -> Item:
    """Recompute every derived field of one item in place."""
    item.cost_of_delay = calculate_cost_of_delay(item.urgency, item.value, buckets)
    item.cd3 = calculate_cd3(item.cost_of_delay, item.duration, buckets)
    item.board_position = calculate_board_position(item)
    recompute_confidence(item, buckets, confidence_weights)
    return item


def recompute_for_level(
    items: list[Item],
    dimension: Dimension,
    level: int,
    buckets: BucketConfig,
    confidence_weights: dict[int, float],
) -> list[Item]:
    """Recompute the items sitting at ``level`` in ``dimension``; return only those."""
    affected = [item for item in items if item.raw(dimension) == level]
    for item in affected:
        recompute_item_metrics(item, buckets, confidence_weights)
    logger.debug("Recomputed %d items at %s level %d", len(affected), dimension.value, level)
    return affected


def recompute_all(
    items: list[Item], buckets: BucketConfig, confidence_weights: dict[int, float]
) -> list[Item]:
    for item in items:
        recompute_item_metrics(item, buckets, confidence_weights)
    return items
