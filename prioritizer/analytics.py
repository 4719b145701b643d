"""
Analytics hook - best-effort product event tracking.

Events go to an injected sink (any ``callable(event_name, properties)``).
Tracking never affects the operation that triggered it: sink failures are
logged and dropped.
"""

import logging
from collections.abc import Callable

from .models import Dimension, Item, Stage

logger = logging.getLogger(__name__)

EventSink = Callable[[str, dict], None]

STAGE_VIEW_EVENTS = {
    Stage.ITEM_LISTING: "View Items",
    Stage.URGENCY: "View Urgency",
    Stage.VALUE: "View Value",
    Stage.DURATION: "View Duration",
    Stage.RESULTS: "View Results",
}


def parking_lot_items(items: list[Item], dimension: Dimension) -> list[Item]:
    """Items still waiting for a level in ``dimension``."""
    if dimension == Dimension.VALUE:
        return [i for i in items if not i.value and i.urgency > 0]
    return [i for i in items if not i.raw(dimension)]


def _log_sink(event: str, properties: dict) -> None:
    logger.debug("analytics event %s %s", event, properties)


class Analytics:
    def __init__(self, sink: EventSink | None = None):
        self.sink = sink or _log_sink

    def track(self, event: str, **properties) -> bool:
        """Send one event. Returns False when the sink failed."""
        try:
            self.sink(event, properties)
            return True
        except Exception:
            logger.warning("Analytics event %r failed", event, exc_info=True)
            return False

    def track_stage_view(self, stage: Stage, items: list[Item]) -> bool:
        event = STAGE_VIEW_EVENTS.get(stage)
        if event is None:
            return False
        if stage == Stage.ITEM_LISTING:
            props = {"itemsCount": len(items)}
        elif stage == Stage.URGENCY:
            props = {"parkingLotCount": len(parking_lot_items(items, Dimension.URGENCY))}
        elif stage == Stage.VALUE:
            props = {"parkingLotCount": len(parking_lot_items(items, Dimension.VALUE))}
        elif stage == Stage.DURATION:
            props = {"totalItems": len(items)}
        else:
            props = {"resultsCount": len(items)}
        return self.track(event, **props)
