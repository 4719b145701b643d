"""
Sequencing - the 1..N results order over items that carry a CD3.

Two strategies share one interface:
- AutoSortStrategy: CD3 descending, ties keep creation order
- ManualInsertStrategy: keeps a hand-arranged order and slots newly scored
  items in above the first item with a strictly lower CD3

``AppState.results_manually_reordered`` selects the strategy. Items without
a CD3 always carry ``sequence = None``.
"""

import logging
from abc import ABC, abstractmethod

from .errors import NotFoundError, ValidationError
from .models import Item
from .state import AppState

logger = logging.getLogger(__name__)

DIRECTIONS = ("up", "down")


def sequenced(items: list[Item]) -> list[Item]:
    """Items holding a sequence number, in sequence order."""
    return sorted((i for i in items if i.sequence is not None), key=lambda i: i.sequence)


def sorted_for_results(items: list[Item]) -> list[Item]:
    """Display order: sequenced items first, then the rest by CD3 descending."""
    ranked = sequenced(items)
    rest = sorted((i for i in items if i.sequence is None), key=lambda i: -(i.cd3 or 0))
    return ranked + rest


class SequenceStrategy(ABC):
    """How CD3-bearing items are numbered."""

    name: str = "base"

    @abstractmethod
    def place(self, item: Item, items: list[Item]) -> None:
        """Give ``item`` (which just gained a CD3) a sequence number."""

    @abstractmethod
    def sync(self, items: list[Item]) -> None:
        """Restore a contiguous 1..N sequence after metrics changed."""


class AutoSortStrategy(SequenceStrategy):
    name = "auto"

    def resort(self, items: list[Item]) -> None:
        # sorted() is stable, so equal CD3 keeps list (creation) order
        bearing = sorted((i for i in items if i.has_cd3), key=lambda i: -i.cd3)
        for position, item in enumerate(bearing, start=1):
            item.sequence = position
        for item in items:
            if not item.has_cd3:
                item.sequence = None

    def place(self, item: Item, items: list[Item]) -> None:
        self.resort(items)

    def sync(self, items: list[Item]) -> None:
        self.resort(items)


class ManualInsertStrategy(SequenceStrategy):
    name = "manual"

    def place(self, item: Item, items: list[Item]) -> None:
        ordered = [i for i in sequenced(items) if i is not item]
        slot = len(ordered)
        for index, existing in enumerate(ordered):
            if (existing.cd3 or 0) < item.cd3:
                slot = index
                break
        ordered.insert(slot, item)
        for position, existing in enumerate(ordered, start=1):
            existing.sequence = position
        item.added_to_manually_sequenced_list = True
        logger.debug("Inserted item %s at manual position %d", item.id, slot + 1)

    def sync(self, items: list[Item]) -> None:
        for item in items:
            if not item.has_cd3:
                item.sequence = None
        for position, item in enumerate(sequenced(items), start=1):
            item.sequence = position
        for item in items:
            if item.has_cd3 and item.sequence is None:
                self.place(item, items)


class SequenceManager:
    """Assigns, syncs, reorders and resets the results sequence."""

    def __init__(self):
        self.auto = AutoSortStrategy()
        self.manual = ManualInsertStrategy()

    def strategy_for(self, state: AppState) -> SequenceStrategy:
        return self.manual if state.results_manually_reordered else self.auto

    def assign_sequence_on_cd3_set(self, state: AppState, item: Item, items: list[Item]) -> None:
        self.strategy_for(state).place(item, items)

    def sync_sequences(self, state: AppState, items: list[Item]) -> None:
        self.strategy_for(state).sync(items)

    def reorder_item_sequence(
        self, state: AppState, item_id: str, direction: str, items: list[Item]
    ) -> Item:
        """Swap an item with its neighbour above ("up") or below ("down")."""
        if direction not in DIRECTIONS:
            raise ValidationError(f"Invalid direction: {direction}. Must be 'up' or 'down'.")

        item = next((i for i in items if i.id == item_id), None)
        if item is None:
            raise NotFoundError(f"Item not found: {item_id}")
        if item.sequence is None:
            raise ValidationError("Item has no sequence position (CD3 not yet calculated)")

        ordered = sequenced(items)
        index = ordered.index(item)
        neighbour_index = index - 1 if direction == "up" else index + 1
        if neighbour_index < 0:
            raise ValidationError("Item is already at the top of the list")
        if neighbour_index >= len(ordered):
            raise ValidationError("Item is already at the bottom of the list")

        neighbour = ordered[neighbour_index]
        item.sequence, neighbour.sequence = neighbour.sequence, item.sequence
        item.reordered = True
        state.results_manually_reordered = True
        logger.info("Moved item %s %s to position %d", item.id, direction, item.sequence)
        return item

    def reset_results_order(self, state: AppState, items: list[Item]) -> None:
        state.results_manually_reordered = False
        for item in items:
            item.reordered = False
            item.added_to_manually_sequenced_list = False
        self.auto.resort(items)
