"""
Prioritizer Service - every operation the outer surfaces (API, CLI) call.

Each operation:
1. loads a snapshot (AppState + items) from the injected Store
2. validates and applies the change through the stage controller, metrics
   engine and sequence manager
3. refreshes bucket counts and persists the snapshot
4. fires the analytics hook

Failures raised as PrioritizerError are converted to an unsuccessful
OperationResult; nothing is persisted for a failed operation.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from .analytics import Analytics
from .buckets import (
    CONFIDENCE_LEVEL_LABELS,
    parse_dimension,
    update_buckets,
    validate_field,
    validate_level,
)
from .errors import NotFoundError, PrioritizerError, ValidationError
from .export import export_filename, export_to_csv
from .metrics import recompute_confidence, recompute_for_level, recompute_item_metrics
from .models import (
    CONFIDENCE_LEVELS,
    SURVEY_SECTIONS,
    ConfidenceSurvey,
    Dimension,
    Item,
    Note,
    Stage,
    is_valid_url,
    now_iso,
)
from .sequencing import SequenceManager, sorted_for_results
from .stages import PREREQUISITE, StageController, check_property_change
from .state import AppState
from .store import Store

logger = logging.getLogger(__name__)

ADVANCE_EVENTS = {
    Stage.URGENCY: "Clicked Advance To Urgency",
    Stage.VALUE: "Clicked Advance To Value",
    Stage.DURATION: "Clicked Advance To Duration",
    Stage.RESULTS: "Clicked Advance To Results",
}


@dataclass
class OperationResult:
    """Outcome of a service operation."""

    success: bool
    error: str | None = None
    error_kind: str | None = None
    data: dict = field(default_factory=dict)

    def __getitem__(self, key: str):
        return self.to_dict()[key]

    def get(self, key: str, default=None):
        return self.to_dict().get(key, default)

    def to_dict(self) -> dict:
        result = {"success": self.success}
        if self.error is not None:
            result["error"] = self.error
        result.update(self.data)
        return result


def _find(items: list[Item], item_id: str) -> Item:
    for item in items:
        if item.id == item_id:
            return item
    raise NotFoundError(f"Item not found: {item_id}")


def _note_index(item: Item, index) -> int:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(item.notes):
        raise ValidationError("Invalid note index")
    return index


def _note_text(text) -> str:
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Note text is required")
    return text.strip()


def parse_bulk_line(line: str) -> tuple[str, str | None]:
    """Split ``name, https://link`` on the last comma when the tail is a URL."""
    comma = line.rfind(",")
    if comma > 0:
        tail = line[comma + 1 :].strip()
        if is_valid_url(tail):
            return line[:comma].strip(), tail
    return line, None


def parse_survey(data) -> ConfidenceSurvey:
    """Validate raw survey input into a ConfidenceSurvey. Raises ValidationError."""
    if not isinstance(data, dict):
        raise ValidationError("Survey data must be an object with one entry per section")

    survey = ConfidenceSurvey()
    missing = []
    for key, display in SURVEY_SECTIONS.items():
        raw = data.get(key) or {}
        if not isinstance(raw, dict):
            raise ValidationError(f"Invalid {display} data: expected level -> vote count")
        votes = [0, 0, 0, 0]
        for level_key, count in raw.items():
            try:
                level = int(level_key)
            except (TypeError, ValueError):
                level = 0
            if level not in CONFIDENCE_LEVELS:
                raise ValidationError(f"Invalid confidence level in {display}: {level_key}")
            if count is None:
                count = 0
            if isinstance(count, str) and count.strip().isdecimal():
                count = int(count)
            if isinstance(count, bool) or not isinstance(count, int) or count < 0:
                raise ValidationError(
                    f"Invalid vote count for {display} level {level}: {count!r}. "
                    "Must be a non-negative integer."
                )
            votes[level - 1] = count
        setattr(survey, key.removesuffix("Confidence"), votes)
        if sum(votes) == 0:
            missing.append(display)

    if missing:
        raise ValidationError(
            "Please enter at least one vote in each section. "
            f"Missing votes in: {', '.join(missing)}"
        )
    return survey


class PrioritizerService:
    """Façade over the prioritizer core. All state lives in ``store``."""

    def __init__(self, store: Store, analytics: Analytics | None = None):
        self.store = store
        self.analytics = analytics or Analytics()
        self.stages = StageController()
        self.sequences = SequenceManager()

    # ==================== Plumbing ====================

    def _run(
        self, operation: str, fn: Callable[[AppState, list[Item]], dict | None], persist: bool = True
    ) -> OperationResult:
        state = self.store.load_state()
        items = self.store.load_items()
        try:
            data = fn(state, items) or {}
        except PrioritizerError as e:
            logger.info("%s rejected: %s", operation, e)
            return OperationResult(success=False, error=str(e), error_kind=e.kind)

        if persist:
            update_buckets(state.buckets, items)
            self.store.save(state, items)
            logger.info("%s ok", operation)
        return OperationResult(success=True, data=data)

    def _track(self, result: OperationResult, event: str, **properties) -> OperationResult:
        if result.success:
            self.analytics.track(event, **properties)
        return result

    def _recompute(self, state: AppState, item: Item) -> None:
        recompute_item_metrics(item, state.buckets, state.confidence_weights)

    # ==================== Queries ====================

    def get_items(self) -> OperationResult:
        return self._run(
            "get_items", lambda state, items: {"items": [i.to_dict() for i in items]}, persist=False
        )

    def get_item(self, item_id: str) -> OperationResult:
        return self._run(
            "get_item",
            lambda state, items: {"item": _find(items, item_id).to_dict()},
            persist=False,
        )

    def get_results(self) -> OperationResult:
        """Items in results order (sequence, then CD3 descending)."""
        return self._run(
            "get_results",
            lambda state, items: {"items": [i.to_dict() for i in sorted_for_results(items)]},
            persist=False,
        )

    def get_app_state(self) -> OperationResult:
        def op(state, items):
            update_buckets(state.buckets, items)
            return {"state": state.to_dict()}

        return self._run("get_app_state", op, persist=False)

    def get_current_stage(self) -> OperationResult:
        return self._run(
            "get_current_stage",
            lambda state, items: {"currentStage": state.current_stage.value},
            persist=False,
        )

    def get_stage_navigation_state(self) -> OperationResult:
        return self._run(
            "get_stage_navigation_state",
            lambda state, items: self.stages.navigation_state(state, items),
            persist=False,
        )

    def get_button_states(self) -> OperationResult:
        return self._run(
            "get_button_states",
            lambda state, items: self.stages.button_states(state, items),
            persist=False,
        )

    # ==================== Items ====================

    def add_item(self, name: str, link: str | None = None) -> OperationResult:
        def op(state, items):
            self._require_item_listing(state, "add item")
            clean = (name or "").strip() if isinstance(name, str) else ""
            if not clean:
                raise ValidationError("Item name is required")
            item = self._new_item(state, items, clean, link)
            items.append(item)
            return {"item": item.to_dict()}

        result = self._run("add_item", op)
        return self._track(result, "Add Item", itemsCount=1)

    def bulk_add_items(self, text: str) -> OperationResult:
        def op(state, items):
            self._require_item_listing(state, "bulk add items")
            if not isinstance(text, str) or not text:
                raise ValidationError(
                    "Invalid input. Please provide item names separated by newlines."
                )
            lines = [line.strip() for line in text.split("\n") if line.strip()]
            if not lines:
                raise ValidationError(
                    "No valid item names found. Please enter at least one item name."
                )

            added, errors = [], []
            for number, line in enumerate(lines, start=1):
                item_name, link = parse_bulk_line(line)
                if not item_name:
                    errors.append(f"Line {number}: Empty item name")
                    continue
                item = self._new_item(state, items, item_name, link)
                items.append(item)
                added.append(item)
            if not added:
                raise ValidationError("No valid item names found. " + "; ".join(errors))
            return {"added": len(added), "total": len(lines), "errors": errors}

        result = self._run("bulk_add_items", op)
        return self._track(result, "Bulk Add Items", itemsCount=result.data.get("added", 0))

    def remove_item(self, item_id: str) -> OperationResult:
        def op(state, items):
            item = _find(items, item_id)
            items.remove(item)
            self.sequences.sync_sequences(state, items)
            return {"removed": item.id}

        return self._run("remove_item", op)

    def set_item_property(self, item_id: str, dimension: str, value) -> OperationResult:
        def op(state, items):
            dim = parse_dimension(dimension)
            item = _find(items, item_id)
            prerequisite = PREREQUISITE[dim]
            check_property_change(
                dim,
                state.current_stage,
                state.locked,
                item.raw(dim),
                value,
                item.is_set(dim),
                prerequisite_set=prerequisite is None or item.is_set(prerequisite),
            )

            had_cd3 = item.has_cd3
            item.set_raw(dim, value)
            if dim == Dimension.URGENCY and value > 0:
                item.is_new_item = False
            self._recompute(state, item)

            if not had_cd3 and item.has_cd3:
                self.sequences.assign_sequence_on_cd3_set(state, item, items)
            else:
                self.sequences.sync_sequences(state, items)
            return {"item": item.to_dict()}

        result = self._run("set_item_property", op)
        return self._track(
            result, f"Set {str(dimension).capitalize()}", itemId=item_id, level=value
        )

    def set_item_active(self, item_id: str) -> OperationResult:
        return self._set_active(item_id, True)

    def set_item_inactive(self, item_id: str) -> OperationResult:
        return self._set_active(item_id, False)

    def _set_active(self, item_id: str, active: bool) -> OperationResult:
        def op(state, items):
            item = _find(items, item_id)
            item.active = active
            return {"item": item.to_dict()}

        result = self._run("set_item_active" if active else "set_item_inactive", op)
        return self._track(result, "Activate Item" if active else "Deactivate Item", itemId=item_id)

    def _require_item_listing(self, state: AppState, action: str) -> None:
        if state.current_stage != Stage.ITEM_LISTING:
            raise ValidationError(
                f'Cannot {action}. Current stage is "{state.current_stage.value}". You must be '
                'on the "Item Listing" stage to add new items.'
            )

    def _new_item(self, state: AppState, items: list[Item], name: str, link) -> Item:
        item = Item.create(name, link)
        if link and item.link is None:
            logger.debug("Dropped invalid link %r for item %r", link, name)
        item.is_new_item = any(existing.urgency > 0 for existing in items)
        self._recompute(state, item)
        return item

    # ==================== Stages ====================

    def advance_stage(self) -> OperationResult:
        result = self._run(
            "advance_stage",
            lambda state, items: {
                "currentStage": self.stages.advance(state, items).value,
                "itemsCount": len(items),
            },
        )
        if result.success:
            stage = Stage(result.data["currentStage"])
            self._track(result, ADVANCE_EVENTS[stage], itemsCount=result.data["itemsCount"])
            self._track_stage_view(stage)
        return result

    def back_stage(self) -> OperationResult:
        result = self._run(
            "back_stage", lambda state, items: {"currentStage": self.stages.back(state).value}
        )
        if result.success:
            self._track_stage_view(Stage(result.data["currentStage"]))
        return result

    def navigate_to_stage(self, stage: str) -> OperationResult:
        result = self._run(
            "navigate_to_stage",
            lambda state, items: {
                "currentStage": self.stages.navigate_to_stage(state, items, stage).value
            },
        )
        if result.success:
            self._track_stage_view(Stage(result.data["currentStage"]))
        return result

    def set_current_stage(self, stage: str) -> OperationResult:
        result = self._run(
            "set_current_stage",
            lambda state, items: {
                "currentStage": self.stages.set_current_stage(state, items, stage).value
            },
        )
        if result.success:
            self._track_stage_view(Stage(result.data["currentStage"]))
        return result

    def _track_stage_view(self, stage: Stage) -> None:
        self.analytics.track_stage_view(stage, self.store.load_items())

    def set_locked(self, locked: bool) -> OperationResult:
        def op(state, items):
            if not isinstance(locked, bool):
                raise ValidationError("Locked must be true or false")
            state.locked = locked
            return {"locked": locked}

        result = self._run("set_locked", op)
        return self._track(result, "Lock" if locked else "Unlock")

    # ==================== Buckets ====================

    def update_bucket_field(self, dimension: str, level, field_name: str, value) -> OperationResult:
        def op(state, items):
            dim = parse_dimension(dimension)
            lvl = validate_level(level)
            clean = validate_field(field_name, value)
            buckets = state.buckets

            if field_name == "weight":
                buckets.set_weight(dim, lvl, clean)
                affected = recompute_for_level(
                    items, dim, lvl, buckets, state.confidence_weights
                )
                self.sequences.sync_sequences(state, items)
                return {"affected": [item.id for item in affected]}
            if field_name == "limit":
                buckets.set_limit(dim, lvl, clean)
            elif field_name == "title":
                buckets.set_title(dim, lvl, clean)
            else:
                buckets.set_description(dim, lvl, clean)
            return {"bucket": buckets.level(dim, lvl).to_dict()}

        return self._run(f"update_bucket_field {dimension}.{level}.{field_name}", op)

    def set_urgency_weight(self, level, weight) -> OperationResult:
        return self.update_bucket_field("urgency", level, "weight", weight)

    def set_value_weight(self, level, weight) -> OperationResult:
        return self.update_bucket_field("value", level, "weight", weight)

    def set_duration_weight(self, level, weight) -> OperationResult:
        return self.update_bucket_field("duration", level, "weight", weight)

    def set_urgency_title(self, level, title) -> OperationResult:
        return self.update_bucket_field("urgency", level, "title", title)

    def set_value_title(self, level, title) -> OperationResult:
        return self.update_bucket_field("value", level, "title", title)

    def set_duration_title(self, level, title) -> OperationResult:
        return self.update_bucket_field("duration", level, "title", title)

    def set_urgency_description(self, level, description) -> OperationResult:
        return self.update_bucket_field("urgency", level, "description", description)

    def set_value_description(self, level, description) -> OperationResult:
        return self.update_bucket_field("value", level, "description", description)

    def set_duration_description(self, level, description) -> OperationResult:
        return self.update_bucket_field("duration", level, "description", description)

    def set_urgency_limit(self, level, limit) -> OperationResult:
        return self.update_bucket_field("urgency", level, "limit", limit)

    def set_value_limit(self, level, limit) -> OperationResult:
        return self.update_bucket_field("value", level, "limit", limit)

    # ==================== Notes ====================

    def add_item_note(self, item_id: str, text: str) -> OperationResult:
        def op(state, items):
            clean = _note_text(text)
            item = _find(items, item_id)
            item.notes.append(Note(text=clean))
            return {"notes": [n.to_dict() for n in item.notes]}

        return self._run("add_item_note", op)

    def update_item_note(self, item_id: str, index: int, text: str) -> OperationResult:
        def op(state, items):
            item = _find(items, item_id)
            position = _note_index(item, index)
            note = item.notes[position]
            note.text = _note_text(text)
            note.modified_at = now_iso()
            return {"notes": [n.to_dict() for n in item.notes]}

        return self._run("update_item_note", op)

    def delete_item_note(self, item_id: str, index: int) -> OperationResult:
        def op(state, items):
            item = _find(items, item_id)
            del item.notes[_note_index(item, index)]
            return {"notes": [n.to_dict() for n in item.notes]}

        return self._run("delete_item_note", op)

    def get_item_notes(self, item_id: str) -> OperationResult:
        return self._run(
            "get_item_notes",
            lambda state, items: {"notes": [n.to_dict() for n in _find(items, item_id).notes]},
            persist=False,
        )

    # ==================== Confidence survey ====================

    def submit_confidence_survey(self, item_id: str, survey_data: dict) -> OperationResult:
        def op(state, items):
            item = _find(items, item_id)
            survey = parse_survey(survey_data)
            item.confidence_survey = survey
            item.has_confidence_survey = True
            recompute_confidence(item, state.buckets, state.confidence_weights)
            return {"selectionsCount": survey.selections_count(), "item": item.to_dict()}

        result = self._run("submit_confidence_survey", op)
        return self._track(
            result,
            "Run Confidence Survey",
            itemId=item_id,
            selectionsCount=result.data.get("selectionsCount", 0),
        )

    def delete_confidence_survey(self, item_id: str) -> OperationResult:
        def op(state, items):
            item = _find(items, item_id)
            item.confidence_survey = ConfidenceSurvey()
            item.has_confidence_survey = False
            item.confidence_weighted_values = None
            item.confidence_weighted_cd3 = None
            return {"item": item.to_dict()}

        result = self._run("delete_confidence_survey", op)
        return self._track(result, "Delete Survey", itemId=item_id)

    def get_confidence_survey(self, item_id: str) -> OperationResult:
        def op(state, items):
            item = _find(items, item_id)
            return {"survey": item.confidence_survey.to_dict() if item.has_confidence_survey else None}

        return self._run("get_confidence_survey", op, persist=False)

    def get_confidence_weights(self) -> OperationResult:
        return self._run(
            "get_confidence_weights",
            lambda state, items: {
                "weights": {str(k): v for k, v in state.confidence_weights.items()}
            },
            persist=False,
        )

    def get_confidence_level_labels(self) -> OperationResult:
        return self._run(
            "get_confidence_level_labels",
            lambda state, items: {
                "labels": {
                    str(k): state.confidence_level_labels.get(k, CONFIDENCE_LEVEL_LABELS[k])
                    for k in CONFIDENCE_LEVELS
                }
            },
            persist=False,
        )

    # ==================== Sequence ====================

    def reorder_item_sequence(self, item_id: str, direction: str) -> OperationResult:
        def op(state, items):
            item = self.sequences.reorder_item_sequence(state, item_id, direction, items)
            return {"item": item.to_dict(), "sequence": item.sequence}

        result = self._run("reorder_item_sequence", op)
        return self._track(result, f"Move Item {str(direction).capitalize()}", itemId=item_id)

    def reset_results_order(self) -> OperationResult:
        def op(state, items):
            self.sequences.reset_results_order(state, items)
            return {}

        result = self._run("reset_results_order", op)
        return self._track(result, "Reset Order")

    # ==================== Lifecycle ====================

    def start_app(self) -> OperationResult:
        """Wipe everything and start over with default settings."""
        self.store.clear()
        state = self.store.fresh_state()
        self.store.save_state(state)
        logger.info("App started - all data cleared")
        return OperationResult(success=True, data={"state": state.to_dict()})

    def clear_item_data_only(self) -> OperationResult:
        """Drop items and reset the workflow, keeping bucket settings."""
        state = self.store.load_state()
        self.store.clear_items()
        state.current_stage = Stage.ITEM_LISTING
        state.visited_stages = [Stage.ITEM_LISTING]
        state.results_manually_reordered = False
        update_buckets(state.buckets, [])
        self.store.save_state(state)
        logger.info("Item data cleared, settings preserved")
        return OperationResult(success=True, data={"state": state.to_dict()})

    def clear_all_data(self, clear_settings: bool = False) -> OperationResult:
        previous = self.store.load_state()
        self.store.clear()
        state = self.store.fresh_state()
        if not clear_settings:
            state.buckets = previous.buckets
            update_buckets(state.buckets, [])
        self.store.save_state(state)
        logger.info("All data cleared (settings %s)", "reset" if clear_settings else "kept")
        self.analytics.track("Clear Data", clearSettings=clear_settings)
        return OperationResult(success=True, data={"state": state.to_dict()})

    # ==================== Export ====================

    def export_csv(self) -> tuple[str, str]:
        """Return ``(filename, csv_content)`` for the current items."""
        state = self.store.load_state()
        items = self.store.load_items()
        content = export_to_csv(items, state)
        self.analytics.track("Export CSV", rows=len(items))
        return export_filename(), content
