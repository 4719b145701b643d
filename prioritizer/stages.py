"""
Stage controller - the gated workflow and the property mutation policy.

Stages run Item Listing -> urgency -> value -> duration -> Results. Leaving
a stage requires its gate to pass: at least one item for Item Listing, and
every item having the stage's dimension set for the three scoring stages.
Going back is always allowed. Direct navigation may jump back to any visited
stage, or forward when every gate in between passes.

Which dimensions may be edited depends on the current stage and lock mode,
see ``can_set_property`` and ``check_property_change``.
"""

import logging
from dataclasses import dataclass

from .errors import StateError, ValidationError
from .models import DIMENSIONS, Dimension, Item, Stage
from .state import STAGE_ORDER, AppState, parse_stage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    next: Stage | None
    previous: Stage | None
    gate: Dimension | None


TRANSITIONS: dict[Stage, Transition] = {
    Stage.ITEM_LISTING: Transition(Stage.URGENCY, None, None),
    Stage.URGENCY: Transition(Stage.VALUE, Stage.ITEM_LISTING, Dimension.URGENCY),
    Stage.VALUE: Transition(Stage.DURATION, Stage.URGENCY, Dimension.VALUE),
    Stage.DURATION: Transition(Stage.RESULTS, Stage.VALUE, Dimension.DURATION),
    Stage.RESULTS: Transition(None, Stage.DURATION, None),
}

STAGE_DISPLAY_NAMES: dict[Stage, str] = {
    Stage.ITEM_LISTING: "Items",
    Stage.URGENCY: "Urgency",
    Stage.VALUE: "Value",
    Stage.DURATION: "Duration",
    Stage.RESULTS: "Results",
}

# Stage on which each dimension is natively entered.
NATIVE_STAGE: dict[Dimension, Stage] = {
    Dimension.URGENCY: Stage.URGENCY,
    Dimension.VALUE: Stage.VALUE,
    Dimension.DURATION: Stage.DURATION,
}

# A dimension can only be given a level once the previous one is set.
PREREQUISITE: dict[Dimension, Dimension | None] = {
    Dimension.URGENCY: None,
    Dimension.VALUE: Dimension.URGENCY,
    Dimension.DURATION: Dimension.VALUE,
}


def _stage_label(stage: Stage) -> str:
    return stage.value if stage in (Stage.ITEM_LISTING, Stage.RESULTS) else stage.value.capitalize()


def _stage_index(stage: Stage) -> int:
    return STAGE_ORDER.index(stage)


# =============================================================================
# PROPERTY POLICY
# =============================================================================


def can_set_property(dimension: Dimension, current_stage: Stage, locked: bool) -> bool:
    native = _stage_index(NATIVE_STAGE[dimension])
    current = _stage_index(current_stage)
    if current == native:
        return True
    if current > native:
        return not locked
    return False


def check_property_change(
    dimension: Dimension,
    current_stage: Stage,
    locked: bool,
    previous_value: int,
    new_value,
    was_set: bool,
    prerequisite_set: bool = True,
) -> None:
    """
    Validate a raw attribute change. Returns None when allowed.

    Checks, in order: the value range (integer 0-3), the stage/lock gate,
    the prerequisite dimension, and the rule that a set dimension never
    returns to 0. Raises ValidationError naming the first violated rule.
    """
    name = dimension.value
    label = dimension.label

    if isinstance(new_value, bool) or not isinstance(new_value, int) or not 0 <= new_value <= 3:
        raise ValidationError(f"Invalid {name} value: {new_value!r}. Must be an integer from 0 to 3.")

    if not can_set_property(dimension, current_stage, locked):
        native = NATIVE_STAGE[dimension]
        if _stage_index(current_stage) < _stage_index(native):
            raise ValidationError(
                f'Cannot set {label}: current stage is "{current_stage.value}"; you cannot '
                f'set {name} before reaching the "{native.value}" stage.'
            )
        raise ValidationError(
            f'Cannot set {label}: current stage is "{current_stage.value}" and locked mode '
            f'means you cannot set {name} outside the "{native.value}" stage. '
            "Unlock to edit earlier stages."
        )

    prerequisite = PREREQUISITE[dimension]
    if prerequisite is not None and new_value > 0 and not prerequisite_set:
        raise ValidationError(
            f"Cannot set {label}: item must have {prerequisite.label} set first. "
            f"Set {prerequisite.label} (1-3) before setting {label}."
        )

    if was_set and new_value == 0:
        raise ValidationError(
            f"Cannot unset {label} once set. It can change to another level (1-3) "
            "but not back to 0."
        )
    return None


# =============================================================================
# STAGE CONTROLLER
# =============================================================================


class StageController:
    """Workflow transitions over an AppState. Mutates the state only on success."""

    # ---------------------------------------------------------------- gates

    @staticmethod
    def gate_reason(stage: Stage, items: list[Item]) -> str | None:
        """Why ``stage`` cannot be left yet, or None when its gate passes."""
        transition = TRANSITIONS[stage]
        if transition.next is None:
            return None
        if stage == Stage.ITEM_LISTING:
            if not items:
                return "You must have at least one item before advancing to Urgency stage."
            return None

        dimension = transition.gate
        missing = sum(1 for item in items if not item.is_set(dimension))
        if missing:
            noun = "item" if missing == 1 else "items"
            verb = "needs" if missing == 1 else "still need"
            return (
                f"All items need {dimension.value} set before advancing to "
                f"{_stage_label(transition.next)} stage. {missing} {noun} {verb} "
                f"{dimension.value} set."
            )
        return None

    def can_advance(self, current_stage: Stage, items: list[Item]) -> tuple[bool, str]:
        if TRANSITIONS[current_stage].next is None:
            return False, "Already at the final stage (Results). Cannot advance further."
        reason = self.gate_reason(current_stage, items)
        return (reason is None), (reason or "")

    def can_go_back(self, current_stage: Stage) -> tuple[bool, str]:
        if TRANSITIONS[current_stage].previous is None:
            return False, "Already at the first stage (Item Listing). Cannot go back further."
        return True, ""

    def can_navigate(
        self, target: Stage, current_stage: Stage, visited: list[Stage], items: list[Item]
    ) -> tuple[bool, str]:
        target_index = _stage_index(target)
        current_index = _stage_index(current_stage)

        if target_index == current_index:
            return False, f"Already at the {target.value} stage."
        if target_index < current_index:
            if target in visited:
                return True, ""
            return False, f"Cannot navigate to {target.value}: stage not yet visited."

        for stage in STAGE_ORDER[current_index:target_index]:
            reason = self.gate_reason(stage, items)
            if reason:
                return False, reason
        return True, ""

    # ----------------------------------------------------------- mutations

    def advance(self, state: AppState, items: list[Item]) -> Stage:
        current = state.current_stage
        if TRANSITIONS[current].next is None:
            raise StateError("Already at the final stage (Results). Cannot advance further.")
        reason = self.gate_reason(current, items)
        if reason:
            raise ValidationError(reason)

        state.current_stage = TRANSITIONS[current].next
        state.mark_visited(state.current_stage)
        logger.info("Advanced stage %s -> %s", current.value, state.current_stage.value)
        return state.current_stage

    def back(self, state: AppState) -> Stage:
        current = state.current_stage
        previous = TRANSITIONS[current].previous
        if previous is None:
            raise StateError("Already at the first stage (Item Listing). Cannot go back further.")
        state.current_stage = previous
        logger.info("Moved back stage %s -> %s", current.value, previous.value)
        return previous

    def navigate_to_stage(self, state: AppState, items: list[Item], target) -> Stage:
        stage = parse_stage(target)
        if stage is None:
            raise ValidationError(f"Invalid stage: {target}")

        allowed, reason = self.can_navigate(stage, state.current_stage, state.visited_stages, items)
        if not allowed:
            raise ValidationError(reason or "Cannot navigate to this stage")

        current_index = _stage_index(state.current_stage)
        target_index = _stage_index(stage)
        if target_index > current_index:
            for passed in STAGE_ORDER[current_index : target_index + 1]:
                state.mark_visited(passed)

        logger.info("Navigated stage %s -> %s", state.current_stage.value, stage.value)
        state.current_stage = stage
        return stage

    def set_current_stage(self, state: AppState, items: list[Item], stage) -> Stage:
        if parse_stage(stage) is None:
            valid = ", ".join(s.value for s in STAGE_ORDER)
            raise ValidationError(f"Invalid stage: {stage}. Valid stages are: {valid}")
        return self.navigate_to_stage(state, items, stage)

    # -------------------------------------------------------------- views

    def navigation_state(self, state: AppState, items: list[Item]) -> dict:
        current_index = _stage_index(state.current_stage)
        stages = []
        for index, stage in enumerate(STAGE_ORDER):
            reason = ""
            if stage == state.current_stage:
                status, can_navigate = "current", False
            elif index < current_index:
                if stage in state.visited_stages:
                    status, can_navigate = "visited", True
                else:
                    status, can_navigate = "locked", False
                    reason = "Stage not yet visited"
            else:
                can_navigate, reason = self.can_navigate(
                    stage, state.current_stage, state.visited_stages, items
                )
                status = "future" if can_navigate else "locked"
            stages.append(
                {
                    "name": stage.value,
                    "display_name": STAGE_DISPLAY_NAMES[stage],
                    "status": status,
                    "can_navigate": can_navigate,
                    "reason": reason,
                }
            )
        return {"current_stage": state.current_stage.value, "stages": stages}

    def button_states(self, state: AppState, items: list[Item]) -> dict:
        can_advance, advance_reason = self.can_advance(state.current_stage, items)
        can_go_back, back_reason = self.can_go_back(state.current_stage)
        return {
            "can_advance": can_advance,
            "advance_reason": advance_reason,
            "can_go_back": can_go_back,
            "back_reason": back_reason,
        }

    def editable_dimensions(self, state: AppState) -> list[Dimension]:
        return [d for d in DIMENSIONS if can_set_property(d, state.current_stage, state.locked)]
