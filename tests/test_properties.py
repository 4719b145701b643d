"""
Property tests for the scoring and sequencing invariants.

Uses Hypothesis to generate level combinations, weights and reorder moves.
"""

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from prioritizer.buckets import CONFIDENCE_WEIGHT_DEFAULTS, BucketConfig
from prioritizer.errors import ValidationError
from prioritizer.metrics import recompute_item_metrics, weighted_confidence
from prioritizer.models import Dimension, Item
from prioritizer.sequencing import SequenceManager, sequenced
from prioritizer.state import AppState

levels = st.integers(min_value=0, max_value=3)
weights = st.floats(min_value=0, max_value=100, allow_nan=False, allow_infinity=False)
votes = st.lists(st.integers(min_value=0, max_value=20), min_size=4, max_size=4)


def build_items(triples) -> list[Item]:
    buckets = BucketConfig.defaults()
    items = []
    for index, (urgency, value, duration) in enumerate(triples):
        item = Item(id=f"item-{index}", name=f"Item {index}")
        item.set_raw(Dimension.URGENCY, urgency)
        item.set_raw(Dimension.VALUE, value)
        item.set_raw(Dimension.DURATION, duration)
        recompute_item_metrics(item, buckets, CONFIDENCE_WEIGHT_DEFAULTS)
        items.append(item)
    return items


def assert_contiguous(items: list[Item]) -> None:
    bearing = [i for i in items if i.has_cd3]
    assert sorted(i.sequence for i in bearing) == list(range(1, len(bearing) + 1))
    assert all(i.sequence is None for i in items if not i.has_cd3)


class TestScoringProperties:
    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(urgency=levels, value=levels, duration=levels)
    def test_cd3_is_zero_until_every_level_is_set(self, urgency, value, duration):
        (item,) = build_items([(urgency, value, duration)])
        if 0 in (urgency, value, duration):
            assert item.cd3 == 0
        else:
            assert item.cd3 == pytest.approx(urgency * value / duration)

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(weight=weights, level=st.integers(min_value=1, max_value=3))
    def test_cost_of_delay_scales_with_urgency_weight(self, weight, level):
        buckets = BucketConfig.defaults()
        buckets.set_weight(Dimension.URGENCY, level, weight)
        item = Item(id="x", name="x")
        item.set_raw(Dimension.URGENCY, level)
        item.set_raw(Dimension.VALUE, 2)
        recompute_item_metrics(item, buckets, CONFIDENCE_WEIGHT_DEFAULTS)
        assert item.cost_of_delay == pytest.approx(weight * 2)

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(votes=votes)
    def test_weighted_confidence_within_weight_range(self, votes):
        result = weighted_confidence(votes, CONFIDENCE_WEIGHT_DEFAULTS)
        if sum(votes) == 0:
            assert result is None
        else:
            assert 0.30 - 1e-9 <= result <= 0.90 + 1e-9


class TestSequenceProperties:
    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(triples=st.lists(st.tuples(levels, levels, levels), max_size=12))
    def test_auto_sequence_is_contiguous_and_sorted(self, triples):
        items = build_items(triples)
        SequenceManager().sync_sequences(AppState(), items)

        assert_contiguous(items)
        scores = [i.cd3 for i in sequenced(items)]
        assert scores == sorted(scores, reverse=True)

    @settings(max_examples=50, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(
        triples=st.lists(
            st.tuples(
                st.integers(min_value=1, max_value=3),
                st.integers(min_value=1, max_value=3),
                st.integers(min_value=1, max_value=3),
            ),
            min_size=2,
            max_size=8,
        ),
        moves=st.lists(
            st.tuples(st.integers(min_value=0, max_value=7), st.sampled_from(["up", "down"])),
            max_size=10,
        ),
        extra=st.tuples(
            st.integers(min_value=1, max_value=3),
            st.integers(min_value=1, max_value=3),
            st.integers(min_value=1, max_value=3),
        ),
    )
    def test_manual_moves_keep_sequence_contiguous(self, triples, moves, extra):
        state = AppState()
        manager = SequenceManager()
        items = build_items(triples)
        manager.sync_sequences(state, items)

        for index, direction in moves:
            item = items[index % len(items)]
            try:
                manager.reorder_item_sequence(state, item.id, direction, items)
            except ValidationError:
                pass  # moving past either end
            assert_contiguous(items)

        (late,) = build_items([extra])
        late.id = "late"
        items.append(late)
        manager.assign_sequence_on_cd3_set(state, late, items)
        assert_contiguous(items)

        manager.reset_results_order(state, items)
        assert_contiguous(items)
        scores = [i.cd3 for i in sequenced(items)]
        assert scores == sorted(scores, reverse=True)
