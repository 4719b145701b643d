"""
Tests for bucket configuration: defaults, field validation, counts and limits.
"""

import pytest

from prioritizer.buckets import (
    BucketConfig,
    calculate_bucket_counts,
    normalize_buckets,
    normalize_confidence_weights,
    parse_dimension,
    update_buckets,
    validate_field,
    validate_level,
)
from prioritizer.errors import ValidationError
from prioritizer.models import Dimension, Item


def scored(item_id: str, urgency=0, value=0, duration=0) -> Item:
    item = Item(id=item_id, name=item_id)
    item.set_raw(Dimension.URGENCY, urgency)
    item.set_raw(Dimension.VALUE, value)
    item.set_raw(Dimension.DURATION, duration)
    return item


class TestDefaults:
    def test_weights_match_levels(self):
        buckets = BucketConfig.defaults()
        for dimension in Dimension:
            assert [buckets.get_weight(dimension, level) for level in (1, 2, 3)] == [1, 2, 3]

    def test_titles(self):
        buckets = BucketConfig.defaults()
        assert buckets.title_for(Dimension.URGENCY, 3) == "ASAP"
        assert buckets.title_for(Dimension.VALUE, 1) == "MEH"
        assert buckets.title_for(Dimension.DURATION, 2) == "1-3w"

    def test_duration_has_no_limit(self):
        buckets = BucketConfig.defaults()
        assert buckets.level(Dimension.DURATION, 1).limit is None
        assert buckets.level(Dimension.URGENCY, 1).limit == 30

    def test_unset_level_weighs_zero(self):
        assert BucketConfig.defaults().get_weight(Dimension.VALUE, 0) == 0

    def test_defaults_are_independent_copies(self):
        first = BucketConfig.defaults()
        first.set_weight(Dimension.URGENCY, 1, 9)
        assert BucketConfig.defaults().get_weight(Dimension.URGENCY, 1) == 1


class TestValidation:
    @pytest.mark.parametrize("value,expected", [(0, 0.0), ("2.5", 2.5), (7, 7.0)])
    def test_weight_accepts_non_negative_numbers(self, value, expected):
        assert validate_field("weight", value) == expected

    @pytest.mark.parametrize(
        "value", [-1, "abc", None, True, float("nan"), float("inf"), "inf", "-inf"]
    )
    def test_weight_rejects(self, value):
        with pytest.raises(ValidationError, match="Weight must be a non-negative number"):
            validate_field("weight", value)

    def test_limit(self):
        assert validate_field("limit", None) is None
        assert validate_field("limit", "12") == 12
        for bad in (-3, 1.5, "x", float("inf"), float("nan")):
            with pytest.raises(ValidationError, match="Limit"):
                validate_field("limit", bad)

    def test_title_cannot_be_empty(self):
        with pytest.raises(ValidationError, match="Title cannot be empty"):
            validate_field("title", "   ")

    def test_description_may_be_empty(self):
        assert validate_field("description", "") == ""
        assert validate_field("description", None) == ""

    def test_unknown_field(self):
        with pytest.raises(ValidationError, match="Invalid field: colour"):
            validate_field("colour", "red")

    def test_level_and_dimension(self):
        assert validate_level(2) == 2
        with pytest.raises(ValidationError, match="Invalid level: 4"):
            validate_level(4)
        assert parse_dimension("value") is Dimension.VALUE
        with pytest.raises(ValidationError, match="Invalid property: size"):
            parse_dimension("size")


class TestCounts:
    def test_counts_per_level(self):
        items = [scored("a", 1, 2), scored("b", 1, 3, 1), scored("c")]
        counts = calculate_bucket_counts(items)
        assert counts[Dimension.URGENCY] == {1: 2, 2: 0, 3: 0}
        assert counts[Dimension.VALUE] == {1: 0, 2: 1, 3: 1}
        assert counts[Dimension.DURATION] == {1: 1, 2: 0, 3: 0}

    def test_over_limit_flag(self):
        buckets = BucketConfig.defaults()
        buckets.set_limit(Dimension.URGENCY, 1, 1)
        update_buckets(buckets, [scored("a", 1), scored("b", 1)])

        level = buckets.level(Dimension.URGENCY, 1)
        assert level.count == 2
        assert level.over_limit is True
        assert buckets.level(Dimension.URGENCY, 2).over_limit is False

    def test_at_limit_is_not_over(self):
        buckets = BucketConfig.defaults()
        buckets.set_limit(Dimension.VALUE, 2, 1)
        update_buckets(buckets, [scored("a", 1, 2)])
        assert buckets.level(Dimension.VALUE, 2).over_limit is False

    def test_raising_limit_clears_flag(self):
        buckets = BucketConfig.defaults()
        buckets.set_limit(Dimension.URGENCY, 1, 0)
        update_buckets(buckets, [scored("a", 1)])
        assert buckets.level(Dimension.URGENCY, 1).over_limit is True

        buckets.set_limit(Dimension.URGENCY, 1, None)
        assert buckets.level(Dimension.URGENCY, 1).over_limit is False


class TestNormalize:
    def test_stored_data_with_string_keys(self):
        raw = {"urgency": {"2": {"weight": 5, "title": "LATER", "overLimit": True, "count": 4}}}
        levels = normalize_buckets(raw)
        bucket = levels[Dimension.URGENCY][2]
        assert bucket.weight == 5
        assert bucket.title == "LATER"
        assert bucket.count == 4
        assert bucket.over_limit is True
        assert bucket.description.startswith('"Soon"')

    def test_overrides_sit_between_defaults_and_stored(self):
        overrides = {"value": {3: {"weight": 8, "title": "GAME CHANGER"}}}
        stored = {"value": {"3": {"title": "KILLER"}}}
        buckets = BucketConfig.from_dict(stored, overrides)

        assert buckets.get_weight(Dimension.VALUE, 3) == 8
        assert buckets.title_for(Dimension.VALUE, 3) == "KILLER"

    def test_invalid_override_is_skipped(self):
        overrides = {"urgency": {1: {"weight": -2, "colour": "red"}}}
        buckets = BucketConfig.defaults(overrides)
        assert buckets.get_weight(Dimension.URGENCY, 1) == 1

    def test_to_dict_uses_string_level_keys(self):
        data = BucketConfig.defaults().to_dict()
        assert set(data) == {"urgency", "value", "duration"}
        assert set(data["duration"]) == {"1", "2", "3"}
        assert data["urgency"]["1"]["overLimit"] is False

    def test_confidence_weights(self):
        weights = normalize_confidence_weights({"2": "0.6", "9": 1, "x": 2})
        assert weights == {1: 0.30, 2: 0.6, 3: 0.70, 4: 0.90}
