"""
Tests for the Condition Grammar Compiler
========================================

Tests parsing of conditional tag values, the error taxonomy, validation and
dataset compilation.
"""

import pytest
from datetime import time

from condroute.core.budget import SearchBudget
from condroute.core.compiler import (
    CONDITIONAL_TAG_KEYS,
    compile_entity,
    compile_restrictions,
    parse,
    validate,
)
from condroute.core.errors import (
    DuplicateComparisonError,
    EmptyConditionError,
    EmptyTagValueError,
    InvalidNumberError,
    InvalidOperatorError,
    InvalidTimeError,
    MissingAtSignError,
    MissingValueError,
    ParseError,
    UnbalancedParenthesesError,
    UnknownDayError,
    UnknownMonthError,
    UnsupportedConditionError,
)
from condroute.core.schema import ComparisonOperator, GraphNode, MapEntity
from condroute.core.temporal import WEEKDAYS, WORKING_DAYS, Month, Weekday


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def nodes() -> list[GraphNode]:
    return [GraphNode(1, 13.0, 52.0), GraphNode(2, 13.001, 52.0)]


@pytest.fixture
def entities(nodes) -> list[MapEntity]:
    """Three ways: one clean, one with a broken tag, one without conditional tags."""
    return [
        MapEntity(
            id=1,
            tags={
                "highway": "primary",
                "access:conditional": "no @ (Mo-Fr 07:00-19:00)",
                "maxspeed:conditional": "30 @ (22:00-06:00)",
            },
            nodes=nodes,
        ),
        MapEntity(
            id=2,
            tags={
                "highway": "residential",
                "hgv:conditional": "no @ (weight>7.5)",
                "access:conditional": "no @ (Xx-Fr)",
                "psv:conditional": "yes @ (Mo-Fr)",
            },
            nodes=nodes,
        ),
        MapEntity(id=3, tags={"highway": "service"}, nodes=nodes),
    ]


# =============================================================================
# Parsing Tests
# =============================================================================


class TestParse:
    """Tests for well-formed conditional values."""

    def test_access_working_hours(self):
        restriction = parse("access:conditional", "no @ (Mo-Fr 07:00-19:00)")

        assert restriction.tag_key == "access:conditional"
        assert restriction.subject_tag == "access"
        assert restriction.value == "no"
        assert restriction.raw_value == "no @ (Mo-Fr 07:00-19:00)"
        assert len(restriction.time_windows) == 1

        window = restriction.time_windows[0]
        assert window.days == WORKING_DAYS
        assert window.start_time == time(7, 0)
        assert window.end_time == time(19, 0)

    def test_alternative_windows(self):
        restriction = parse("access:conditional", "no @ (Mo-Fr 07:00-19:00; Sa 08:00-14:00)")

        assert len(restriction.time_windows) == 2
        assert restriction.time_windows[1].days == {Weekday.SATURDAY}
        assert restriction.time_windows[1].start_time == time(8, 0)

    def test_weight_comparison(self):
        restriction = parse("hgv:conditional", "no @ (weight>7.5)")

        assert restriction.time_windows == ()
        assert restriction.weight.operator == ComparisonOperator.GT
        assert restriction.weight.value == 7.5
        assert restriction.height is None

    def test_comparison_with_spaces_and_unit(self):
        restriction = parse("hgv:conditional", "no @ (weight >= 3.5 t)")
        assert restriction.weight.operator == ComparisonOperator.GE
        assert restriction.weight.value == 3.5

    def test_height_comparison(self):
        restriction = parse("access:conditional", "no @ (height<=3.5m)")
        assert restriction.height.operator == ComparisonOperator.LE
        assert restriction.height.value == 3.5

    def test_time_and_weight_mixed(self):
        restriction = parse("hgv:conditional", "no @ (Mo-Fr 07:00-19:00; weight>7.5)")
        assert len(restriction.time_windows) == 1
        assert restriction.weight is not None

    def test_midnight_range(self):
        restriction = parse("maxspeed:conditional", "30 @ (22:00-06:00)")
        window = restriction.time_windows[0]
        assert window.days == frozenset()
        assert window.spans_midnight

    def test_end_of_day_24_00(self):
        restriction = parse("hgv:conditional", "no @ (Mo-Su 00:00-24:00)")
        window = restriction.time_windows[0]
        assert window.days == frozenset(WEEKDAYS)
        assert window.spans_all_day

    def test_range_ending_at_24_00(self):
        window = parse("access:conditional", "no @ (18:00-24:00)").time_windows[0]
        assert window.end_time == time(0, 0)
        assert window.minute_intervals() == [(1080, 1440)]

    def test_seconds_ignored(self):
        window = parse("access:conditional", "no @ (07:00:30-19:00:00)").time_windows[0]
        assert window.start_time == time(7, 0)
        assert window.end_time == time(19, 0)

    def test_single_digit_hour(self):
        window = parse("access:conditional", "no @ (Mo-Fr 7:00-19:00)").time_windows[0]
        assert window.start_time == time(7, 0)

    def test_comma_list_of_days(self):
        window = parse("access:conditional", "no @ (Mo,We,Fr)").time_windows[0]
        assert window.days == {Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY}
        assert window.start_time is None

    def test_wrapping_day_range(self):
        window = parse("access:conditional", "no @ (Fr-Mo)").time_windows[0]
        assert len(window.days) == 4

    def test_month_range(self):
        window = parse("access:conditional", "no @ (Nov-Mar)").time_windows[0]
        assert window.months == {
            Month.NOVEMBER, Month.DECEMBER, Month.JANUARY, Month.FEBRUARY, Month.MARCH,
        }
        assert window.days == frozenset()

    def test_months_days_and_time(self):
        window = parse("motor_vehicle:conditional", "no @ (Jul-Aug Sa-Su 10:00-18:00)").time_windows[0]
        assert window.months == {Month.JULY, Month.AUGUST}
        assert window.days == {Weekday.SATURDAY, Weekday.SUNDAY}
        assert window.start_time == time(10, 0)

    def test_multiple_time_ranges_expand(self):
        restriction = parse("maxspeed:conditional", "20 @ (Mo-Fr 07:00-09:00,16:00-18:00)")

        assert len(restriction.time_windows) == 2
        assert all(w.days == WORKING_DAYS for w in restriction.time_windows)
        assert restriction.time_windows[0].end_time == time(9, 0)
        assert restriction.time_windows[1].start_time == time(16, 0)

    @pytest.mark.parametrize("value, error", [
        ("no @ (mo-fr)", UnknownDayError),
        ("no @ (MO-FR 07:00-19:00)", UnknownDayError),
        ("no @ (jan-mar)", UnknownMonthError),
    ])
    def test_abbreviations_are_case_sensitive(self, value, error):
        with pytest.raises(error):
            parse("access:conditional", value)

    def test_canonical_abbreviations(self):
        window = parse("access:conditional", "no @ (Jan-Mar Mo-Fr)").time_windows[0]
        assert window.days == WORKING_DAYS
        assert window.months == {Month.JANUARY, Month.FEBRUARY, Month.MARCH}

    def test_value_with_spaces_around(self):
        restriction = parse("maxspeed:conditional", "  30   @   ( 22:00-06:00 )  ")
        assert restriction.value == "30"
        assert len(restriction.time_windows) == 1

    def test_reparse_is_idempotent(self):
        value = "no @ (Mo-Fr 07:00-19:00; Sa 08:00-14:00; weight>7.5)"
        assert parse("hgv:conditional", value) == parse("hgv:conditional", value)


# =============================================================================
# Error Tests
# =============================================================================


class TestParseErrors:
    """Tests for the ParseError taxonomy."""

    @pytest.mark.parametrize("value, error", [
        ("", EmptyTagValueError),
        ("   ", EmptyTagValueError),
        (None, EmptyTagValueError),
        ("no (Mo-Fr 07:00-19:00)", MissingAtSignError),
        ("invalid syntax", MissingAtSignError),
        ("@ (Mo-Fr)", MissingValueError),
        ("no @ Mo-Fr 07:00-19:00", UnbalancedParenthesesError),
        ("no @ (Mo-Fr 07:00-19:00", UnbalancedParenthesesError),
        ("no @ ((Mo-Fr))", UnbalancedParenthesesError),
        ("no @ ()", EmptyConditionError),
        ("no @ (Mo-Fr;)", EmptyConditionError),
        ("no @ (Xx-Fr)", UnknownDayError),
        ("no @ (Mon-Fri)", UnknownDayError),
        ("no @ (Jan-Foo)", UnknownMonthError),
        ("no @ (25:00-26:00)", InvalidTimeError),
        ("no @ (07:60-19:00)", InvalidTimeError),
        ("no @ (24:00-06:00)", InvalidTimeError),
        ("no @ (Mo-Fr 7:5-19:00)", InvalidTimeError),
        ("no @ (Mo-Fr 07:0-19:00)", InvalidTimeError),
        ("no @ (Mo-Fr 7h00-19h00)", InvalidTimeError),
        ("no @ (weight=7.5)", InvalidOperatorError),
        ("no @ (weight 7.5)", InvalidOperatorError),
        ("no @ (weight>abc)", InvalidNumberError),
        ("no @ (weight>7.5m)", InvalidNumberError),
        ("no @ (weight>7.5; weight<20)", DuplicateComparisonError),
        ("no @ (holiday)", UnsupportedConditionError),
        ("no @ (Mo-Fr 07:00)", UnsupportedConditionError),
        ("no @ (Mo-Jan)", UnsupportedConditionError),
        ("no @ (Mo-Fr 07:00-19:00 & Sa)", UnsupportedConditionError),
    ])
    def test_error_types(self, value, error):
        with pytest.raises(error):
            parse("access:conditional", value)

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            parse("access:conditional", "invalid syntax")

    def test_error_carries_context(self):
        with pytest.raises(UnknownDayError) as exc_info:
            parse("access:conditional", "no @ (Xx-Fr 07:00-19:00)")

        exc = exc_info.value
        assert isinstance(exc, ParseError)
        assert exc.tag_key == "access:conditional"
        assert exc.offending == "Xx"
        assert exc.code == "UNKNOWN_DAY"
        assert "access:conditional" in str(exc)

    def test_invalid_time_offending(self):
        with pytest.raises(InvalidTimeError) as exc_info:
            parse("access:conditional", "no @ (Mo-Fr 07:00-25:00)")
        assert exc_info.value.offending == "25:00"

    def test_malformed_time_offending(self):
        with pytest.raises(InvalidTimeError) as exc_info:
            parse("access:conditional", "no @ (Mo-Fr 7:5-19:00)")
        assert exc_info.value.offending == "7:5"
        assert exc_info.value.code == "INVALID_TIME"


class TestValidate:
    """Tests for the non-raising validation entry point."""

    def test_valid(self):
        result = validate("access:conditional", "no @ (Mo-Fr 07:00-19:00)")
        assert result.is_valid
        assert result.message.startswith("Valid")
        assert result.error_code is None

    def test_invalid(self):
        result = validate("access:conditional", "no (Mo-Fr)")
        assert not result.is_valid
        assert result.error_code == "MISSING_AT_SIGN"
        assert result.to_dict()["is_valid"] is False

    def test_none_value_does_not_raise(self):
        result = validate("access:conditional", None)
        assert not result.is_valid
        assert result.error_code == "EMPTY_TAG_VALUE"


# =============================================================================
# Dataset Compilation Tests
# =============================================================================


class TestCompileRestrictions:
    """Tests for whole-dataset compilation."""

    def test_default_keys(self):
        assert "access:conditional" in CONDITIONAL_TAG_KEYS
        assert "maxspeed:conditional" in CONDITIONAL_TAG_KEYS
        assert len(CONDITIONAL_TAG_KEYS) == 8

    def test_compile_entity_keeps_good_tags(self, entities):
        restrictions, issues = compile_entity(entities[1])

        assert [r.tag_key for r in restrictions] == ["hgv:conditional"]
        assert len(issues) == 1
        assert issues[0].tag_key == "access:conditional"
        assert issues[0].error_type == "UNKNOWN_DAY"

    def test_index(self, entities):
        index = compile_restrictions(entities)

        assert set(index.by_entity) == {1, 2}
        assert len(index.restrictions_for(1)) == 2
        assert index.restrictions_for(3) == ()
        assert index.restriction_count == 3

    def test_issues_collected(self, entities):
        index = compile_restrictions(entities)

        assert len(index.issues) == 1
        issue = index.issues[0]
        assert issue.entity_id == 2
        assert issue.raw_value == "no @ (Xx-Fr)"
        assert index.issues_for(2) == [issue]
        assert index.issues_for(1) == []
        assert issue.to_dict()["error_type"] == "UNKNOWN_DAY"

    def test_unlisted_keys_ignored(self, entities):
        index = compile_restrictions(entities)
        assert all(r.tag_key != "psv:conditional" for r in index.restrictions_for(2))

    def test_custom_keys(self, entities):
        index = compile_restrictions(entities, keys=["psv:conditional"])
        assert set(index.by_entity) == {2}
        assert index.issues == []

    def test_none_dataset(self):
        index = compile_restrictions(None)
        assert index.by_entity == {}
        assert index.issues == []
        assert not index.truncated

    def test_scan_budget_stops_early(self, square):
        restricted = {"access:conditional": "no @ (Mo-Fr 07:00-19:00)"}
        entities = square({"w1": restricted, "w2": restricted})

        index = compile_restrictions(entities, budget=SearchBudget(max_expansions=1))
        assert index.truncated
        assert set(index.by_entity) == {"w1"}

    def test_sufficient_scan_budget(self, square):
        restricted = {"access:conditional": "no @ (Mo-Fr 07:00-19:00)"}
        entities = square({"w1": restricted, "w2": restricted})

        index = compile_restrictions(entities, budget=SearchBudget(max_expansions=10))
        assert not index.truncated
        assert set(index.by_entity) == {"w1", "w2"}
