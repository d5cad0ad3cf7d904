"""
Condition Grammar Compiler
==========================

Compiles OSM conditional-restriction tag values into Restriction objects.

Grammar::

    VALUE "@" "(" CONDITION (";" CONDITION)* ")"

    CONDITION  := [MONTHS] [DAYS] [TIME_RANGE ("," TIME_RANGE)*]
                | ("weight" | "height") OP NUMBER [UNIT]

    MONTHS     := month ("," month | "-" month)*        e.g. "Apr-Oct", "Jan,Mar"
    DAYS       := day ("," day | "-" day)*              e.g. "Mo-Fr", "Sa,Su"
    TIME_RANGE := H[H]:MM[:SS] "-" H[H]:MM[:SS]         e.g. "07:00-19:00"
    OP         := ">" | ">=" | "<" | "<="

Each ``;`` separated condition becomes one alternative TimeWindow (or fills
the weight/height slot); the Restriction is in force when any window is.

Errors are raised as ParseError subclasses (see ``condroute.core.errors``).
A failed compile never yields a partial Restriction.
"""

from dataclasses import dataclass, field
from datetime import time
import re
from typing import Iterable, Optional

from loguru import logger

from condroute.core.budget import SearchBudget, start_budget
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
    ValidationResult,
)
from condroute.core.schema import (
    CONDITIONAL_SUFFIX,
    Comparison,
    ComparisonOperator,
    EntityId,
    MapEntity,
    Restriction,
)
from condroute.core.temporal import (
    MONTHS,
    WEEKDAYS,
    Month,
    TimeWindow,
    Weekday,
    expand_day_range,
    expand_month_range,
)


CONDITIONAL_TAG_KEYS: tuple[str, ...] = tuple(
    f"{base}{CONDITIONAL_SUFFIX}"
    for base in (
        "access",
        "oneway",
        "hgv",
        "maxspeed",
        "parking",
        "bicycle",
        "motor_vehicle",
        "foot",
    )
)
"""Conditional tag keys compiled by default when scanning entities."""


_COMPARISON_AXES = {"weight": "t", "height": "m"}

_COMPARISON_RE = re.compile(r"^(?P<axis>weight|height)\b\s*(?P<rest>.*)$", re.IGNORECASE)
_OPERATOR_RE = re.compile(r"^(?P<op>[<>=!]+)\s*(?P<rest>.*)$")
_NUMBER_RE = re.compile(r"^(?P<num>\d+(?:\.\d+)?|\.\d+)\s*(?P<unit>[a-zA-Z]*)$")

_TOKEN_RE = re.compile(
    r"""
    (?P<time>\d{1,2}:\d{2}(?::\d{2})?)
    |(?P<badtime>\d[\d:h.]*)
    |(?P<word>[A-Za-z]+)
    |(?P<dash>-)
    |(?P<comma>,)
    |(?P<space>\s+)
    """,
    re.VERBOSE,
)

# Abbreviations are case-sensitive: "Mo" is a day, "mo" is not
_DAY_LOOKUP = {day.value: day for day in WEEKDAYS}
_MONTH_LOOKUP = {month.value: month for month in MONTHS}
_MONTH_PREFIXES = tuple(month.value.lower() for month in MONTHS)
_ENGLISH_DAY_PREFIXES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


# =============================================================================
# Tokens
# =============================================================================


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str


def _tokenize(segment: str) -> list[_Token]:
    tokens: list[_Token] = []
    position = 0
    while position < len(segment):
        match = _TOKEN_RE.match(segment, position)
        if match is None:
            raise UnsupportedConditionError(
                "Unexpected character in condition", segment[position:]
            )
        kind = match.lastgroup
        if kind == "badtime":
            raise InvalidTimeError("Malformed time", match.group())
        if kind != "space":
            tokens.append(_Token(kind, match.group()))
        position = match.end()
    return tokens


def _group_items(tokens: list[_Token], segment: str) -> list[tuple[_Token, Optional[_Token]]]:
    """Group tokens into single atoms and ``A-B`` ranges, dropping commas."""
    items: list[tuple[_Token, Optional[_Token]]] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token.kind == "comma":
            index += 1
            continue
        if token.kind == "dash":
            raise UnsupportedConditionError("Range without a start", segment)

        if index + 1 < len(tokens) and tokens[index + 1].kind == "dash":
            if index + 2 >= len(tokens) or tokens[index + 2].kind in ("dash", "comma"):
                raise UnsupportedConditionError("Range without an end", segment)
            items.append((token, tokens[index + 2]))
            index += 3
        else:
            items.append((token, None))
            index += 1
    return items


# =============================================================================
# Atoms
# =============================================================================


def _parse_time(text: str, end_of_range: bool = False) -> time:
    """
    Parse ``H:MM``/``HH:MM`` with optional ignored seconds.

    ``24:00`` is accepted only as the end of a range and normalised to 00:00.
    """
    parts = text.split(":")
    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) > 2 else 0

    if end_of_range and hour == 24 and minute == 0 and second == 0:
        return time(0, 0)
    if hour > 23 or minute > 59 or second > 59:
        raise InvalidTimeError("Time out of range", text)
    return time(hour, minute)


def _guess_kind(word: str) -> str:
    """Classify an unrecognised word as a misspelt day, month or neither."""
    lowered = word.lower()
    if len(word) == 2 or lowered[:3] in _ENGLISH_DAY_PREFIXES:
        return "day"
    if len(word) == 3 or lowered[:3] in _MONTH_PREFIXES:
        return "month"
    return "other"


def _unknown_word(word: str, kind: str) -> ParseError:
    if kind == "day":
        return UnknownDayError("Unknown day", word)
    if kind == "month":
        return UnknownMonthError("Unknown month", word)
    return UnsupportedConditionError("Unsupported condition", word)


def _resolve_words(
    first: str, second: Optional[str]
) -> tuple[set[Weekday], set[Month]]:
    """Resolve a day/month atom or range to day and month sets."""
    first_day = _DAY_LOOKUP.get(first)
    first_month = _MONTH_LOOKUP.get(first)

    if second is None:
        if first_day is not None:
            return {first_day}, set()
        if first_month is not None:
            return set(), {first_month}
        raise _unknown_word(first, _guess_kind(first))

    second_day = _DAY_LOOKUP.get(second)
    second_month = _MONTH_LOOKUP.get(second)

    if first_day is not None and second_day is not None:
        return set(expand_day_range(first_day, second_day)), set()
    if first_month is not None and second_month is not None:
        return set(), set(expand_month_range(first_month, second_month))

    # One side unknown: the known side decides what was meant
    if first_day is not None or second_day is not None:
        unknown = second if first_day is not None else first
        if _MONTH_LOOKUP.get(unknown) is not None:
            raise UnsupportedConditionError("Day range mixed with month", f"{first}-{second}")
        raise UnknownDayError("Unknown day", unknown)
    if first_month is not None or second_month is not None:
        unknown = second if first_month is not None else first
        raise UnknownMonthError("Unknown month", unknown)

    raise _unknown_word(first, _guess_kind(first))


# =============================================================================
# Conditions
# =============================================================================


def _parse_comparison(segment: str) -> Optional[tuple[str, Comparison]]:
    """Parse ``weight>7.5`` / ``height<=3.5m``; None if not a comparison."""
    match = _COMPARISON_RE.match(segment)
    if match is None:
        return None

    axis = match.group("axis").lower()
    rest = match.group("rest")

    operator_match = _OPERATOR_RE.match(rest)
    if operator_match is None:
        raise InvalidOperatorError("Missing comparison operator", segment)
    try:
        operator = ComparisonOperator(operator_match.group("op"))
    except ValueError:
        raise InvalidOperatorError(
            "Unsupported comparison operator", operator_match.group("op")
        ) from None

    number_text = operator_match.group("rest").strip()
    number_match = _NUMBER_RE.match(number_text)
    if number_match is None:
        raise InvalidNumberError("Invalid number", number_text or segment)

    unit = number_match.group("unit").lower()
    if unit and unit != _COMPARISON_AXES[axis]:
        raise InvalidNumberError(f"Unexpected unit for {axis}", number_text)

    return axis, Comparison(operator=operator, value=float(number_match.group("num")))


def _parse_temporal(segment: str) -> list[TimeWindow]:
    """Parse a months/days/time-ranges condition into one window per time range."""
    tokens = _tokenize(segment)
    items = _group_items(tokens, segment)
    if not items:
        raise UnsupportedConditionError("Unsupported condition", segment)

    days: set[Weekday] = set()
    months: set[Month] = set()
    ranges: list[tuple[time, time]] = []

    for first, second in items:
        if first.kind == "time" or (second is not None and second.kind == "time"):
            if second is None:
                raise UnsupportedConditionError("Time without a range end", first.text)
            if first.kind != "time" or second.kind != "time":
                raise UnsupportedConditionError(
                    "Time range mixed with day or month", f"{first.text}-{second.text}"
                )
            ranges.append((_parse_time(first.text), _parse_time(second.text, end_of_range=True)))
            continue

        item_days, item_months = _resolve_words(first.text, second.text if second else None)
        days |= item_days
        months |= item_months

    if not ranges:
        return [TimeWindow(days=frozenset(days), months=frozenset(months))]

    return [
        TimeWindow(
            days=frozenset(days),
            months=frozenset(months),
            start_time=start,
            end_time=end,
        )
        for start, end in ranges
    ]


def _split_tag_value(tag_value: Optional[str]) -> tuple[str, str]:
    """Split ``value @ (conditions)`` into value and the text inside the parentheses."""
    if tag_value is None or not tag_value.strip():
        raise EmptyTagValueError("Empty tag value")

    if "@" not in tag_value:
        raise MissingAtSignError("Missing '@' separator", tag_value.strip())

    value, condition = tag_value.split("@", 1)
    value = value.strip()
    condition = condition.strip()

    if not value:
        raise MissingValueError("Missing value before '@'", tag_value.strip())

    if not condition.startswith("(") or not condition.endswith(")"):
        raise UnbalancedParenthesesError("Condition must be enclosed in parentheses", condition)

    inner = condition[1:-1]
    if "(" in inner or ")" in inner:
        raise UnbalancedParenthesesError("Unbalanced parentheses", condition)

    return value, inner


def _compile(tag_key: str, tag_value: Optional[str]) -> Restriction:
    value, inner = _split_tag_value(tag_value)

    windows: list[TimeWindow] = []
    comparisons: dict[str, Comparison] = {}

    for segment in inner.split(";"):
        segment = segment.strip()
        if not segment:
            raise EmptyConditionError("Empty condition", inner)

        comparison = _parse_comparison(segment)
        if comparison is not None:
            axis, parsed = comparison
            if axis in comparisons:
                raise DuplicateComparisonError(f"Duplicate {axis} condition", segment)
            comparisons[axis] = parsed
            continue

        windows.extend(_parse_temporal(segment))

    return Restriction(
        tag_key=tag_key,
        value=value,
        time_windows=tuple(windows),
        weight=comparisons.get("weight"),
        height=comparisons.get("height"),
        raw_value=tag_value,
    )


# =============================================================================
# Public API
# =============================================================================


def parse(tag_key: str, tag_value: Optional[str]) -> Restriction:
    """
    Compile one conditional tag.

    Parameters
    ----------
    tag_key : str
        Full tag key, e.g. "access:conditional". Kept verbatim on the result.
    tag_value : str
        Tag value, e.g. "no @ (Mo-Fr 07:00-19:00)".

    Returns
    -------
    Restriction

    Raises
    ------
    ParseError
        A subclass naming the syntax problem, carrying the tag key and the
        offending substring.
    """
    try:
        return _compile(tag_key, tag_value)
    except ParseError as exc:
        if exc.tag_key is None:
            exc.with_tag_key(tag_key)
        raise


def validate(tag_key: str, tag_value: Optional[str]) -> ValidationResult:
    """Non-raising variant of ``parse`` for editors and validators."""
    try:
        restriction = parse(tag_key, tag_value)
    except ParseError as exc:
        return ValidationResult(is_valid=False, message=str(exc), error_code=exc.code)
    return ValidationResult(is_valid=True, message=f"Valid: {restriction.describe()}")


@dataclass(frozen=True)
class ParseIssue:
    """A conditional tag that failed to compile during a dataset scan."""

    entity_id: EntityId
    tag_key: str
    raw_value: str
    reason: str
    error_type: str

    def to_dict(self) -> dict:
        return {
            "entity_id": self.entity_id,
            "tag_key": self.tag_key,
            "raw_value": self.raw_value,
            "reason": self.reason,
            "error_type": self.error_type,
        }


@dataclass
class RestrictionIndex:
    """Restrictions compiled per entity, plus the tags that failed."""

    by_entity: dict[EntityId, tuple[Restriction, ...]] = field(default_factory=dict)
    issues: list[ParseIssue] = field(default_factory=list)
    truncated: bool = False
    """True when a scan budget ran out before every entity was compiled."""

    def restrictions_for(self, entity_id: EntityId) -> tuple[Restriction, ...]:
        return self.by_entity.get(entity_id, ())

    def issues_for(self, entity_id: EntityId) -> list[ParseIssue]:
        return [issue for issue in self.issues if issue.entity_id == entity_id]

    @property
    def restriction_count(self) -> int:
        return sum(len(restrictions) for restrictions in self.by_entity.values())


def compile_entity(
    entity: MapEntity,
    keys: Iterable[str] = CONDITIONAL_TAG_KEYS,
) -> tuple[tuple[Restriction, ...], list[ParseIssue]]:
    """
    Compile the whitelisted conditional tags of one entity.

    A tag that fails is reported as a ParseIssue; the remaining tags are
    still compiled.
    """
    wanted = set(keys)
    restrictions: list[Restriction] = []
    issues: list[ParseIssue] = []

    for tag_key, tag_value in entity.tags.items():
        if tag_key not in wanted:
            continue
        try:
            restrictions.append(parse(tag_key, tag_value))
        except ParseError as exc:
            issue = ParseIssue(
                entity_id=entity.id,
                tag_key=tag_key,
                raw_value=tag_value,
                reason=exc.reason,
                error_type=exc.code,
            )
            logger.warning(
                f"[Compiler] Skipping {tag_key} on entity {entity.id}: {exc}"
            )
            issues.append(issue)

    return tuple(restrictions), issues


def compile_restrictions(
    entities: Optional[Iterable[MapEntity]],
    keys: Iterable[str] = CONDITIONAL_TAG_KEYS,
    budget: Optional[SearchBudget] = None,
) -> RestrictionIndex:
    """
    Compile the conditional tags of every entity in a dataset.

    Parameters
    ----------
    entities : iterable of MapEntity, optional
        Entities to scan. None is treated as an empty dataset.
    keys : iterable of str
        Conditional tag keys to compile. Others are ignored.
    budget : SearchBudget, optional
        Cutoff counted per entity. On exhaustion the index holds the
        entities compiled so far and is flagged ``truncated``.

    Returns
    -------
    RestrictionIndex
        Restrictions keyed by entity id (entities without any are omitted)
        and the collected parse issues.
    """
    keys = tuple(keys)
    index = RestrictionIndex()
    scanned = 0
    tracker = start_budget(budget)

    for entity in entities or ():
        if tracker is not None and tracker.step():
            index.truncated = True
            logger.warning(f"[Compiler] Scan budget exhausted after {scanned} entities")
            break
        scanned += 1
        restrictions, issues = compile_entity(entity, keys)
        if restrictions:
            index.by_entity[entity.id] = restrictions
        index.issues.extend(issues)

    logger.info(
        f"[Compiler] Compiled {index.restriction_count} restrictions "
        f"from {scanned} entities ({len(index.issues)} issues)"
    )
    return index
