"""
Diagnostics
===========

Semantic checks over the conditional tags of one way, for validator and
editor integrations, plus a dataset-level restriction summary.

Checks performed by ``diagnose_tags``:
- syntax errors, with a suggested fix where a common mistake is recognised
- unusual access values and speed limits
- invalid oneway values
- alternative time windows that can be active at the same time
- a base tag and its ``:conditional`` variant present together
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from itertools import combinations
import re
from typing import Iterable, Optional

from loguru import logger

from condroute.core.budget import SearchBudget, start_budget
from condroute.core.compiler import parse
from condroute.core.errors import (
    EmptyConditionError,
    EmptyTagValueError,
    MissingAtSignError,
    MissingValueError,
    ParseError,
    UnbalancedParenthesesError,
)
from condroute.core.schema import (
    BLOCKING_VALUES,
    CONDITIONAL_SUFFIX,
    MapEntity,
    Restriction,
    base_tag,
)
from condroute.core.temporal import MONTHS, WEEKDAYS, windows_overlap


class DiagnosticCode(IntEnum):
    """Stable numeric codes shared with validator integrations."""

    INVALID_SYNTAX = 4001
    MALFORMED_CONDITION = 4002
    INCONSISTENT_VALUE = 4003
    DEPRECATED_SYNTAX = 4004
    UNUSUAL_VALUE = 4005
    OVERLAPPING_CONDITIONS = 4006


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


VALID_ACCESS_VALUES: tuple[str, ...] = (
    "yes",
    "no",
    "private",
    "permissive",
    "destination",
    "customers",
    "delivery",
    "agricultural",
    "forestry",
    "emergency",
)

VALID_ONEWAY_VALUES: tuple[str, ...] = ("yes", "no", "-1", "1", "true", "false")

ACCESS_TAGS = frozenset({
    "access",
    "motor_vehicle",
    "vehicle",
    "bicycle",
    "foot",
    "horse",
    "hgv",
    "bus",
    "taxi",
    "emergency",
    "delivery",
})

MAX_PLAUSIBLE_SPEED_KMH = 200

# Substring replacements for frequent hand-typed mistakes, tried in order
COMMON_FIXES: tuple[tuple[str, str], ...] = (
    ("Mon-Fri", "Mo-Fr"),
    ("monday-friday", "Mo-Fr"),
    ("Sat-Sun", "Sa-Su"),
    ("maxweight", "weight"),
)

# Lower-cased day/month abbreviation -> its canonical OSM spelling
_CANONICAL_ABBREVIATIONS = {
    item.value.lower(): item.value for item in (*WEEKDAYS, *MONTHS)
}
_ABBREVIATION_RE = re.compile(r"\b[A-Za-z]{2,3}\b")

_STRUCTURAL_ERRORS = (
    EmptyTagValueError,
    MissingValueError,
    UnbalancedParenthesesError,
    EmptyConditionError,
)


@dataclass(frozen=True)
class Diagnostic:
    """One finding about one tag."""

    code: DiagnosticCode
    severity: Severity
    tag_key: str
    message: str
    suggestion: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "code": int(self.code),
            "severity": self.severity.value,
            "tag_key": self.tag_key,
            "message": self.message,
            "suggestion": self.suggestion,
        }


def suggest_fix(value: str) -> Optional[str]:
    """
    Suggest a corrected tag value for common syntax mistakes.

    Returns None when no known fix applies.

    >>> suggest_fix("no @ (Mon-Fri 07:00-19:00)")
    'no @ (Mo-Fr 07:00-19:00)'
    >>> suggest_fix("no @ Mo-Fr 07:00-19:00")
    'no @ (Mo-Fr 07:00-19:00)'
    """
    if not value:
        return None

    for wrong, right in COMMON_FIXES:
        if wrong in value:
            return value.replace(wrong, right)

    recased = _ABBREVIATION_RE.sub(
        lambda match: _CANONICAL_ABBREVIATIONS.get(match.group().lower(), match.group()),
        value,
    )
    if recased != value:
        return recased

    if "[" in value or "{" in value:
        return (
            value.replace("[", "(").replace("]", ")")
            .replace("{", "(").replace("}", ")")
        )

    if "@" in value and "(" not in value:
        restriction_value, condition = value.split("@", 1)
        return f"{restriction_value.strip()} @ ({condition.strip()})"

    if "  " in value:
        return re.sub(r"\s+", " ", value).strip()

    return None


def _syntax_diagnostic(tag_key: str, value: str, exc: ParseError) -> Diagnostic:
    if isinstance(exc, MissingAtSignError):
        code = DiagnosticCode.DEPRECATED_SYNTAX
        message = (
            f"{tag_key} uses deprecated syntax; "
            f"conditional restrictions use the format: value @ (condition)"
        )
    elif isinstance(exc, _STRUCTURAL_ERRORS):
        code = DiagnosticCode.INVALID_SYNTAX
        message = f"Invalid syntax in {tag_key}: {exc.reason}"
    else:
        code = DiagnosticCode.MALFORMED_CONDITION
        message = f"Malformed condition in {tag_key}: {exc.reason}"

    if exc.offending:
        message += f" ('{exc.offending}')"

    return Diagnostic(
        code=code,
        severity=Severity.ERROR,
        tag_key=tag_key,
        message=message,
        suggestion=suggest_fix(value),
    )


def _semantic_diagnostics(tag_key: str, restriction: Restriction) -> list[Diagnostic]:
    findings: list[Diagnostic] = []
    subject = restriction.subject_tag.lower()
    value = restriction.value.strip()

    if subject in ACCESS_TAGS and value.lower() not in VALID_ACCESS_VALUES:
        findings.append(Diagnostic(
            code=DiagnosticCode.UNUSUAL_VALUE,
            severity=Severity.WARNING,
            tag_key=tag_key,
            message=(
                f"Unusual access value '{value}' in {tag_key}. "
                f"Common values are: {', '.join(VALID_ACCESS_VALUES)}"
            ),
        ))

    if subject == "oneway" and value.lower() not in VALID_ONEWAY_VALUES:
        findings.append(Diagnostic(
            code=DiagnosticCode.INCONSISTENT_VALUE,
            severity=Severity.ERROR,
            tag_key=tag_key,
            message=(
                f"Invalid oneway value '{value}' in {tag_key}. "
                f"Valid values are: {', '.join(VALID_ONEWAY_VALUES)}"
            ),
        ))

    if subject == "maxspeed":
        if value.isdigit() and int(value) > MAX_PLAUSIBLE_SPEED_KMH:
            findings.append(Diagnostic(
                code=DiagnosticCode.UNUSUAL_VALUE,
                severity=Severity.WARNING,
                tag_key=tag_key,
                message=f"Speed limit of {value} km/h in {tag_key} seems unusually high",
            ))
        if re.fullmatch(r"\d+\s*mph", value, re.IGNORECASE):
            findings.append(Diagnostic(
                code=DiagnosticCode.UNUSUAL_VALUE,
                severity=Severity.WARNING,
                tag_key=tag_key,
                message=f"Speed value '{value}' in {tag_key} uses mph; OSM usually uses km/h",
            ))

    for first, second in combinations(restriction.time_windows, 2):
        if windows_overlap(first, second):
            findings.append(Diagnostic(
                code=DiagnosticCode.OVERLAPPING_CONDITIONS,
                severity=Severity.WARNING,
                tag_key=tag_key,
                message=(
                    f"{tag_key} has overlapping time conditions: "
                    f"{first.describe()} and {second.describe()}"
                ),
            ))
            break

    return findings


def diagnose_tags(tags: dict[str, str]) -> list[Diagnostic]:
    """
    Run all checks over the tags of one way.

    Parameters
    ----------
    tags : dict
        All tags of the way. Every ``*:conditional`` key is checked.

    Returns
    -------
    list of Diagnostic
        Findings in tag order; conflicting-tag warnings come last.
    """
    findings: list[Diagnostic] = []
    conditional_by_base: dict[str, list[str]] = {}

    for tag_key, value in tags.items():
        if not tag_key.endswith(CONDITIONAL_SUFFIX):
            continue
        conditional_by_base.setdefault(base_tag(tag_key), []).append(tag_key)
        if value is None or not value.strip():
            continue

        try:
            restriction = parse(tag_key, value)
        except ParseError as exc:
            findings.append(_syntax_diagnostic(tag_key, value, exc))
            continue

        findings.extend(_semantic_diagnostics(tag_key, restriction))

    for base, conditional_keys in conditional_by_base.items():
        if base in tags:
            findings.append(Diagnostic(
                code=DiagnosticCode.UNUSUAL_VALUE,
                severity=Severity.WARNING,
                tag_key=conditional_keys[0],
                message=(
                    f"Way has both {base}={tags[base]} and conditional tags "
                    f"{', '.join(conditional_keys)}; verify this combination is intended"
                ),
            ))

    logger.debug(f"[Diagnostics] {len(findings)} findings for {len(tags)} tags")
    return findings


@dataclass
class RestrictionSummary:
    """Counts of conditional restrictions across a dataset."""

    entities_scanned: int = 0
    entities_with_restrictions: int = 0
    total_tags: int = 0
    restrictions: int = 0
    parse_errors: int = 0
    time_based: int = 0
    weight_based: int = 0
    height_based: int = 0
    blocking: int = 0
    by_subject: dict[str, int] = field(default_factory=dict)
    truncated: bool = False

    def to_dict(self) -> dict:
        return {
            "entities_scanned": self.entities_scanned,
            "entities_with_restrictions": self.entities_with_restrictions,
            "total_tags": self.total_tags,
            "restrictions": self.restrictions,
            "parse_errors": self.parse_errors,
            "time_based": self.time_based,
            "weight_based": self.weight_based,
            "height_based": self.height_based,
            "blocking": self.blocking,
            "by_subject": dict(self.by_subject),
            "truncated": self.truncated,
        }


def summarize_restrictions(
    entities: Optional[Iterable[MapEntity]],
    budget: Optional[SearchBudget] = None,
) -> RestrictionSummary:
    """
    Compile every ``*:conditional`` tag in a dataset and count what was found.

    With a budget, counting stops once it is exhausted (one step per entity)
    and the summary is flagged ``truncated``.
    """
    summary = RestrictionSummary()
    tracker = start_budget(budget)

    for entity in entities or ():
        if tracker is not None and tracker.step():
            summary.truncated = True
            logger.warning(
                f"[Diagnostics] Scan budget exhausted after {summary.entities_scanned} entities"
            )
            break
        summary.entities_scanned += 1
        conditional = entity.conditional_tags()
        if conditional:
            summary.entities_with_restrictions += 1

        for tag_key, value in conditional.items():
            summary.total_tags += 1
            try:
                restriction = parse(tag_key, value)
            except ParseError:
                summary.parse_errors += 1
                continue

            summary.restrictions += 1
            subject = restriction.subject_tag
            summary.by_subject[subject] = summary.by_subject.get(subject, 0) + 1
            if restriction.time_windows:
                summary.time_based += 1
            if restriction.weight is not None:
                summary.weight_based += 1
            if restriction.height is not None:
                summary.height_based += 1
            if restriction.value.strip().lower() in BLOCKING_VALUES:
                summary.blocking += 1

    logger.info(
        f"[Diagnostics] Summarized {summary.restrictions} restrictions "
        f"on {summary.entities_with_restrictions}/{summary.entities_scanned} entities "
        f"({summary.parse_errors} parse errors)"
    )
    return summary
