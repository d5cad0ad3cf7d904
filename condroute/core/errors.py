"""Conditional restriction error types.

Every syntax problem in a conditional tag value maps to one ParseError
subclass. Each error carries the tag key, the offending substring and a short
reason so callers can report per-tag diagnostics:

- EMPTY_TAG_VALUE: nothing to parse
- MISSING_AT_SIGN: ``value @ (condition)`` separator absent
- MISSING_VALUE: nothing before the ``@``
- UNBALANCED_PARENTHESES: condition not wrapped in one ``( ... )`` pair
- EMPTY_CONDITION: a ``;`` segment with no content
- UNKNOWN_DAY / UNKNOWN_MONTH: unrecognised abbreviation
- INVALID_TIME: malformed or out-of-range time of day
- INVALID_NUMBER / INVALID_OPERATOR: broken weight/height comparison
- DUPLICATE_COMPARISON: two comparisons on the same axis
- UNSUPPORTED_CONDITION: anything else
"""

from dataclasses import dataclass
from typing import Optional


class ConditionalRestrictionError(Exception):
    """Base class for errors raised by this package."""


class ParseError(ConditionalRestrictionError, ValueError):
    """Raised when a conditional tag value cannot be compiled.

    Attributes:
        code: Stable error code (e.g., "MISSING_AT_SIGN", "INVALID_TIME")
        offending: The substring that could not be compiled
        tag_key: Tag key the value belongs to, when known
        reason: Human-readable explanation
    """

    code = "PARSE_ERROR"

    def __init__(self, reason: str, offending: str = "", tag_key: Optional[str] = None):
        self.reason = reason
        self.offending = offending
        self.tag_key = tag_key
        super().__init__(self._format())

    def _format(self) -> str:
        message = self.reason
        if self.offending:
            message = f"{message}: '{self.offending}'"
        if self.tag_key:
            message = f"{self.tag_key}: {message}"
        return message

    def with_tag_key(self, tag_key: str) -> "ParseError":
        """Attach the tag key after the fact and refresh the message."""
        self.tag_key = tag_key
        self.args = (self._format(),)
        return self


class EmptyTagValueError(ParseError):
    code = "EMPTY_TAG_VALUE"


class MissingAtSignError(ParseError):
    code = "MISSING_AT_SIGN"


class MissingValueError(ParseError):
    code = "MISSING_VALUE"


class UnbalancedParenthesesError(ParseError):
    code = "UNBALANCED_PARENTHESES"


class EmptyConditionError(ParseError):
    code = "EMPTY_CONDITION"


class UnknownDayError(ParseError):
    code = "UNKNOWN_DAY"


class UnknownMonthError(ParseError):
    code = "UNKNOWN_MONTH"


class InvalidTimeError(ParseError):
    code = "INVALID_TIME"


class InvalidNumberError(ParseError):
    code = "INVALID_NUMBER"


class InvalidOperatorError(ParseError):
    code = "INVALID_OPERATOR"


class DuplicateComparisonError(ParseError):
    code = "DUPLICATE_COMPARISON"


class UnsupportedConditionError(ParseError):
    code = "UNSUPPORTED_CONDITION"


class UnknownVehicleProfileError(ConditionalRestrictionError, ValueError):
    """Raised when a vehicle profile identifier is not recognised."""

    def __init__(self, identifier: str, available: list[str]):
        self.identifier = identifier
        self.available = available
        super().__init__(
            f"Unknown vehicle profile '{identifier}'. Available: {', '.join(available)}"
        )


@dataclass(frozen=True)
class ValidationResult:
    """Non-raising outcome of validating one conditional tag."""

    is_valid: bool
    message: str
    error_code: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "message": self.message,
            "error_code": self.error_code,
        }
