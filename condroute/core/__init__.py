"""
Condroute Core: Conditional Restriction Compiler
================================================

Compiles OSM ``*:conditional`` tag values into immutable, time- and
vehicle-dependent predicates.

Public API:
- parse / validate: Compile or check one conditional tag
- compile_restrictions: Compile a whole dataset, collecting parse issues
- Restriction: Compiled restriction with its effect
- TimeWindow: Day/month/time-of-day predicate
- TagMapper: OSM tag → routing attribute converter
- diagnose_tags: Semantic checks for validator integrations
"""

from condroute.core.temporal import (
    Weekday,
    Month,
    TimeWindow,
    windows_overlap,
    parse_local_datetime,
    common_window,
)
from condroute.core.schema import (
    Comparison,
    ComparisonOperator,
    Restriction,
    RestrictionKind,
    AccessEffect,
    SpeedEffect,
    OnewayEffect,
    OtherEffect,
    GraphNode,
    MapEntity,
)
from condroute.core.budget import SearchBudget
from condroute.core.errors import (
    ConditionalRestrictionError,
    ParseError,
    UnknownVehicleProfileError,
    ValidationResult,
)
from condroute.core.compiler import (
    CONDITIONAL_TAG_KEYS,
    parse,
    validate,
    compile_entity,
    compile_restrictions,
    ParseIssue,
    RestrictionIndex,
)
from condroute.core.mapper import TagMapper, WayAttributes, OnewayDirection
from condroute.core.diagnostics import (
    Diagnostic,
    DiagnosticCode,
    Severity,
    diagnose_tags,
    suggest_fix,
    summarize_restrictions,
    RestrictionSummary,
)

__all__ = [
    # Temporal
    "Weekday",
    "Month",
    "TimeWindow",
    "windows_overlap",
    "parse_local_datetime",
    "common_window",
    # Schema
    "Comparison",
    "ComparisonOperator",
    "Restriction",
    "RestrictionKind",
    "AccessEffect",
    "SpeedEffect",
    "OnewayEffect",
    "OtherEffect",
    "GraphNode",
    "MapEntity",
    # Budget
    "SearchBudget",
    # Errors
    "ConditionalRestrictionError",
    "ParseError",
    "UnknownVehicleProfileError",
    "ValidationResult",
    # Compiler
    "CONDITIONAL_TAG_KEYS",
    "parse",
    "validate",
    "compile_entity",
    "compile_restrictions",
    "ParseIssue",
    "RestrictionIndex",
    # Mapper
    "TagMapper",
    "WayAttributes",
    "OnewayDirection",
    # Diagnostics
    "Diagnostic",
    "DiagnosticCode",
    "Severity",
    "diagnose_tags",
    "suggest_fix",
    "summarize_restrictions",
    "RestrictionSummary",
]
