"""
Condroute
=========

OSM conditional restrictions compiled into time- and vehicle-dependent
routing costs.

    >>> from condroute import ConditionalRouter, parse
    >>> parse("access:conditional", "no @ (Mo-Fr 07:00-19:00)").describe()
    'access = no when: Mo-Fr 07:00-19:00'
"""

from condroute.core import (
    CONDITIONAL_TAG_KEYS,
    ConditionalRestrictionError,
    GraphNode,
    MapEntity,
    ParseError,
    Restriction,
    TagMapper,
    TimeWindow,
    ValidationResult,
    compile_restrictions,
    diagnose_tags,
    parse,
    parse_local_datetime,
    validate,
)
from condroute.routing import (
    ConditionalRouter,
    RouteResult,
    RoutingPolicy,
    SearchBudget,
    VehicleProfile,
    VehicleType,
    build_graph,
    edge_cost,
    get_profile,
)

__version__ = "0.1.0"

__all__ = [
    "CONDITIONAL_TAG_KEYS",
    "ConditionalRestrictionError",
    "GraphNode",
    "MapEntity",
    "ParseError",
    "Restriction",
    "TagMapper",
    "TimeWindow",
    "ValidationResult",
    "compile_restrictions",
    "diagnose_tags",
    "parse",
    "parse_local_datetime",
    "validate",
    "ConditionalRouter",
    "RouteResult",
    "RoutingPolicy",
    "SearchBudget",
    "VehicleProfile",
    "VehicleType",
    "build_graph",
    "edge_cost",
    "get_profile",
]
