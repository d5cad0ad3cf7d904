"""
Condroute Routing Package
=========================

Routing graph construction and time/vehicle-aware shortest paths.
"""

from condroute.routing.profile import (
    VehicleType,
    VehicleProfile,
    PROFILES,
    get_profile,
    supported_vehicle_types,
)
from condroute.routing.policy import RoutingPolicy
from condroute.routing.graph import (
    GraphEdge,
    GraphStatistics,
    RoutingGraph,
    build_graph,
    haversine_m,
)
from condroute.routing.cost import edge_cost, IMPASSABLE
from condroute.routing.engine import (
    ConditionalRouter,
    RouteResult,
    SearchBudget,
)

__all__ = [
    # Profile
    "VehicleType",
    "VehicleProfile",
    "PROFILES",
    "get_profile",
    "supported_vehicle_types",
    # Policy
    "RoutingPolicy",
    # Graph
    "GraphEdge",
    "GraphStatistics",
    "RoutingGraph",
    "build_graph",
    "haversine_m",
    # Cost
    "edge_cost",
    "IMPASSABLE",
    # Engine
    "ConditionalRouter",
    "RouteResult",
    "SearchBudget",
]
