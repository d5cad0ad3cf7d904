"""
Routing Policy
==============

Tunable knobs of graph building and edge costing, validated with pydantic.
"""

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from condroute.routing.profile import VehicleType


class RoutingPolicy(BaseModel):
    """
    Cost and topology policy shared by the graph builder and the router.

    Example
    -------
    >>> policy = RoutingPolicy(other_penalty_factor=2.0, distance_metric="euclidean")
    """

    model_config = ConfigDict(frozen=True)

    other_penalty_factor: float = Field(default=1.5, gt=0)
    """
    Cost multiplier for an active restriction of an unmodelled kind whose
    value is "no" (e.g. ``parking:conditional``). An approximation: such
    restrictions do not forbid passage, they only make the way less
    attractive.
    """

    blocking_values: frozenset[str] = frozenset({"no", "private"})
    """Access values that make a way impassable for matching vehicles."""

    distance_metric: Literal["haversine", "euclidean"] = "haversine"
    """Haversine metres on lon/lat nodes, or planar distance on x/y nodes."""

    oneway_exempt_profiles: frozenset[VehicleType] = frozenset({VehicleType.PEDESTRIAN})
    """Profiles that ignore conditional oneway restrictions."""

    @field_validator("blocking_values")
    @classmethod
    def _normalize_blocking_values(cls, values: frozenset[str]) -> frozenset[str]:
        return frozenset(value.strip().lower() for value in values)

    @classmethod
    def from_json_file(cls, path: Path | str) -> "RoutingPolicy":
        """Load a policy from a JSON file; missing keys keep their defaults."""
        with open(path) as f:
            return cls.model_validate(json.load(f))
