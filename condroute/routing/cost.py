"""
Edge Cost Evaluation
====================

Computes the traversal cost of one edge for a vehicle at a moment in time.

Rules, applied to every restriction that is active at the query time and
applies to the vehicle's dimensions:
- access denial matching the vehicle: impassable
- conditional oneway against the edge direction: impassable
- speed limit: lowers the speed ceiling; a ceiling below the profile's
  typical speed scales cost by ``profile_speed / ceiling``
- any other restriction with value "no": ``policy.other_penalty_factor``

An impassable result (``math.inf``) wins regardless of restriction order.
"""

from datetime import datetime
import math
from typing import Optional

from condroute.core.mapper import OnewayDirection
from condroute.core.schema import (
    AccessEffect,
    OnewayEffect,
    OtherEffect,
    Restriction,
    SpeedEffect,
)
from condroute.routing.graph import GraphEdge
from condroute.routing.policy import RoutingPolicy
from condroute.routing.profile import ProfileLike, VehicleProfile, VehicleType, get_profile


IMPASSABLE = math.inf

GENERIC_ACCESS_SUBJECTS = frozenset({"access", "vehicle"})

# Mode tags that also address a profile besides its own osm_tag
EXTRA_SUBJECTS: dict[str, frozenset[VehicleType]] = {
    "motorcar": frozenset({VehicleType.CAR}),
    "psv": frozenset({VehicleType.BUS}),
}

DEFAULT_POLICY = RoutingPolicy()


def access_applies(subject: str, profile: VehicleProfile) -> bool:
    """Whether an access tag subject addresses the given vehicle profile."""
    if subject == profile.osm_tag or subject in GENERIC_ACCESS_SUBJECTS:
        return True
    if subject == "motor_vehicle" and profile.motorized:
        return True
    return profile.vehicle_type in EXTRA_SUBJECTS.get(subject, frozenset())


def against_oneway(direction: OnewayDirection, forward: bool) -> bool:
    """Whether travelling an edge in its direction violates a oneway rule."""
    if direction == OnewayDirection.FORWARD:
        return not forward
    if direction == OnewayDirection.REVERSE:
        return forward
    return False


def active_restrictions(
    restrictions: tuple[Restriction, ...],
    at: datetime,
    weight: Optional[float],
    height: Optional[float],
) -> list[Restriction]:
    """Restrictions in force at ``at`` for a vehicle of the given dimensions."""
    return [
        restriction for restriction in restrictions
        if restriction.is_active_at(at) and restriction.applies_to_vehicle(weight, height)
    ]


def edge_cost(
    edge: GraphEdge,
    profile: ProfileLike,
    at: datetime,
    custom_weight: Optional[float] = None,
    custom_height: Optional[float] = None,
    policy: Optional[RoutingPolicy] = None,
) -> float:
    """
    Cost of traversing an edge.

    Parameters
    ----------
    edge : GraphEdge
        Edge to evaluate
    profile : VehicleProfile or str
        Vehicle profile or identifier
    at : datetime
        Local query time
    custom_weight, custom_height : float, optional
        Override the profile's default dimensions
    policy : RoutingPolicy, optional
        Penalty and blocking configuration

    Returns
    -------
    float
        Non-negative cost, or ``math.inf`` when the edge is impassable.
    """
    profile = get_profile(profile)
    policy = policy or DEFAULT_POLICY

    weight = custom_weight if custom_weight is not None else profile.default_weight
    height = custom_height if custom_height is not None else profile.default_height

    cost = edge.base_cost
    speed_ceiling: Optional[float] = None

    for restriction in active_restrictions(edge.restrictions, at, weight, height):
        effect = restriction.effect

        if isinstance(effect, AccessEffect):
            if effect.value in policy.blocking_values and access_applies(effect.subject, profile):
                return IMPASSABLE

        elif isinstance(effect, OnewayEffect):
            if (
                profile.vehicle_type not in policy.oneway_exempt_profiles
                and against_oneway(effect.direction, edge.forward)
            ):
                return IMPASSABLE

        elif isinstance(effect, SpeedEffect):
            if effect.limit_kmh is not None:
                speed_ceiling = (
                    effect.limit_kmh if speed_ceiling is None
                    else min(speed_ceiling, effect.limit_kmh)
                )

        elif isinstance(effect, OtherEffect):
            if effect.value == "no":
                cost *= policy.other_penalty_factor

    if speed_ceiling is not None and speed_ceiling < profile.default_speed_kmh:
        cost *= profile.default_speed_kmh / speed_ceiling

    return cost
