"""
Vehicle Profiles
================

Named vehicle classes used to evaluate restrictions and edge costs.

Each profile carries the OSM mode tag it answers to (``hgv``, ``bicycle``...),
default dimensions used when a query does not override them, and a typical
travel speed used to scale speed-limit penalties.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from condroute.core.errors import UnknownVehicleProfileError


class VehicleType(str, Enum):
    """Supported vehicle classes."""

    PEDESTRIAN = "pedestrian"
    BICYCLE = "bicycle"
    CAR = "car"
    MOTORCYCLE = "motorcycle"
    BUS = "bus"
    HGV = "hgv"
    """Heavy goods vehicle."""
    DELIVERY = "delivery"
    """Light goods vehicle (OSM ``goods``)."""


@dataclass(frozen=True)
class VehicleProfile:
    """
    Static description of a vehicle class.

    Attributes
    ----------
    vehicle_type : VehicleType
        Profile identity
    osm_tag : str
        OSM access key matching this class (e.g. "hgv", "motor_vehicle")
    default_weight : float
        Weight in tonnes when the query gives none
    default_height : float
        Height in metres when the query gives none
    default_speed_kmh : float
        Typical travel speed
    motorized : bool
        Whether ``motor_vehicle`` restrictions apply
    """

    vehicle_type: VehicleType
    osm_tag: str
    default_weight: float
    default_height: float
    default_speed_kmh: float
    motorized: bool

    @property
    def name(self) -> str:
        return self.vehicle_type.value

    def __str__(self) -> str:
        return self.name


PROFILES: dict[VehicleType, VehicleProfile] = {
    VehicleType.PEDESTRIAN: VehicleProfile(VehicleType.PEDESTRIAN, "foot", 0.0, 0.0, 5.0, False),
    VehicleType.BICYCLE: VehicleProfile(VehicleType.BICYCLE, "bicycle", 0.0, 0.0, 15.0, False),
    VehicleType.CAR: VehicleProfile(VehicleType.CAR, "motor_vehicle", 2.0, 1.8, 50.0, True),
    VehicleType.MOTORCYCLE: VehicleProfile(VehicleType.MOTORCYCLE, "motorcycle", 0.3, 1.5, 50.0, True),
    VehicleType.BUS: VehicleProfile(VehicleType.BUS, "bus", 12.0, 3.2, 50.0, True),
    VehicleType.HGV: VehicleProfile(VehicleType.HGV, "hgv", 40.0, 4.0, 80.0, True),
    VehicleType.DELIVERY: VehicleProfile(VehicleType.DELIVERY, "goods", 7.5, 2.5, 50.0, True),
}

PROFILE_ALIASES: dict[str, VehicleType] = {
    "foot": VehicleType.PEDESTRIAN,
    "walk": VehicleType.PEDESTRIAN,
    "walking": VehicleType.PEDESTRIAN,
    "bike": VehicleType.BICYCLE,
    "cycle": VehicleType.BICYCLE,
    "motor_vehicle": VehicleType.CAR,
    "motorcar": VehicleType.CAR,
    "truck": VehicleType.HGV,
    "lorry": VehicleType.HGV,
    "goods": VehicleType.DELIVERY,
    "van": VehicleType.DELIVERY,
}

ProfileLike = Union[VehicleProfile, VehicleType, str]


def get_profile(identifier: ProfileLike) -> VehicleProfile:
    """
    Resolve a profile from a profile, a VehicleType, a name or an alias.

    Raises
    ------
    UnknownVehicleProfileError
        If the identifier matches nothing.
    """
    if isinstance(identifier, VehicleProfile):
        return identifier
    if isinstance(identifier, VehicleType):
        return PROFILES[identifier]

    key = str(identifier).strip().lower()
    try:
        return PROFILES[VehicleType(key)]
    except ValueError:
        pass

    if key in PROFILE_ALIASES:
        return PROFILES[PROFILE_ALIASES[key]]

    raise UnknownVehicleProfileError(str(identifier), supported_vehicle_types())


def supported_vehicle_types() -> list[str]:
    """All identifiers accepted by ``get_profile``, profile names first."""
    return [vehicle_type.value for vehicle_type in VehicleType] + sorted(PROFILE_ALIASES)
