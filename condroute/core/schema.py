"""
Restriction Schema
==================

Data models for compiled conditional restrictions and the map entities they
are attached to.

A Restriction is the evaluable unit produced by the condition compiler. Its
evaluation is a pure function of the query time and the vehicle dimensions:
it never looks at graph state and is never mutated after compilation.

Restriction kinds are expressed as a small tagged union of effects, each
carrying only the data its cost rule needs:
- AccessEffect: may deny passage to matching vehicle classes
- SpeedEffect: lowers the speed ceiling
- OnewayEffect: forbids one travel direction
- OtherEffect: anything else (e.g. parking), handled by policy
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from condroute.core.mapper import OnewayDirection, parse_oneway, parse_speed_kmh
from condroute.core.temporal import TimeWindow


CONDITIONAL_SUFFIX = ":conditional"

NodeId = Union[int, str]
EntityId = Union[int, str]


class ComparisonOperator(str, Enum):
    """Operators allowed in weight/height conditions."""

    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="


class Comparison(BaseModel):
    """A numeric vehicle-dimension condition such as ``weight>7.5``."""

    model_config = ConfigDict(frozen=True)

    operator: ComparisonOperator
    value: float = Field(ge=0)

    def holds(self, measured: float) -> bool:
        """Check the comparison against a measured dimension."""
        if self.operator == ComparisonOperator.GT:
            return measured > self.value
        if self.operator == ComparisonOperator.GE:
            return measured >= self.value
        if self.operator == ComparisonOperator.LT:
            return measured < self.value
        return measured <= self.value

    def describe(self, unit: str = "") -> str:
        return f"{self.operator.value} {self.value:g}{unit}"


class RestrictionKind(str, Enum):
    """Routing-relevant category of a restriction."""

    ACCESS = "access"
    SPEED = "speed"
    ONEWAY = "oneway"
    OTHER = "other"


ACCESS_SUBJECTS: frozenset[str] = frozenset({
    "access",
    "vehicle",
    "motor_vehicle",
    "motorcar",
    "motorcycle",
    "hgv",
    "goods",
    "bus",
    "psv",
    "bicycle",
    "foot",
})
"""Base tags whose value grants or denies passage to a vehicle class."""

BLOCKING_VALUES: frozenset[str] = frozenset({"no", "private"})


@dataclass(frozen=True)
class AccessEffect:
    subject: str
    value: str
    kind = RestrictionKind.ACCESS

    @property
    def denied(self) -> bool:
        """True for the default blocking values ``no`` and ``private``."""
        return self.value in BLOCKING_VALUES


@dataclass(frozen=True)
class SpeedEffect:
    limit_kmh: Optional[float]
    kind = RestrictionKind.SPEED


@dataclass(frozen=True)
class OnewayEffect:
    direction: OnewayDirection
    kind = RestrictionKind.ONEWAY


@dataclass(frozen=True)
class OtherEffect:
    subject: str
    value: str
    kind = RestrictionKind.OTHER


RestrictionEffect = Union[AccessEffect, SpeedEffect, OnewayEffect, OtherEffect]


def base_tag(tag_key: str) -> str:
    """Strip the ``:conditional`` suffix: ``"access:conditional"`` -> ``"access"``."""
    if tag_key.endswith(CONDITIONAL_SUFFIX):
        return tag_key[: -len(CONDITIONAL_SUFFIX)]
    return tag_key


class Restriction(BaseModel):
    """
    The compiled result of one conditional tag.

    Example
    -------
    ``access:conditional = no @ (Mo-Fr 07:00-19:00; Sa 08:00-14:00)`` compiles
    to a Restriction with value ``"no"`` and two alternative time windows;
    it is in force whenever either window is.
    """

    model_config = ConfigDict(frozen=True)

    tag_key: str
    """Full tag key, e.g. ``"access:conditional"``."""

    value: str
    """Restriction value, e.g. ``"no"`` or ``"30"``."""

    time_windows: tuple[TimeWindow, ...] = ()
    """Alternative windows. Empty means always in force."""

    weight: Optional[Comparison] = None
    """Vehicle weight condition in tonnes."""

    height: Optional[Comparison] = None
    """Vehicle height condition in metres."""

    raw_value: str = ""
    """Tag value as it was compiled."""

    @property
    def subject_tag(self) -> str:
        """Base tag the restriction constrains (``"access"``, ``"maxspeed"``...)."""
        return base_tag(self.tag_key)

    def is_active_at(self, moment: datetime) -> bool:
        """True if any time window is active, or if there are no windows."""
        if not self.time_windows:
            return True
        return any(window.is_active_at(moment) for window in self.time_windows)

    def applies_to_vehicle(
        self,
        weight: Optional[float] = None,
        height: Optional[float] = None,
    ) -> bool:
        """
        Check the weight/height conditions against a vehicle.

        A condition only excludes the vehicle when the corresponding
        dimension is known and fails the comparison; unknown dimensions
        never block.
        """
        if self.weight is not None and weight is not None and not self.weight.holds(weight):
            return False
        if self.height is not None and height is not None and not self.height.holds(height):
            return False
        return True

    @property
    def effect(self) -> RestrictionEffect:
        """What this restriction does to routing, by subject tag."""
        subject = self.subject_tag.lower()
        value = self.value.strip().lower()

        if subject in ACCESS_SUBJECTS:
            return AccessEffect(subject=subject, value=value)
        if subject == "maxspeed":
            return SpeedEffect(limit_kmh=parse_speed_kmh(value))
        if subject == "oneway":
            return OnewayEffect(direction=parse_oneway(value))
        return OtherEffect(subject=subject, value=value)

    @property
    def kind(self) -> RestrictionKind:
        return self.effect.kind

    def describe(self) -> str:
        """Human-readable summary, e.g. ``"hgv = no when: weight > 7.5t"``."""
        conditions = [window.describe() for window in self.time_windows]
        if self.weight is not None:
            conditions.append(f"weight {self.weight.describe('t')}")
        if self.height is not None:
            conditions.append(f"height {self.height.describe('m')}")

        text = f"{self.subject_tag} = {self.value}"
        if conditions:
            text += " when: " + ", ".join(conditions)
        return text

    def __repr__(self) -> str:
        return (
            f"Restriction({self.tag_key}={self.value!r}, "
            f"windows={len(self.time_windows)}, "
            f"weight={self.weight.describe() if self.weight else None}, "
            f"height={self.height.describe() if self.height else None})"
        )


@dataclass(frozen=True)
class GraphNode:
    """
    A routable point. ``x`` is longitude and ``y`` latitude (OSMnx style),
    or planar coordinates when the euclidean distance metric is used.
    """

    id: NodeId
    x: float
    y: float


class MapEntity(BaseModel):
    """
    A tagged polyline (OSM way) as supplied by the host document model.

    Example
    -------
    >>> MapEntity(
    ...     id=1,
    ...     tags={"highway": "primary", "access:conditional": "no @ (Mo-Fr 07:00-19:00)"},
    ...     nodes=[GraphNode(1, 13.0, 52.0), GraphNode(2, 13.0, 52.001)],
    ... )
    """

    id: EntityId
    tags: dict[str, str] = Field(default_factory=dict)
    nodes: list[GraphNode] = Field(default_factory=list)

    @property
    def category(self) -> Optional[str]:
        """Value of the ``highway`` tag."""
        return self.tags.get("highway")

    def conditional_tags(self) -> dict[str, str]:
        """All ``*:conditional`` tags of this entity."""
        return {
            key: value for key, value in self.tags.items()
            if key.endswith(CONDITIONAL_SUFFIX)
        }
