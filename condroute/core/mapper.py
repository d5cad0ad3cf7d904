"""
Tag Mapper
==========

Configuration-driven converter from OSM way tags to routing attributes.

The mapper decides whether a way is routable, which speed factor divides its
length into a base traversal cost, which default speed applies when no
``maxspeed`` is tagged, and in which direction(s) it may be traversed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
import json
from pathlib import Path


class OnewayDirection(str, Enum):
    """Permitted travel direction relative to the way's node order."""

    BOTH = "both"
    FORWARD = "forward"
    REVERSE = "reverse"


ONEWAY_FORWARD_VALUES = frozenset({"yes", "true", "1"})
ONEWAY_REVERSE_VALUES = frozenset({"-1", "reverse"})

MPH_TO_KMH = 1.60934


def parse_oneway(value: Optional[str]) -> OnewayDirection:
    """Map an ``oneway`` tag value to a direction. Unknown values mean BOTH."""
    if value is None:
        return OnewayDirection.BOTH

    normalized = str(value).strip().lower()
    if normalized in ONEWAY_FORWARD_VALUES:
        return OnewayDirection.FORWARD
    if normalized in ONEWAY_REVERSE_VALUES:
        return OnewayDirection.REVERSE
    return OnewayDirection.BOTH


def parse_speed_kmh(value: Any) -> Optional[float]:
    """
    Parse a ``maxspeed`` style value into km/h.

    Handles formats like "60", "60 km/h", "60kmh" and "40 mph". Returns None
    for anything that is not a positive number.
    """
    if value is None:
        return None

    try:
        speed_str = str(value).lower().strip()
        speed_str = speed_str.replace("km/h", "").replace("kmh", "").replace("kph", "").strip()
        if "mph" in speed_str:
            speed_str = speed_str.replace("mph", "").strip()
            speed = float(speed_str) * MPH_TO_KMH
        else:
            speed = float(speed_str)
    except (ValueError, TypeError):
        return None

    if speed <= 0:
        return None
    return speed


@dataclass
class WayAttributes:
    """
    Routing attributes resolved for one way.

    These are the inputs of the graph builder: a routable flag, the divisor
    for the base cost, the speed used when nothing else is known, and the
    permitted direction.
    """

    category: Optional[str] = None
    """Value of the ``highway`` tag."""

    routable: bool = False
    """Whether the way contributes edges to the routing graph."""

    speed_factor: float = 1.0
    """Divisor applied to the segment length to get base cost."""

    max_speed_kmh: float = 50.0
    """Tagged ``maxspeed`` or the category default."""

    direction: OnewayDirection = OnewayDirection.BOTH
    """Statically tagged travel direction."""

    tags: dict[str, Any] = field(default_factory=dict)
    """Tags preserved from the source data."""

    @property
    def bidirectional(self) -> bool:
        return self.direction == OnewayDirection.BOTH


# Default configuration for OSM highway categories
DEFAULT_HIGHWAY_CONFIG: dict[str, dict[str, Any]] = {
    "motorway": {"speed_factor": 4.0, "max_speed_kmh": 120},
    "trunk": {"speed_factor": 3.5, "max_speed_kmh": 100},
    "primary": {"speed_factor": 3.0, "max_speed_kmh": 80},
    "secondary": {"speed_factor": 2.5, "max_speed_kmh": 60},
    "tertiary": {"speed_factor": 2.0, "max_speed_kmh": 50},
    "residential": {"speed_factor": 1.5, "max_speed_kmh": 30},
    "service": {"speed_factor": 1.2, "max_speed_kmh": 20},
    "footway": {"speed_factor": 0.8, "max_speed_kmh": 5},
    "path": {"speed_factor": 0.8, "max_speed_kmh": 5},
}

DEFAULT_EXCLUDED_CATEGORIES: frozenset[str] = frozenset(
    {"proposed", "construction", "abandoned", "razed"}
)

DEFAULT_SPEED_FACTOR = 1.0
DEFAULT_MAX_SPEED_KMH = 50.0


class TagMapper:
    """
    Maps raw OSM way tags to routing attributes.

    Example
    -------
    >>> mapper = TagMapper()
    >>> attrs = mapper.normalize_attributes({"highway": "primary", "oneway": "yes"})
    >>> attrs.speed_factor, attrs.bidirectional
    (3.0, False)
    """

    def __init__(
        self,
        config: Optional[dict[str, Any]] = None,
        excluded_categories: Optional[frozenset[str]] = None,
    ):
        """
        Initialize the mapper with configuration.

        Parameters
        ----------
        config : dict, optional
            ``{"highway": {category: {"speed_factor": ..., "max_speed_kmh": ...}}}``.
            If None, uses DEFAULT_HIGHWAY_CONFIG.
        excluded_categories : frozenset, optional
            Categories that never produce edges. Overrides any
            ``"excluded_categories"`` list in ``config``.
        """
        if config is None:
            self.config = {"highway": DEFAULT_HIGHWAY_CONFIG}
        else:
            self.config = config

        if excluded_categories is None:
            excluded_categories = frozenset(
                self.config.get("excluded_categories", DEFAULT_EXCLUDED_CATEGORIES)
            )
        self.excluded_categories = excluded_categories

    @classmethod
    def from_json_file(cls, path: Path | str) -> "TagMapper":
        """Load configuration from a JSON file."""
        with open(path) as f:
            config = json.load(f)
        return cls(config)

    def category_config(self, category: Optional[str]) -> dict[str, Any]:
        """Configuration block for a highway category ({} if unknown)."""
        if category is None:
            return {}
        return self.config.get("highway", {}).get(category, {})

    def is_routable(self, tags: dict[str, Any]) -> bool:
        """A way is routable when it has a highway category that is not excluded."""
        category = tags.get("highway")
        return bool(category) and category not in self.excluded_categories

    def speed_factor(self, category: Optional[str]) -> float:
        return float(self.category_config(category).get("speed_factor", DEFAULT_SPEED_FACTOR))

    def normalize_attributes(self, osm_tags: dict[str, Any]) -> WayAttributes:
        """
        Convert OSM tags to routing attributes.

        Parameters
        ----------
        osm_tags : dict
            Raw OSM tags (e.g., {"highway": "primary", "maxspeed": "60"})

        Returns
        -------
        WayAttributes
            Normalized attributes for graph building
        """
        category = osm_tags.get("highway")
        category_config = self.category_config(category)

        attrs = WayAttributes(
            category=category,
            routable=self.is_routable(osm_tags),
            speed_factor=float(category_config.get("speed_factor", DEFAULT_SPEED_FACTOR)),
            max_speed_kmh=float(category_config.get("max_speed_kmh", DEFAULT_MAX_SPEED_KMH)),
        )

        # Override max speed if explicitly set
        tagged_speed = parse_speed_kmh(osm_tags.get("maxspeed"))
        if tagged_speed is not None:
            attrs.max_speed_kmh = tagged_speed

        attrs.direction = parse_oneway(osm_tags.get("oneway"))

        # Preserve original tags
        attrs.tags = dict(osm_tags)

        return attrs
