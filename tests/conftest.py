"""
Shared fixtures: a four-node square of ways.

    N3 ---w4--- N4
    |           |
    w3          w2
    |           |
    N1 ---w1--- N2

w1/w2 are primary roads (the fast route N1 -> N2 -> N4), w3/w4 residential
(the slow route N1 -> N3 -> N4). Coordinates are lon/lat around (13.0, 52.0),
with neighbours 0.001 degrees apart.
"""

from typing import Callable, Optional

import pytest

from condroute.core.schema import GraphNode, MapEntity


N1 = GraphNode("N1", 13.000, 52.000)
N2 = GraphNode("N2", 13.001, 52.000)
N3 = GraphNode("N3", 13.000, 52.001)
N4 = GraphNode("N4", 13.001, 52.001)

SQUARE_WAYS = {
    "w1": ("primary", [N1, N2]),
    "w2": ("primary", [N2, N4]),
    "w3": ("residential", [N1, N3]),
    "w4": ("residential", [N3, N4]),
}



def make_square(extra_tags: Optional[dict[str, dict[str, str]]] = None) -> list[MapEntity]:
    """Build the square, merging ``extra_tags[way_id]`` into that way's tags."""
    extra_tags = extra_tags or {}
    entities = []
    for way_id, (highway, nodes) in SQUARE_WAYS.items():
        tags = {"highway": highway}
        tags.update(extra_tags.get(way_id, {}))
        entities.append(MapEntity(id=way_id, tags=tags, nodes=list(nodes)))
    return entities


@pytest.fixture
def square() -> Callable[..., list[MapEntity]]:
    """Factory for square datasets with extra tags per way."""
    return make_square
