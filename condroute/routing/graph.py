"""
Routing Graph Builder
=====================

Builds an immutable directed routing graph from tagged ways.

Key Design Principles:
1. One directed edge per consecutive node pair, plus the reverse edge unless
   the way is statically one-way
2. Compiled restrictions are attached to edges by reference, never copied
3. Build-then-freeze: the networkx container is frozen once all edges exist,
   so a RoutingGraph can be shared by concurrent read-only queries
4. Nearest-node lookups use a shapely STRtree
"""

from dataclasses import dataclass
import math
import time
from typing import Any, Iterable, Mapping, Optional

from loguru import logger
import networkx as nx
from shapely import STRtree
from shapely.geometry import Point

from condroute.core.mapper import OnewayDirection, TagMapper
from condroute.core.schema import (
    EntityId,
    GraphNode,
    MapEntity,
    NodeId,
    Restriction,
    SpeedEffect,
)
from condroute.routing.policy import RoutingPolicy


EARTH_RADIUS_M = 6371000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def node_distance(a: GraphNode, b: GraphNode, metric: str = "haversine") -> float:
    """Distance between two nodes under the given metric."""
    if metric == "euclidean":
        return math.hypot(b.x - a.x, b.y - a.y)
    return haversine_m(a.y, a.x, b.y, b.x)


@dataclass(frozen=True, eq=False)
class GraphEdge:
    """
    A directed, traversable segment of one way.

    Edges compare and hash by identity: two segments with identical fields
    are still distinct edges.
    """

    edge_id: int
    source: NodeId
    target: NodeId
    entity_id: EntityId
    base_cost: float
    """Segment length divided by the category speed factor."""
    length_m: float
    restrictions: tuple[Restriction, ...] = ()
    """Restrictions of the owning way, shared with its other edges."""
    bidirectional: bool = True
    """Whether the owning way was statically two-way at build time."""
    forward: bool = True
    """True when the edge follows the way's node order."""

    def __repr__(self) -> str:
        return (
            f"GraphEdge({self.edge_id}: {self.source}->{self.target}, "
            f"way={self.entity_id}, cost={self.base_cost:.2f}, "
            f"restrictions={len(self.restrictions)})"
        )


@dataclass(frozen=True)
class GraphStatistics:
    """Counters recorded while building a graph."""

    node_count: int = 0
    edge_count: int = 0
    way_count: int = 0
    skipped_ways: int = 0
    restricted_edges: int = 0
    build_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "way_count": self.way_count,
            "skipped_ways": self.skipped_ways,
            "restricted_edges": self.restricted_edges,
            "build_time_ms": round(self.build_time_ms, 3),
        }


class RoutingGraph:
    """
    Read-only snapshot of a built routing graph.

    All queries return empty results, never raise, for unknown nodes or ways.
    """

    def __init__(
        self,
        graph: nx.MultiDiGraph,
        edges: tuple[GraphEdge, ...],
        entities: dict[EntityId, MapEntity],
        statistics: GraphStatistics,
    ):
        self._graph = graph
        self._edges = edges
        self._entities = entities
        self._statistics = statistics

        self._edges_by_entity: dict[EntityId, list[GraphEdge]] = {}
        for edge in edges:
            self._edges_by_entity.setdefault(edge.entity_id, []).append(edge)

        self._node_list: list[GraphNode] = [data["node"] for _, data in graph.nodes(data=True)]
        self._node_index: Optional[STRtree] = None
        if self._node_list:
            self._node_index = STRtree([Point(node.x, node.y) for node in self._node_list])

    @classmethod
    def empty(cls) -> "RoutingGraph":
        return cls(nx.freeze(nx.MultiDiGraph()), (), {}, GraphStatistics())

    @property
    def nx_graph(self) -> nx.MultiDiGraph:
        """The frozen networkx container (edge data key ``"edge"``)."""
        return self._graph

    @property
    def statistics(self) -> GraphStatistics:
        return self._statistics

    @property
    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    @property
    def way_count(self) -> int:
        return len(self._edges_by_entity)

    @property
    def nodes(self) -> list[GraphNode]:
        return list(self._node_list)

    @property
    def edges(self) -> tuple[GraphEdge, ...]:
        return self._edges

    def has_node(self, node_id: NodeId) -> bool:
        return node_id in self._graph

    def node(self, node_id: NodeId) -> Optional[GraphNode]:
        if node_id not in self._graph:
            return None
        return self._graph.nodes[node_id]["node"]

    def out_edges(self, node_id: NodeId) -> list[GraphEdge]:
        if node_id not in self._graph:
            return []
        return [data["edge"] for _, _, data in self._graph.out_edges(node_id, data=True)]

    def edges_between(self, source: NodeId, target: NodeId) -> list[GraphEdge]:
        if not self._graph.has_edge(source, target):
            return []
        return [data["edge"] for data in self._graph.get_edge_data(source, target).values()]

    def edges_for_entity(self, entity_id: EntityId) -> list[GraphEdge]:
        return list(self._edges_by_entity.get(entity_id, ()))

    def entity(self, entity_id: EntityId) -> Optional[MapEntity]:
        return self._entities.get(entity_id)

    def nearest_node(self, x: float, y: float) -> Optional[GraphNode]:
        """
        Closest node to a coordinate.

        Distance is planar in coordinate units, which is adequate for
        snapping within a city-sized lon/lat extent.
        """
        if self._node_index is None:
            return None
        index = self._node_index.nearest(Point(x, y))
        if index is None:
            return None
        return self._node_list[int(index)]

    def __repr__(self) -> str:
        return (
            f"RoutingGraph(nodes={self.node_count}, edges={self.edge_count}, "
            f"ways={self.way_count})"
        )


def build_graph(
    entities: Optional[Iterable[MapEntity]],
    restrictions_by_entity: Optional[Mapping[EntityId, Iterable[Restriction]]] = None,
    mapper: Optional[TagMapper] = None,
    policy: Optional[RoutingPolicy] = None,
) -> RoutingGraph:
    """
    Build a routing graph from tagged ways.

    Parameters
    ----------
    entities : iterable of MapEntity, optional
        Ways to convert. None or empty yields an empty graph.
    restrictions_by_entity : mapping, optional
        Compiled restrictions keyed by entity id, attached to every edge of
        that entity. Missing means no restrictions.
    mapper : TagMapper, optional
        Category configuration. Defaults to TagMapper().
    policy : RoutingPolicy, optional
        Supplies the distance metric. Defaults to RoutingPolicy().

    Returns
    -------
    RoutingGraph
        Frozen snapshot.
    """
    started = time.perf_counter()
    mapper = mapper or TagMapper()
    policy = policy or RoutingPolicy()
    restrictions_by_entity = restrictions_by_entity or {}

    graph = nx.MultiDiGraph()
    edges: list[GraphEdge] = []
    entity_map: dict[EntityId, MapEntity] = {}
    skipped = 0
    restricted_edges = 0

    for entity in entities or ():
        if len(entity.nodes) < 2 or not mapper.is_routable(entity.tags):
            skipped += 1
            continue

        attrs = mapper.normalize_attributes(entity.tags)
        restrictions = tuple(restrictions_by_entity.get(entity.id, ()))
        entity_map[entity.id] = entity

        for restriction in restrictions:
            effect = restriction.effect
            if isinstance(effect, SpeedEffect) and effect.limit_kmh is None:
                logger.warning(
                    f"[GraphBuilder] Ignoring unparsable speed '{restriction.value}' "
                    f"in {restriction.tag_key} on way {entity.id}"
                )

        for node in entity.nodes:
            if node.id not in graph:
                graph.add_node(node.id, x=node.x, y=node.y, node=node)

        for a, b in zip(entity.nodes, entity.nodes[1:]):
            length_m = node_distance(a, b, policy.distance_metric)
            base_cost = length_m / attrs.speed_factor

            pairs = []
            if attrs.direction != OnewayDirection.REVERSE:
                pairs.append((a.id, b.id, True))
            if attrs.direction != OnewayDirection.FORWARD:
                pairs.append((b.id, a.id, False))

            for source, target, forward in pairs:
                edge = GraphEdge(
                    edge_id=len(edges),
                    source=source,
                    target=target,
                    entity_id=entity.id,
                    base_cost=base_cost,
                    length_m=length_m,
                    restrictions=restrictions,
                    bidirectional=attrs.bidirectional,
                    forward=forward,
                )
                graph.add_edge(source, target, key=edge.edge_id, edge=edge)
                edges.append(edge)
                if restrictions:
                    restricted_edges += 1

    nx.freeze(graph)

    statistics = GraphStatistics(
        node_count=graph.number_of_nodes(),
        edge_count=len(edges),
        way_count=len(entity_map),
        skipped_ways=skipped,
        restricted_edges=restricted_edges,
        build_time_ms=(time.perf_counter() - started) * 1000.0,
    )
    logger.info(
        f"[GraphBuilder] Built {statistics.node_count} nodes, {statistics.edge_count} edges "
        f"from {statistics.way_count} ways ({skipped} skipped) "
        f"in {statistics.build_time_ms:.1f} ms"
    )
    return RoutingGraph(graph, tuple(edges), entity_map, statistics)
