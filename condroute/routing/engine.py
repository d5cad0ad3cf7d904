"""
Conditional Router
==================

Time- and vehicle-aware routing over a frozen RoutingGraph.

Key Design Principles:
1. The published graph is IMMUTABLE; ``rebuild`` builds a replacement off to
   the side and swaps the reference under a lock
2. Edge costs are computed on demand per query, never stored on the graph
3. Queries capture the current graph once, so a concurrent rebuild never
   exposes a half-built graph
4. Searches accept a SearchBudget and return their best partial answer on
   exhaustion instead of raising
"""

from dataclasses import dataclass, field
from datetime import datetime
import heapq
import itertools
import math
import threading
from typing import Any, Iterable, Mapping, Optional, Union

from loguru import logger

from condroute.core.budget import SearchBudget, start_budget
from condroute.core.compiler import ParseIssue, RestrictionIndex, compile_restrictions
from condroute.core.mapper import OnewayDirection, TagMapper
from condroute.core.schema import (
    EntityId,
    MapEntity,
    NodeId,
    OnewayEffect,
    Restriction,
    SpeedEffect,
)
from condroute.routing.cost import active_restrictions, edge_cost
from condroute.routing.graph import GraphEdge, GraphStatistics, RoutingGraph, build_graph
from condroute.routing.policy import RoutingPolicy
from condroute.routing.profile import ProfileLike, get_profile, supported_vehicle_types


@dataclass
class RouteResult:
    """Outcome of a route query."""

    nodes: list[NodeId] = field(default_factory=list)
    ways: list[EntityId] = field(default_factory=list)
    """Traversed way ids, consecutive duplicates collapsed."""
    cost: float = math.inf
    truncated: bool = False
    """True when the search budget ran out; the path is then tentative."""

    @property
    def found(self) -> bool:
        return bool(self.nodes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": list(self.nodes),
            "ways": list(self.ways),
            "cost": self.cost if self.found else None,
            "truncated": self.truncated,
        }


class ConditionalRouter:
    """
    Router honouring conditional restrictions.

    Example
    -------
    >>> router = ConditionalRouter()
    >>> router.rebuild(entities)
    >>> router.shortest_path("N1", "N4", "car", datetime(2023, 10, 16, 10, 0))
    ['N1', 'N2', 'N4']
    """

    def __init__(
        self,
        mapper: Optional[TagMapper] = None,
        policy: Optional[RoutingPolicy] = None,
    ):
        """
        Initialize an empty router.

        Parameters
        ----------
        mapper : TagMapper, optional
            Highway category configuration used for graph builds
        policy : RoutingPolicy, optional
            Cost and topology policy
        """
        self.mapper = mapper or TagMapper()
        self.policy = policy or RoutingPolicy()
        self._lock = threading.Lock()
        self._graph = RoutingGraph.empty()
        self._parse_issues: list[ParseIssue] = []

    @property
    def graph(self) -> RoutingGraph:
        """The currently published graph snapshot."""
        with self._lock:
            return self._graph

    @property
    def parse_issues(self) -> list[ParseIssue]:
        """Tags that failed to compile during the last rebuild."""
        with self._lock:
            return list(self._parse_issues)

    # =========================================================================
    # Graph lifecycle
    # =========================================================================

    def rebuild(
        self,
        entities: Optional[Iterable[MapEntity]],
        restrictions: Optional[Union[RestrictionIndex, Mapping[EntityId, Iterable[Restriction]]]] = None,
    ) -> GraphStatistics:
        """
        Build a new graph and publish it atomically.

        Parameters
        ----------
        entities : iterable of MapEntity, optional
            Ways to route over. None clears the graph.
        restrictions : RestrictionIndex or mapping, optional
            Precompiled restrictions by entity id. When omitted they are
            compiled from the entities' conditional tags.

        Returns
        -------
        GraphStatistics
        """
        entities = list(entities or ())
        issues: list[ParseIssue] = []

        if restrictions is None:
            index = compile_restrictions(entities)
            by_entity: Mapping[EntityId, Iterable[Restriction]] = index.by_entity
            issues = index.issues
        elif isinstance(restrictions, RestrictionIndex):
            by_entity = restrictions.by_entity
            issues = list(restrictions.issues)
        else:
            by_entity = restrictions

        graph = build_graph(entities, by_entity, self.mapper, self.policy)

        with self._lock:
            self._graph = graph
            self._parse_issues = issues

        logger.info(f"[Router] Published graph: {graph.statistics.to_dict()}")
        return graph.statistics

    def clear(self) -> None:
        """Publish an empty graph."""
        with self._lock:
            self._graph = RoutingGraph.empty()
            self._parse_issues = []
        logger.info("[Router] Cleared graph")

    # =========================================================================
    # Cost & search
    # =========================================================================

    def edge_cost(
        self,
        edge: GraphEdge,
        profile: ProfileLike,
        at: datetime,
        custom_weight: Optional[float] = None,
        custom_height: Optional[float] = None,
    ) -> float:
        """Cost of one edge under this router's policy."""
        return edge_cost(edge, profile, at, custom_weight, custom_height, self.policy)

    def route(
        self,
        start: NodeId,
        end: NodeId,
        profile: ProfileLike,
        at: datetime,
        weight: Optional[float] = None,
        height: Optional[float] = None,
        budget: Optional[SearchBudget] = None,
    ) -> RouteResult:
        """
        Cheapest path between two nodes.

        Dijkstra with a heap frontier keyed by (cost, insertion order).
        Impassable edges are never enqueued.

        Parameters
        ----------
        start, end : node id
            Endpoints
        profile : VehicleProfile or str
            Vehicle profile or identifier
        at : datetime
            Local departure time, used for every edge
        weight, height : float, optional
            Override the profile's default dimensions
        budget : SearchBudget, optional
            Expansion/time cutoff

        Returns
        -------
        RouteResult
            Empty when start == end, an endpoint is unknown, or no finite
            path exists. On budget exhaustion, the tentative path to ``end``
            if one was reached, flagged ``truncated``.
        """
        graph = self.graph
        profile = get_profile(profile)

        if start == end or not graph.has_node(start) or not graph.has_node(end):
            return RouteResult()

        counter = itertools.count()
        best: dict[NodeId, float] = {start: 0.0}
        previous: dict[NodeId, GraphEdge] = {}
        settled: set[NodeId] = set()
        frontier: list[tuple[float, int, NodeId]] = [(0.0, next(counter), start)]
        tracker = start_budget(budget)
        truncated = False

        while frontier:
            cost, _, node = heapq.heappop(frontier)
            if node in settled:
                continue
            if node == end:
                break
            settled.add(node)

            if tracker is not None and tracker.step():
                truncated = True
                logger.warning(
                    f"[Router] Search budget exhausted after {tracker.steps - 1} expansions "
                    f"({start} -> {end})"
                )
                break

            for edge in graph.out_edges(node):
                if edge.target in settled:
                    continue
                step = edge_cost(edge, profile, at, weight, height, self.policy)
                if math.isinf(step):
                    continue
                candidate = cost + step
                if candidate < best.get(edge.target, math.inf):
                    best[edge.target] = candidate
                    previous[edge.target] = edge
                    heapq.heappush(frontier, (candidate, next(counter), edge.target))

        if end not in previous:
            logger.debug(f"[Router] No {profile.name} path {start} -> {end} at {at.isoformat()}")
            return RouteResult(truncated=truncated)

        path_edges: list[GraphEdge] = []
        node = end
        while node != start:
            edge = previous[node]
            path_edges.append(edge)
            node = edge.source
        path_edges.reverse()

        ways: list[EntityId] = []
        for edge in path_edges:
            if not ways or ways[-1] != edge.entity_id:
                ways.append(edge.entity_id)

        result = RouteResult(
            nodes=[start] + [edge.target for edge in path_edges],
            ways=ways,
            cost=best[end],
            truncated=truncated,
        )
        logger.debug(
            f"[Router] {profile.name} path {start} -> {end}: "
            f"{len(result.nodes)} nodes, cost {result.cost:.2f}"
        )
        return result

    def shortest_path(
        self,
        start: NodeId,
        end: NodeId,
        profile: ProfileLike,
        at: datetime,
        weight: Optional[float] = None,
        height: Optional[float] = None,
        budget: Optional[SearchBudget] = None,
    ) -> list[NodeId]:
        """Node ids of the cheapest path, or [] if there is none."""
        return self.route(start, end, profile, at, weight, height, budget).nodes

    def find_route(
        self,
        start: NodeId,
        end: NodeId,
        profile: ProfileLike,
        at: datetime,
        weight: Optional[float] = None,
        height: Optional[float] = None,
        budget: Optional[SearchBudget] = None,
    ) -> list[EntityId]:
        """Way ids along the cheapest path, or [] if there is none."""
        return self.route(start, end, profile, at, weight, height, budget).ways

    # =========================================================================
    # Restriction queries
    # =========================================================================

    def affected_edges(
        self,
        profile: ProfileLike,
        at: datetime,
        weight: Optional[float] = None,
        height: Optional[float] = None,
        budget: Optional[SearchBudget] = None,
    ) -> list[GraphEdge]:
        """
        Edges with at least one restriction in force for the vehicle at ``at``.

        The result is a duplicate-free list in graph edge order (ascending
        ``edge_id``), so repeated calls compare equal. On budget exhaustion,
        the edges found so far.
        """
        graph = self.graph
        profile = get_profile(profile)
        weight = weight if weight is not None else profile.default_weight
        height = height if height is not None else profile.default_height
        tracker = start_budget(budget)

        affected: list[GraphEdge] = []
        for edge in graph.edges:
            if tracker is not None and tracker.step():
                logger.warning(
                    f"[Router] Scan budget exhausted after {len(affected)} affected edges"
                )
                break
            if edge.restrictions and active_restrictions(edge.restrictions, at, weight, height):
                affected.append(edge)
        return affected

    def affected_ways(
        self,
        profile: ProfileLike,
        at: datetime,
        weight: Optional[float] = None,
        height: Optional[float] = None,
        budget: Optional[SearchBudget] = None,
    ) -> set[EntityId]:
        """Ids of ways owning at least one affected edge."""
        return {
            edge.entity_id
            for edge in self.affected_edges(profile, at, weight, height, budget)
        }

    def is_way_accessible(
        self,
        way_id: EntityId,
        profile: ProfileLike,
        at: datetime,
        weight: Optional[float] = None,
        height: Optional[float] = None,
    ) -> bool:
        """True if any edge of the way has a finite cost. Unknown ways are not accessible."""
        profile = get_profile(profile)
        return any(
            not math.isinf(edge_cost(edge, profile, at, weight, height, self.policy))
            for edge in self.graph.edges_for_entity(way_id)
        )

    def effective_max_speed(
        self,
        way_id: EntityId,
        at: datetime,
        profile: Optional[ProfileLike] = None,
    ) -> Optional[float]:
        """
        Speed limit in force on a way at ``at``.

        The static ``maxspeed`` (or category default) lowered by any active
        conditional speed limit. With a profile, only restrictions applying to
        its default dimensions count. None for unknown ways.
        """
        graph = self.graph
        entity = graph.entity(way_id)
        if entity is None:
            return None

        weight = height = None
        if profile is not None:
            resolved = get_profile(profile)
            weight, height = resolved.default_weight, resolved.default_height

        speed = self.mapper.normalize_attributes(entity.tags).max_speed_kmh
        edges = graph.edges_for_entity(way_id)
        for restriction in active_restrictions(edges[0].restrictions, at, weight, height):
            effect = restriction.effect
            if isinstance(effect, SpeedEffect) and effect.limit_kmh is not None:
                speed = min(speed, effect.limit_kmh)
        return speed

    def is_way_oneway(self, way_id: EntityId, at: datetime) -> bool:
        """
        Whether a way is one-way at ``at``.

        An active conditional oneway overrides the static ``oneway`` tag.
        """
        graph = self.graph
        entity = graph.entity(way_id)
        if entity is None:
            return False

        direction = self.mapper.normalize_attributes(entity.tags).direction
        edges = graph.edges_for_entity(way_id)
        for restriction in active_restrictions(edges[0].restrictions, at, None, None):
            effect = restriction.effect
            if isinstance(effect, OnewayEffect):
                direction = effect.direction
                break
        return direction != OnewayDirection.BOTH

    def supported_vehicle_types(self) -> list[str]:
        return supported_vehicle_types()

    def __repr__(self) -> str:
        return f"ConditionalRouter(graph={self.graph!r})"
