"""Prerequisite dependency graph over the static content table.

The graph is built once per content load. Cycle detection runs at build
time: every item on a cycle is recorded in ``cyclic`` and every item that
(transitively) depends on one is recorded in ``blocked``. Both sets are
treated as unsatisfiable by the validation service, so later queries never
have to guard against unbounded recursion.

Synthetic prerequisites (``hero_level_N``, ``farm_stage_N``) are leaves and
are not graph nodes.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from balance_sim.errors import ContentError
from balance_sim.models.content import ContentTable

logger = logging.getLogger(__name__)

GRAPH_CACHE_SECONDS = 300.0


@dataclass
class GraphNode:
    """A content item in the dependency graph.

    Attributes:
        item_id: Content id
        prerequisites: Content ids this item requires (synthetic tokens excluded)
        dependents: Content ids that require this item
        depth: Longest prerequisite chain below this item (0 for roots)
    """

    item_id: str
    prerequisites: list[str] = field(default_factory=list)
    dependents: list[str] = field(default_factory=list)
    depth: int = 0


class PrerequisiteGraph:
    """DAG of item dependencies with cycle reporting."""

    def __init__(self, content: ContentTable):
        self.content = content
        self.nodes: dict[str, GraphNode] = {}
        self.cyclic: set[str] = set()
        self.blocked: set[str] = set()
        self.cycles: list[list[str]] = []
        self._build()

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    def _build(self) -> None:
        for item in self.content:
            self.nodes[item.id] = GraphNode(
                item_id=item.id,
                prerequisites=[p for p in item.required_ids if p in self.content],
            )
        for node in self.nodes.values():
            for prereq in node.prerequisites:
                self.nodes[prereq].dependents.append(node.item_id)

        self._detect_cycles()
        self._mark_blocked()
        self._compute_depths()

        if self.cycles:
            for cycle in self.cycles:
                logger.warning(f"Prerequisite cycle detected among: {', '.join(cycle)}")

    def _detect_cycles(self) -> None:
        """Tarjan's strongly connected components, run iteratively.

        Every member of a component with more than one node is cyclic, as is
        any node that lists itself as a prerequisite.
        """
        index: dict[str, int] = {}
        lowlink: dict[str, int] = {}
        stack: list[str] = []
        on_stack: set[str] = set()
        order = {item_id: i for i, item_id in enumerate(self.nodes)}

        for root in self.nodes:
            if root in index:
                continue
            # Each frame is (node id, iterator over its prerequisites)
            frames = [(root, iter(self.nodes[root].prerequisites))]
            index[root] = lowlink[root] = len(index)
            stack.append(root)
            on_stack.add(root)
            while frames:
                node_id, children = frames[-1]
                child = next(children, None)
                if child is not None:
                    if child not in index:
                        index[child] = lowlink[child] = len(index)
                        stack.append(child)
                        on_stack.add(child)
                        frames.append((child, iter(self.nodes[child].prerequisites)))
                    elif child in on_stack:
                        lowlink[node_id] = min(lowlink[node_id], index[child])
                    continue

                frames.pop()
                if frames:
                    parent = frames[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node_id])
                if lowlink[node_id] != index[node_id]:
                    continue
                component: list[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node_id:
                        break
                if len(component) > 1 or node_id in self.nodes[node_id].prerequisites:
                    component.sort(key=order.__getitem__)
                    self.cycles.append(component)
                    self.cyclic.update(component)

        self.cycles.sort(key=lambda members: order[members[0]])

    def _mark_blocked(self) -> None:
        """Every dependent of a cyclic node is blocked."""
        queue = deque(self.cyclic)
        while queue:
            node_id = queue.popleft()
            for dependent in self.nodes[node_id].dependents:
                if dependent not in self.cyclic and dependent not in self.blocked:
                    self.blocked.add(dependent)
                    queue.append(dependent)

    def _compute_depths(self) -> None:
        memo: dict[str, int] = {}

        def depth_of(node_id: str) -> int:
            # Iterative post-order so deep chains cannot hit the recursion limit
            stack = [(node_id, False)]
            while stack:
                current, expanded = stack.pop()
                if current in memo:
                    continue
                prereqs = [
                    p for p in self.nodes[current].prerequisites if self.is_satisfiable(p)
                ]
                if expanded:
                    memo[current] = 1 + max((memo[p] for p in prereqs), default=-1)
                    continue
                stack.append((current, True))
                stack.extend((p, False) for p in prereqs if p not in memo)
            return memo[node_id]

        for node_id, node in self.nodes.items():
            node.depth = depth_of(node_id) if self.is_satisfiable(node_id) else -1

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_satisfiable(self, item_id: str) -> bool:
        """False for items on or behind a cycle."""
        return item_id not in self.cyclic and item_id not in self.blocked

    def dependents(self, item_id: str) -> list[str]:
        node = self.nodes.get(item_id)
        return list(node.dependents) if node else []

    def depth(self, item_id: str) -> int:
        node = self.nodes.get(item_id)
        return node.depth if node else 0

    def all_prerequisites(self, item_id: str) -> set[str]:
        """Transitive content prerequisites of ``item_id``.

        Safe on cyclic input: each node is expanded at most once.
        """
        seen: set[str] = set()
        node = self.nodes.get(item_id)
        if node is None:
            return seen
        queue = deque(node.prerequisites)
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self.nodes[current].prerequisites)
        seen.discard(item_id)
        return seen

    def find_path(self, start: str, goal: str) -> list[str] | None:
        """Shortest dependency chain from ``start`` down to prerequisite ``goal`` (BFS)."""
        if start not in self.nodes or goal not in self.nodes:
            return None
        parents: dict[str, str | None] = {start: None}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            if current == goal:
                path = []
                step: str | None = current
                while step is not None:
                    path.append(step)
                    step = parents[step]
                return list(reversed(path))
            for prereq in self.nodes[current].prerequisites:
                if prereq not in parents:
                    parents[prereq] = current
                    queue.append(prereq)
        return None

    def check_required(self, required: Iterable[str]) -> None:
        """Abort if a required progression item can never be satisfied.

        Raises:
            ContentError: If a required item is missing, cyclic or blocked
        """
        for item_id in required:
            if item_id not in self.nodes:
                raise ContentError(f"Required item '{item_id}' is not in the content table")
            if item_id in self.cyclic:
                raise ContentError(f"Required item '{item_id}' is on a prerequisite cycle")
            if item_id in self.blocked:
                chains = [
                    self.find_path(item_id, cause)
                    for cause in sorted(self.all_prerequisites(item_id) & self.cyclic)
                ]
                chain = min(chains, key=len)
                raise ContentError(
                    f"Required item '{item_id}' is behind a cycle: {' -> '.join(chain)}"
                )


class GraphCache:
    """Holds built graphs keyed by content table identity.

    Entries expire after ``ttl_seconds`` of monotonic time, or on ``reset()``.
    One cache belongs to one simulation context; it is not process-wide.
    """

    def __init__(self, ttl_seconds: float = GRAPH_CACHE_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._entries: dict[int, tuple[float, PrerequisiteGraph]] = {}

    def get(self, content: ContentTable) -> PrerequisiteGraph:
        key = id(content)
        now = time.monotonic()
        cached = self._entries.get(key)
        if cached is not None and cached[1].content is content and now - cached[0] < self.ttl_seconds:
            return cached[1]
        graph = PrerequisiteGraph(content)
        self._entries[key] = (now, graph)
        return graph

    def reset(self) -> None:
        self._entries.clear()
