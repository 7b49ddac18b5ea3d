"""ExecutionPlan - backend-side ordering and validation

Flattens an ExecutionGraph tree into a dependency graph over its leaf
actions and derives a layered execution plan from it.

Ordering sources:
- SEQUENTIAL: child insertion order inside a non-parallel node
- EXPLICIT:   depends_on links between nodes

Nodes tagged NodeKind.PHASE are containers: an empty phase has no actions.

Graph assembly never validates; every backend calls build_execution_plan
before rendering, which is where duplicate nodes, dangling dependencies
and cycles are reported.
"""
from __future__ import annotations
from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple
import logging

from ..errors import GraphValidationError
from .graph import ExecutionGraph, NodeKind

__all__ = [
    'DependencyType',
    'DependencyEdge',
    'DependencyGraph',
    'ExecutionPlan',
    'ExecutionLayer',
    'CyclicDependencyError',
    'MissingDependencyError',
    'DuplicateNodeError',
    'build_execution_plan',
]

_logger = logging.getLogger(__name__)


class DependencyType(Enum):
    SEQUENTIAL = auto()  # sibling insertion order
    EXPLICIT = auto()    # declared with depends_on


@dataclass(frozen=True)
class DependencyEdge:
    """Dependency edge (immutable)

    from_node -> to_node: to_node runs after from_node.
    """
    from_node: str
    to_node: str
    dep_type: DependencyType
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __hash__(self) -> int:
        return hash((self.from_node, self.to_node, self.dep_type))


class CyclicDependencyError(GraphValidationError):
    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(f"cyclic dependency: {' -> '.join(cycle)}")


class MissingDependencyError(GraphValidationError):
    def __init__(self, node: str, missing_deps: List[str]):
        self.node = node
        self.missing_deps = missing_deps
        super().__init__(f"node '{node}' depends on nodes outside the graph: {missing_deps}")


class DuplicateNodeError(GraphValidationError):
    def __init__(self, node: str):
        self.node = node
        super().__init__(f"duplicate node in execution graph: '{node}'")


@dataclass
class ExecutionLayer:
    """Group of plan nodes with no ordering between them."""
    index: int
    nodes: List[str]

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self):
        return iter(self.nodes)


@dataclass
class ExecutionPlan:
    """Layered plan over the leaf actions of an execution graph."""
    layers: List[ExecutionLayer]
    total_nodes: int
    critical_path: List[str] = field(default_factory=list)
    nodes: Dict[str, ExecutionGraph] = field(default_factory=dict)
    graph: Optional['DependencyGraph'] = None

    @property
    def max_parallelism(self) -> int:
        return max(len(layer) for layer in self.layers) if self.layers else 0

    @property
    def depth(self) -> int:
        return len(self.layers)

    def flatten(self) -> List[str]:
        """Sequential order satisfying every dependency."""
        result = []
        for layer in self.layers:
            result.extend(layer.nodes)
        return result

    def predecessors(self, node_id: str) -> List[str]:
        """Direct predecessors of a node, in plan order."""
        if self.graph is None:
            return []
        preds = self.graph.get_predecessors(node_id)
        return [n for n in self.flatten() if n in preds]

    def to_mermaid(self) -> str:
        lines = ['flowchart TD']
        ids = {node_id: f"n{i}" for i, node_id in enumerate(self.flatten())}
        for node_id, short in ids.items():
            lines.append(f'    {short}["{node_id}"]')
        for node_id, short in ids.items():
            for pred in self.predecessors(node_id):
                lines.append(f"    {ids[pred]} --> {short}")
        return '\n'.join(lines) + '\n'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'depth': self.depth,
            'total_nodes': self.total_nodes,
            'max_parallelism': self.max_parallelism,
            'layers': [list(layer.nodes) for layer in self.layers],
            'critical_path': list(self.critical_path),
        }

    def __repr__(self) -> str:
        return f"ExecutionPlan(layers={self.depth}, nodes={self.total_nodes}, max_parallelism={self.max_parallelism})"


class DependencyGraph:
    """Dependency graph over plan node ids

    Insertion order of nodes is remembered and used to order nodes inside
    a layer, so plans are deterministic for identical declarations.

    Not thread-safe.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(__name__)
        self._nodes: Dict[str, int] = {}
        self._successors: Dict[str, Set[str]] = defaultdict(set)
        self._predecessors: Dict[str, Set[str]] = defaultdict(set)
        self._edges: Dict[tuple, DependencyEdge] = {}

    def add_node(self, name: str) -> None:
        self._nodes.setdefault(name, len(self._nodes))

    def add_edge(self, edge: DependencyEdge) -> None:
        self.add_node(edge.from_node)
        self.add_node(edge.to_node)
        self._successors[edge.from_node].add(edge.to_node)
        self._predecessors[edge.to_node].add(edge.from_node)
        self._edges.setdefault((edge.from_node, edge.to_node), edge)

    def add_dependency(self, from_node: str, to_node: str,
                       dep_type: DependencyType = DependencyType.EXPLICIT,
                       metadata: Optional[Dict[str, Any]] = None) -> None:
        self.add_edge(DependencyEdge(
            from_node=from_node,
            to_node=to_node,
            dep_type=dep_type,
            metadata=metadata or {}
        ))

    def get_predecessors(self, node: str) -> FrozenSet[str]:
        return frozenset(self._predecessors.get(node, set()))

    def get_edge(self, from_node: str, to_node: str) -> Optional[DependencyEdge]:
        return self._edges.get((from_node, to_node))

    def _ordered(self, names: Iterable[str]) -> List[str]:
        return sorted(names, key=lambda n: self._nodes[n])

    def find_cycle(self) -> Optional[List[str]]:
        visited = set()
        rec_stack = set()
        path = []

        def dfs(node: str) -> Optional[List[str]]:
            visited.add(node)
            rec_stack.add(node)
            path.append(node)

            for succ in self._ordered(self._successors.get(node, set())):
                if succ not in visited:
                    result = dfs(succ)
                    if result:
                        return result
                elif succ in rec_stack:
                    cycle_start = path.index(succ)
                    return path[cycle_start:] + [succ]

            path.pop()
            rec_stack.remove(node)
            return None

        for node in self._nodes:
            if node not in visited:
                cycle = dfs(node)
                if cycle:
                    return cycle
        return None

    def _topological_sort(self) -> List[str]:
        """Kahn's algorithm

        Raises:
            CyclicDependencyError: if the graph has a cycle
        """
        in_degree = {node: len(self._predecessors.get(node, set()))
                     for node in self._nodes}

        queue = deque([node for node, degree in in_degree.items() if degree == 0])
        result = []

        while queue:
            node = queue.popleft()
            result.append(node)

            for succ in self._ordered(self._successors.get(node, set())):
                in_degree[succ] -= 1
                if in_degree[succ] == 0:
                    queue.append(succ)

        if len(result) != len(self._nodes):
            cycle = self.find_cycle()
            raise CyclicDependencyError(cycle or [n for n in self._nodes if n not in result])

        return result

    def build_execution_plan(self) -> ExecutionPlan:
        """Group nodes into layers whose predecessors are all in earlier layers.

        Raises:
            CyclicDependencyError: if the graph has a cycle
        """
        if not self._nodes:
            return ExecutionPlan(layers=[], total_nodes=0, graph=self)

        layers = []
        remaining = set(self._nodes)
        completed: Set[str] = set()

        layer_idx = 0
        while remaining:
            current_layer = [
                node for node in remaining
                if all(pred in completed for pred in self._predecessors.get(node, set()))
            ]

            if not current_layer:
                cycle = self.find_cycle()
                raise CyclicDependencyError(cycle or self._ordered(remaining))

            layers.append(ExecutionLayer(index=layer_idx, nodes=self._ordered(current_layer)))
            completed.update(current_layer)
            remaining -= set(current_layer)
            layer_idx += 1

        return ExecutionPlan(
            layers=layers,
            total_nodes=len(self._nodes),
            critical_path=self._compute_critical_path(),
            graph=self,
        )

    def _compute_critical_path(self) -> List[str]:
        """Longest path through the DAG."""
        if not self._nodes:
            return []

        order = self._topological_sort()
        dist = {node: 0 for node in self._nodes}
        prev: Dict[str, Optional[str]] = {node: None for node in self._nodes}

        for node in order:
            for succ in self._ordered(self._successors.get(node, set())):
                if dist[node] + 1 > dist[succ]:
                    dist[succ] = dist[node] + 1
                    prev[succ] = node

        end_node = max(order, key=lambda n: dist[n])

        path = []
        current: Optional[str] = end_node
        while current is not None:
            path.append(current)
            current = prev[current]

        return list(reversed(path))

    def __repr__(self) -> str:
        return f"DependencyGraph(nodes={len(self._nodes)}, edges={len(self._edges)})"


# ================== Tree -> DependencyGraph ==================

class _TreeFlattener:
    __slots__ = ('root', 'graph', 'leaves', 'owned', 'entry', 'exit', 'ids', 'paths')

    def __init__(self, root: ExecutionGraph, graph: DependencyGraph):
        self.root = root
        self.graph = graph
        self.leaves: Dict[str, ExecutionGraph] = {}
        self.owned: Dict[int, ExecutionGraph] = {}
        self.ids: Dict[int, str] = {}
        self.paths: Set[str] = set()
        self.entry: Dict[int, List[str]] = {}
        self.exit: Dict[int, List[str]] = {}

    def walk(self, node: ExecutionGraph, prefix: Tuple[str, ...], stack: List[ExecutionGraph]) -> None:
        if any(node is s for s in stack):
            names = [s.name for s in stack[stack.index(node):]] + [node.name]
            raise CyclicDependencyError(names)
        if id(node) in self.owned:
            raise DuplicateNodeError('/'.join(prefix) or node.name)
        self.owned[id(node)] = node
        nid = '/'.join(prefix)
        if node is not self.root:
            if nid in self.paths:
                raise DuplicateNodeError(nid)
            self.paths.add(nid)
        self.ids[id(node)] = nid

        if node.is_leaf and node is not self.root and node.kind is not NodeKind.PHASE:
            self.leaves[nid] = node
            self.graph.add_node(nid)
            self.entry[id(node)] = [nid]
            self.exit[id(node)] = [nid]
            return

        stack.append(node)
        for child in node.children:
            self.walk(child, prefix + (child.name,), stack)
        stack.pop()

        populated = [c for c in node.children if self.entry[id(c)]]
        if node.parallel:
            self.entry[id(node)] = [n for c in populated for n in self.entry[id(c)]]
            self.exit[id(node)] = [n for c in populated for n in self.exit[id(c)]]
            return
        for before, after in zip(populated, populated[1:]):
            for src in self.exit[id(before)]:
                for dst in self.entry[id(after)]:
                    self.graph.add_dependency(src, dst, DependencyType.SEQUENTIAL,
                                              {'phase': nid or node.name})
        self.entry[id(node)] = self.entry[id(populated[0])] if populated else []
        self.exit[id(node)] = self.exit[id(populated[-1])] if populated else []

    def link_explicit(self) -> None:
        for node in self.owned.values():
            for dep in node.dependencies:
                if id(dep) not in self.owned or self.owned[id(dep)] is not dep:
                    raise MissingDependencyError(self.ids[id(node)] or node.name, [dep.name])
                for src in self.exit[id(dep)]:
                    for dst in self.entry[id(node)]:
                        self.graph.add_dependency(src, dst, DependencyType.EXPLICIT,
                                                  {'declared_on': self.ids[id(node)]})


def build_execution_plan(root: ExecutionGraph, logger: Optional[logging.Logger] = None) -> ExecutionPlan:
    """Validate an execution graph and derive its layered plan.

    Args:
        root: graph root (typically a PipelineGraph)
        logger: logger for the plan summary

    Returns:
        ExecutionPlan over the leaf actions of root

    Raises:
        DuplicateNodeError: a node is owned twice or two leaves share a path
        MissingDependencyError: a depends_on target is not part of root
        CyclicDependencyError: ancestor loop or ordering cycle
    """
    log = logger or _logger
    graph = DependencyGraph(logger=log)
    flattener = _TreeFlattener(root, graph)
    flattener.walk(root, tuple(), [])
    flattener.link_explicit()
    plan = graph.build_execution_plan()
    plan.nodes = dict(flattener.leaves)
    log.debug(f"execution plan for {root.name!r}: {plan!r}")
    return plan
