"""ExecutionGraph - pipeline plan structure

A pipeline plan is a tree of named ExecutionGraph nodes: phases contain
phases or leaf actions. Child insertion order is the sequential hint
backends use to infer ordering; cross-links between sibling subtrees are
recorded as explicit dependencies, never as shared children.

This layer is a pure structural accumulator. Cycles, duplicate names and
dangling dependencies are detected by backends at render time (see
execution_plan.build_execution_plan).
"""
from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

__all__ = [
    'NodeKind',
    'ExecutionGraph',
    'PipelineGraph',
]


class NodeKind(Enum):
    """Metadata tag describing what a node represents."""
    PHASE = 'phase'
    SOURCE = 'source'
    SYNTH = 'synth'
    DEPLOYMENT = 'deployment'
    STACK_DEPLOY = 'stack_deploy'
    ASSET_PUBLISHING = 'asset_publishing'
    APPROVAL = 'approval'
    VALIDATION = 'validation'


class ExecutionGraph:
    """Named node of the pipeline plan

    Attributes:
        name: unique among siblings (not enforced here)
        parallel: children carry no sequential hint when True
        metadata: tags set by contributors, e.g. {'kind': NodeKind.ASSET_PUBLISHING}
    """

    def __init__(self, name: str, *, parallel: bool = False,
                 metadata: Optional[Dict[str, Any]] = None):
        self.name = name
        self.parallel = parallel
        self.metadata: Dict[str, Any] = dict(metadata or {})
        self.parent: Optional[ExecutionGraph] = None
        self._children: List[ExecutionGraph] = []
        self._dependencies: List[ExecutionGraph] = []

    # ---------------- Structure -----------------
    def add(self, *children: ExecutionGraph) -> None:
        """Append children after the existing ones, in argument order."""
        for child in children:
            child.parent = self
            self._children.append(child)

    def depends_on(self, *others: ExecutionGraph) -> None:
        """Record explicit ordering dependencies (others run before self)."""
        for other in others:
            if other not in self._dependencies:
                self._dependencies.append(other)

    @property
    def children(self) -> Tuple[ExecutionGraph, ...]:
        return tuple(self._children)

    @property
    def dependencies(self) -> Tuple[ExecutionGraph, ...]:
        return tuple(self._dependencies)

    @property
    def is_leaf(self) -> bool:
        return not self._children

    # ---------------- Metadata ------------------
    def tag(self, key: str, value: Any = True) -> ExecutionGraph:
        self.metadata[key] = value
        return self

    @property
    def kind(self) -> Optional[NodeKind]:
        return self.metadata.get('kind')

    # ---------------- Navigation ----------------
    @property
    def path(self) -> Tuple[str, ...]:
        """Names from the root down to this node (root included)."""
        names = []
        node: Optional[ExecutionGraph] = self
        seen: Set[int] = set()
        while node is not None and id(node) not in seen:
            seen.add(id(node))
            names.append(node.name)
            node = node.parent
        return tuple(reversed(names))

    def get(self, name: str) -> Optional[ExecutionGraph]:
        """First direct child with the given name."""
        for child in self._children:
            if child.name == name:
                return child
        return None

    def iter_nodes(self) -> Iterator[ExecutionGraph]:
        """Pre-order walk, self first."""
        yield self
        for child in self._children:
            yield from child.iter_nodes()

    def iter_leaves(self) -> Iterator[ExecutionGraph]:
        for node in self.iter_nodes():
            if node.is_leaf:
                yield node

    def to_dict(self) -> Dict[str, Any]:
        """Export as nested dicts (for serialization and CLI output)."""
        data: Dict[str, Any] = {'name': self.name}
        if self.parallel:
            data['parallel'] = True
        if self.metadata:
            data['metadata'] = {
                k: (v.value if isinstance(v, Enum) else v) for k, v in self.metadata.items()
            }
        if self._dependencies:
            data['depends_on'] = ['/'.join(d.path) for d in self._dependencies]
        if self._children:
            data['children'] = [c.to_dict() for c in self._children]
        return data

    def __len__(self) -> int:
        return len(self._children)

    def __iter__(self) -> Iterator[ExecutionGraph]:
        return iter(self._children)

    def __repr__(self) -> str:
        return f"ExecutionGraph(name={self.name!r}, children={len(self._children)})"


def _is_within(node: ExecutionGraph, ancestor: ExecutionGraph) -> bool:
    current: Optional[ExecutionGraph] = node
    while current is not None:
        if current is ancestor:
            return True
        current = current.parent
    return False


class PipelineGraph(ExecutionGraph):
    """Root of a pipeline plan

    Source and synth stages are created first and always present, so they
    positionally precede every phase appended later.
    """

    SOURCE_STAGE_NAME = 'Source'
    SYNTH_STAGE_NAME = 'Synth'

    def __init__(self, name: str = 'Pipeline'):
        super().__init__(name)
        self.source_stage = ExecutionGraph(self.SOURCE_STAGE_NAME, metadata={'kind': NodeKind.PHASE})
        self.synth_stage = ExecutionGraph(self.SYNTH_STAGE_NAME, metadata={'kind': NodeKind.PHASE})
        self.add(self.source_stage, self.synth_stage)
        # node the next deployment subtree is appended to (None: this root)
        self.insertion_target: Optional[ExecutionGraph] = None

    @property
    def phases(self) -> Tuple[ExecutionGraph, ...]:
        """User-declared phases, in insertion order."""
        return tuple(c for c in self._children
                     if c is not self.source_stage and c is not self.synth_stage)

    def published_asset_ids(self, upto: Optional[ExecutionGraph] = None) -> Set[str]:
        """Asset ids published by nodes ordered before the end of upto.

        upto defaults to insertion_target, so a deployment appended there
        only relies on publishes that run before it. Publishes in later
        phases are ignored.
        """
        if upto is None:
            upto = self.insertion_target
        ids: Set[str] = set()
        entered = False
        for node in self.iter_nodes():
            if upto is not None:
                if node is upto:
                    entered = True
                elif entered and not _is_within(node, upto):
                    break
            if node.kind is NodeKind.ASSET_PUBLISHING and 'asset_id' in node.metadata:
                ids.add(node.metadata['asset_id'])
        return ids

    def __repr__(self) -> str:
        return f"PipelineGraph(name={self.name!r}, phases={len(self.phases)})"
