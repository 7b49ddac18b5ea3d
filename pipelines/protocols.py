"""
Pipeline Collaborator Protocols
===============================

Defines the capability interfaces the graph assembly core consumes. Each
collaborator exposes one primary operation; implementations are plain
classes, no inheritance required.
"""
from __future__ import annotations

from typing import Any, Protocol, TYPE_CHECKING, runtime_checkable

if TYPE_CHECKING:
    from .core.graph import ExecutionGraph, PipelineGraph
    from .models import ApplicationStage, AssetPlacement


@runtime_checkable
class Source(Protocol):
    """Attaches source actions under the pipeline's source stage.

    Expected signature:
    def add_to_execution_graph(self, *, root: PipelineGraph, parent: ExecutionGraph) -> None: ...
    """
    def add_to_execution_graph(self, *, root: PipelineGraph, parent: ExecutionGraph) -> None:
        ...


@runtime_checkable
class Synth(Protocol):
    """Attaches the build step under the pipeline's synth stage.

    Expected signature:
    def add_to_execution_graph(self, *, parent: ExecutionGraph, root: PipelineGraph, scope: Any) -> None: ...
    """
    def add_to_execution_graph(self, *, parent: ExecutionGraph, root: PipelineGraph, scope: Any) -> None:
        ...


@runtime_checkable
class AssetPublishingStrategy(Protocol):
    """Decides which asset publish actions a deployment needs and where."""
    def plan_publishing(self, pipeline_graph: PipelineGraph, stage: ApplicationStage) -> AssetPlacement:
        ...


@runtime_checkable
class Deployment(Protocol):
    """Materializes itself into an ExecutionGraph subtree.

    Must not mutate pipeline_graph; the caller inserts the returned subtree.
    """
    def produce_execution_graph(
        self,
        *,
        scope: Any,
        pipeline_graph: PipelineGraph,
        asset_publishing: AssetPublishingStrategy,
    ) -> ExecutionGraph:
        ...


@runtime_checkable
class Backend(Protocol):
    """Turns the finished pipeline graph into something executable."""
    def render_backend(self, *, scope: Any, execution_graph: PipelineGraph) -> Any:
        ...


@runtime_checkable
class Approver(Protocol):
    def produce_action(self, stage_name: str) -> ExecutionGraph:
        ...
