"""CdkPipeline - pipeline assembly facade

Responsibilities:
1. Attach sources and synth into their reserved stages at construction
2. Append deployments and deployment groups as phases, in call order
3. Hand the finished PipelineGraph to the backend exactly once

Lifecycle: mutable until built; rendering flips `built` and every later
mutation raises ImmutablePipelineError. Used as a context manager, the
pipeline renders itself on a clean exit if nobody rendered it.
"""
from __future__ import annotations
from typing import Any, Iterable, Optional, Union
import logging

from ..config import PipelineConfig
from ..errors import DoubleRenderError, ImmutablePipelineError
from ..models import AddApplicationOptions, ApplicationStage
from ..protocols import AssetPublishingStrategy, Backend, Deployment, Source, Synth
from .asset_publishing import resolve_asset_publishing
from .deployment import CdkStageDeployment
from .graph import ExecutionGraph, NodeKind, PipelineGraph
from .services.hook_manager import HookManager


class DeploymentGroup:
    """Handle on one named phase created by CdkPipeline.add_deployment_group

    The phase is already part of the pipeline graph; deployments added
    here land under it no matter when they are added.
    """

    __slots__ = ('phase', '_pipeline')

    def __init__(self, phase: ExecutionGraph, pipeline: 'CdkPipeline'):
        self.phase = phase
        self._pipeline = pipeline

    @property
    def name(self) -> str:
        return self.phase.name

    def add_application_stage(self, stage: ApplicationStage,
                              options: Optional[AddApplicationOptions] = None) -> ExecutionGraph:
        return self.add_deployment(CdkStageDeployment(stage, options))

    def add_deployment(self, deployment: Deployment) -> ExecutionGraph:
        pipeline = self._pipeline
        if pipeline.config.strict_deployment_groups:
            pipeline._check_mutable()
        return pipeline._materialize(deployment, self.phase)

    def __repr__(self) -> str:
        return f"DeploymentGroup(name={self.name!r}, deployments={len(self.phase)})"


class CdkPipeline:
    """Pipeline assembly orchestrator

    Args:
        synth: build step, attached under the synth stage
        sources: attached under the source stage, in order
        asset_publishing: strategy instance or name (default from config)
        backend: backend instance or name (default from config)
        name: pipeline graph root name
        config: PipelineConfig (environment defaults when omitted)
    """

    def __init__(
        self,
        *,
        synth: Synth,
        sources: Optional[Iterable[Source]] = None,
        asset_publishing: Union[str, AssetPublishingStrategy, None] = None,
        backend: Union[str, Backend, None] = None,
        name: str = 'Pipeline',
        config: Optional[PipelineConfig] = None,
    ):
        from ..engines import resolve_backend

        self.logger = logging.getLogger(__name__)
        self.config = config or PipelineConfig()
        self.name = name
        self._graph = PipelineGraph(name)
        self._hooks = HookManager.get()
        self.backend: Backend = resolve_backend(backend if backend is not None else self.config.default_backend)
        self.asset_publishing: AssetPublishingStrategy = resolve_asset_publishing(
            asset_publishing if asset_publishing is not None else self.config.asset_publishing
        )
        self._built = False
        self.rendered: Any = None

        for source in sources or []:
            source.add_to_execution_graph(root=self._graph, parent=self._graph.source_stage)
            self._hooks.emit('after_source_attached', self, source)
        synth.add_to_execution_graph(parent=self._graph.synth_stage, root=self._graph, scope=self)
        self._hooks.emit('after_synth_attached', self, synth)

        self.logger.info(
            f"pipeline {name!r} created: sources={len(self._graph.source_stage)} "
            f"backend={type(self.backend).__name__} assets={type(self.asset_publishing).__name__}"
        )

    # --------- state ---------
    @property
    def graph(self) -> PipelineGraph:
        return self._graph

    @property
    def built(self) -> bool:
        return self._built

    def _check_mutable(self) -> None:
        if self._built:
            raise ImmutablePipelineError(f"pipeline {self.name!r} is immutable once built")

    # --------- mutation API ---------
    def add_application_stage(self, stage: ApplicationStage,
                              options: Optional[AddApplicationOptions] = None) -> ExecutionGraph:
        """Append the deployment of stage (and its approvers) as a new phase.

        Raises:
            ImmutablePipelineError: the pipeline has been built
        """
        self._check_mutable()
        return self.add_deployment(CdkStageDeployment(stage, options))

    def add_deployment(self, deployment: Deployment) -> ExecutionGraph:
        """Materialize deployment and append it as a new top-level phase."""
        self._check_mutable()
        return self._materialize(deployment, None)

    def add_deployment_group(self, name: str) -> DeploymentGroup:
        """Create a named phase now and return a handle for filling it later.

        The phase position is fixed at call time.

        Raises:
            ImmutablePipelineError: the pipeline has been built
        """
        self._check_mutable()
        phase = ExecutionGraph(name, metadata={'kind': NodeKind.PHASE, 'group': True})
        self._graph.add(phase)
        position = len(self._graph) - 1
        self.logger.info(f"deployment group {name!r} created at position {position}")
        self._hooks.emit('after_phase_added', self, phase, position)
        return DeploymentGroup(phase, self)

    def _materialize(self, deployment: Deployment, phase: Optional[ExecutionGraph]) -> ExecutionGraph:
        self._graph.insertion_target = phase
        try:
            subtree = deployment.produce_execution_graph(
                scope=self,
                pipeline_graph=self._graph,
                asset_publishing=self.asset_publishing,
            )
        finally:
            self._graph.insertion_target = None
        target = phase if phase is not None else self._graph
        target.add(subtree)
        self.logger.info(f"deployment {subtree.name!r} added under {target.name!r}")
        if phase is None:
            self._hooks.emit('after_phase_added', self, subtree, len(self._graph) - 1)
        self._hooks.emit('after_deployment_added', self, subtree, phase)
        return subtree

    # --------- rendering ---------
    def render_to_backend(self) -> Any:
        """Hand the pipeline graph to the backend (once).

        The pipeline is built from this point on, even if the backend raises.

        Raises:
            DoubleRenderError: called a second time
        """
        if self._built:
            raise DoubleRenderError(f"pipeline {self.name!r} can only be rendered once")
        self._built = True
        self.logger.info(f"rendering {self.name!r} with {type(self.backend).__name__}: phases={len(self._graph.phases)}")
        self._hooks.emit('before_render', self, self._graph)
        self.rendered = self.backend.render_backend(scope=self, execution_graph=self._graph)
        self._hooks.emit('after_render', self, self.rendered)
        return self.rendered

    def prepare(self) -> None:
        """Render unless already built (idempotent finalize hook)."""
        if not self._built:
            self.render_to_backend()

    def __enter__(self) -> 'CdkPipeline':
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.prepare()
        return False

    def __repr__(self) -> str:
        return f"CdkPipeline(name={self.name!r}, phases={len(self._graph.phases)}, built={self._built})"
