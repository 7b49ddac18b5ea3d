from __future__ import annotations
import logging
from typing import Any, Optional

from ..models import AddApplicationOptions, ApplicationStage, Asset
from ..protocols import AssetPublishingStrategy
from .graph import ExecutionGraph, NodeKind, PipelineGraph

logger = logging.getLogger(__name__)


def publish_action(asset: Asset, name: Optional[str] = None) -> ExecutionGraph:
    return ExecutionGraph(name or f"Publish-{asset.asset_id}", metadata={
        'kind': NodeKind.ASSET_PUBLISHING,
        'asset_id': asset.asset_id,
        'asset_kind': asset.kind,
        'source': asset.source,
    })


class CdkStageDeployment:
    """Deployment of one application stage followed by its approvers

    Produced subtree, in order:
      Assets (parallel, only when the strategy prepublishes)
      per stack: its per-stack publish actions, then the stack deploy action
      approvers
    """

    def __init__(self, stage: ApplicationStage, options: Optional[AddApplicationOptions] = None):
        self.stage = stage
        self.options = options or AddApplicationOptions()

    def produce_execution_graph(
        self,
        *,
        scope: Any,
        pipeline_graph: PipelineGraph,
        asset_publishing: AssetPublishingStrategy,
    ) -> ExecutionGraph:
        graph = ExecutionGraph(self.stage.name, metadata={
            'kind': NodeKind.DEPLOYMENT,
            'stage': self.stage.name,
        })
        placement = asset_publishing.plan_publishing(pipeline_graph, self.stage)

        if placement.prepublish:
            assets = ExecutionGraph('Assets', parallel=True, metadata={'kind': NodeKind.PHASE})
            assets.add(*(publish_action(a) for a in placement.prepublish))
            graph.add(assets)

        for stack in self.stage.stacks:
            for asset in placement.per_stack.get(stack.name, ()):
                graph.add(publish_action(asset, f"{stack.name}-Publish-{asset.asset_id}"))
            graph.add(ExecutionGraph(stack.name, metadata={
                'kind': NodeKind.STACK_DEPLOY,
                'stage': self.stage.name,
                'stack': stack.name,
                'assets': [a.asset_id for a in stack.assets],
            }))

        for approver in self.options.approvers:
            graph.add(approver.produce_action(self.stage.name))

        logger.debug(
            f"stage deployment {self.stage.name}: stacks={len(self.stage.stacks)} "
            f"prepublished={len(placement.prepublish)} approvers={len(self.options.approvers)}"
        )
        return graph

    def __repr__(self) -> str:
        return f"CdkStageDeployment(stage={self.stage.name!r})"
