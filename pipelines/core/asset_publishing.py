from __future__ import annotations
from typing import Dict, Tuple, Union

from ..errors import PipelineConfigError
from ..models import ApplicationStage, Asset, AssetPlacement
from ..protocols import AssetPublishingStrategy
from .graph import PipelineGraph


class PrepublishAll:
    """Publish every asset of a stage before any of its stacks deploys.

    Assets published by actions ordered before the deployment's insertion
    point are not published again. A publish in a later phase does not
    count, even when that phase was filled first.
    """

    def plan_publishing(self, pipeline_graph: PipelineGraph, stage: ApplicationStage) -> AssetPlacement:
        published = pipeline_graph.published_asset_ids()
        pending = tuple(a for a in stage.assets if a.asset_id not in published)
        return AssetPlacement(prepublish=pending)


class PublishPerDeployment:
    """Republish each stack's assets right before that stack deploys."""

    def plan_publishing(self, pipeline_graph: PipelineGraph, stage: ApplicationStage) -> AssetPlacement:
        per_stack: Dict[str, Tuple[Asset, ...]] = {
            stack.name: stack.assets for stack in stage.stacks if stack.assets
        }
        return AssetPlacement(per_stack=per_stack)


_STRATEGIES = {
    'prepublish_all': PrepublishAll,
    'per_deployment': PublishPerDeployment,
}


def resolve_asset_publishing(strategy: Union[str, AssetPublishingStrategy, None] = None) -> AssetPublishingStrategy:
    """Resolve an asset publishing strategy

    Args:
        strategy: strategy instance, strategy name, or None for 'prepublish_all'

    Returns:
        AssetPublishingStrategy instance
    """
    if strategy is None:
        return PrepublishAll()
    if isinstance(strategy, str):
        try:
            return _STRATEGIES[strategy.lower()]()
        except KeyError:
            raise PipelineConfigError(
                f'unknown asset publishing strategy: {strategy} (expected one of {sorted(_STRATEGIES)})'
            ) from None
    return strategy
