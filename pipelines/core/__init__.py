"""Pipeline Core Module

Public API:
- ExecutionGraph, PipelineGraph: plan structure
- build_execution_plan, ExecutionPlan: backend-side ordering and validation
- CdkPipeline, DeploymentGroup: assembly facade
- CdkStageDeployment: application stage deployment
- PrepublishAll, PublishPerDeployment: asset publishing strategies
"""
from __future__ import annotations

from .graph import ExecutionGraph, NodeKind, PipelineGraph
from .execution_plan import (
    DependencyGraph,
    DependencyType,
    DependencyEdge,
    ExecutionPlan,
    ExecutionLayer,
    CyclicDependencyError,
    MissingDependencyError,
    DuplicateNodeError,
    build_execution_plan,
)
from .asset_publishing import PrepublishAll, PublishPerDeployment, resolve_asset_publishing
from .deployment import CdkStageDeployment
from .actions import ManualApproval, RepositorySource, ShellApproval, ShellSynth
from .pipeline import CdkPipeline, DeploymentGroup

__all__ = [
    # Graph
    'ExecutionGraph',
    'NodeKind',
    'PipelineGraph',
    # Plan
    'DependencyGraph',
    'DependencyType',
    'DependencyEdge',
    'ExecutionPlan',
    'ExecutionLayer',
    'CyclicDependencyError',
    'MissingDependencyError',
    'DuplicateNodeError',
    'build_execution_plan',
    # Collaborators
    'PrepublishAll',
    'PublishPerDeployment',
    'resolve_asset_publishing',
    'CdkStageDeployment',
    'ManualApproval',
    'RepositorySource',
    'ShellApproval',
    'ShellSynth',
    # Facade
    'CdkPipeline',
    'DeploymentGroup',
]
