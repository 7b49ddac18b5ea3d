"""
Deployment Pipeline Assembly
============================

Declare where source comes from, how it is built and which application
stages deploy in which order; get back one backend-agnostic execution
graph, rendered once by a pluggable backend (Kedro, Prefect, Mermaid).

Usage Example:
    from pipelines import CdkPipeline, ShellSynth, RepositorySource, ApplicationStage, Stack

    with CdkPipeline(
        sources=[RepositorySource('acme/web')],
        synth=ShellSynth(commands=('npx cdk synth',)),
        backend='mermaid',
    ) as pipeline:
        pipeline.add_application_stage(ApplicationStage('Beta', stacks=(Stack('Api'),)))
        prod = pipeline.add_deployment_group('Prod')
        prod.add_application_stage(ApplicationStage('ProdEU', stacks=(Stack('Api'),)))

    print(pipeline.rendered)
"""
from __future__ import annotations

from .config import PipelineConfig
from .errors import (
    PipelineError,
    ImmutablePipelineError,
    DoubleRenderError,
    PipelineConfigError,
    GraphValidationError,
)
from .models import AddApplicationOptions, ApplicationStage, Asset, AssetPlacement, Stack
from .core import (
    ExecutionGraph,
    NodeKind,
    PipelineGraph,
    ExecutionPlan,
    build_execution_plan,
    CdkPipeline,
    DeploymentGroup,
    CdkStageDeployment,
    PrepublishAll,
    PublishPerDeployment,
    ManualApproval,
    RepositorySource,
    ShellApproval,
    ShellSynth,
)
from .core.services.hook_manager import HookManager
from .core.services.config_service import ConfigService, load_pipeline
from .engines import available_backends, resolve_backend

__version__ = "0.1.0"

__all__ = [
    'PipelineConfig',
    # Errors
    'PipelineError',
    'ImmutablePipelineError',
    'DoubleRenderError',
    'PipelineConfigError',
    'GraphValidationError',
    # Models
    'AddApplicationOptions',
    'ApplicationStage',
    'Asset',
    'AssetPlacement',
    'Stack',
    # Graph
    'ExecutionGraph',
    'NodeKind',
    'PipelineGraph',
    'ExecutionPlan',
    'build_execution_plan',
    # Facade
    'CdkPipeline',
    'DeploymentGroup',
    'CdkStageDeployment',
    'PrepublishAll',
    'PublishPerDeployment',
    'ManualApproval',
    'RepositorySource',
    'ShellApproval',
    'ShellSynth',
    # Services
    'HookManager',
    'ConfigService',
    'load_pipeline',
    'available_backends',
    'resolve_backend',
]
