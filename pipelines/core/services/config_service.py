"""ConfigService: declare a pipeline in YAML

Responsibilities:
1. Load and validate the YAML `pipeline:` block
2. Build sources, synth and approvers from their declarations
3. Construct a CdkPipeline and apply phases in declaration order

Example:

    pipeline:
      name: WebService
      asset_publishing: prepublish_all
      backend: kedro
      sources:
        - repository: acme/web-service
          branch: main
      synth:
        install_commands: [npm ci]
        commands: [npx cdk synth]
      phases:
        - stage: Beta
          stacks:
            - name: Api
              assets: [api-bundle]
          approvers:
            - manual: PromoteToProd
        - group: Prod
          stages:
            - stage: ProdEU
              stacks: [Api]
"""
from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

import yaml

from ...config import PipelineConfig
from ...errors import PipelineConfigError
from ...models import AddApplicationOptions, ApplicationStage
from ..actions import ManualApproval, RepositorySource, ShellApproval, ShellSynth
from ..pipeline import CdkPipeline


class ConfigService:
    """Pipeline declaration loader

    Flow:
    1. load_config() -> parse YAML
    2. build_pipeline() -> CdkPipeline with every phase applied
    """

    __slots__ = ('config', 'logger', 'pipeline_config')

    def __init__(self, pipeline_config: Optional[PipelineConfig] = None,
                 logger: logging.Logger | None = None):
        self.config: Dict[str, Any] = {}
        self.pipeline_config = pipeline_config
        self.logger = logger or logging.getLogger(__name__)

    # ========== Public API ==========

    def load_config(self, path: Union[str, Path]) -> Dict[str, Any]:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise PipelineConfigError(f"cannot read pipeline declaration {path}: {e}") from e
        except yaml.YAMLError as e:
            raise PipelineConfigError(f"invalid YAML in {path}: {e}") from e
        self.logger.info(f"loaded pipeline declaration: {path}")
        return self.load_dict(data)

    def load_dict(self, data: Any) -> Dict[str, Any]:
        if not isinstance(data, dict) or not isinstance(data.get('pipeline'), dict):
            raise PipelineConfigError("declaration must contain a top-level 'pipeline' mapping")
        self.config = data
        return self.config

    def build_pipeline(self, *, backend: Any = None) -> CdkPipeline:
        """Construct the declared pipeline

        Args:
            backend: overrides the declared backend (instance or name)
        """
        if not self.config:
            raise PipelineConfigError("no declaration loaded, call load_config() first")
        decl = self.config['pipeline']

        pipeline = CdkPipeline(
            name=str(decl.get('name', 'Pipeline')),
            sources=[self._parse_source(s) for s in self._as_list(decl.get('sources'), 'sources')],
            synth=self._parse_synth(decl.get('synth')),
            asset_publishing=decl.get('asset_publishing'),
            backend=backend if backend is not None else decl.get('backend'),
            config=self.pipeline_config,
        )

        for idx, raw in enumerate(self._as_list(decl.get('phases'), 'phases')):
            if not isinstance(raw, dict):
                raise PipelineConfigError(f"phase #{idx} must be a mapping: {raw!r}")
            if 'group' in raw:
                group = pipeline.add_deployment_group(str(raw['group']))
                for stage_raw in self._as_list(raw.get('stages'), f"group {raw['group']} stages"):
                    stage, options = self._parse_stage(stage_raw)
                    group.add_application_stage(stage, options)
            elif 'stage' in raw:
                stage, options = self._parse_stage(raw)
                pipeline.add_application_stage(stage, options)
            else:
                raise PipelineConfigError(f"phase #{idx} needs 'stage' or 'group': {raw!r}")

        self.logger.info(f"pipeline {pipeline.name!r} declared with {len(pipeline.graph.phases)} phases")
        return pipeline

    # ========== Internal: parsing ==========

    @staticmethod
    def _as_list(value: Any, what: str) -> List[Any]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise PipelineConfigError(f"'{what}' must be a list")
        return value

    @staticmethod
    def _as_commands(value: Any) -> tuple:
        if value is None:
            return tuple()
        if isinstance(value, str):
            return (value,)
        return tuple(str(v) for v in value)

    def _parse_source(self, raw: Any) -> RepositorySource:
        if isinstance(raw, str):
            return RepositorySource(repository=raw)
        if not isinstance(raw, dict) or 'repository' not in raw:
            raise PipelineConfigError(f"source needs 'repository': {raw!r}")
        return RepositorySource(
            repository=str(raw['repository']),
            branch=str(raw.get('branch', 'main')),
            name=str(raw.get('name', '')),
        )

    def _parse_synth(self, raw: Any) -> ShellSynth:
        if not isinstance(raw, dict) or not raw.get('commands'):
            raise PipelineConfigError("pipeline requires a 'synth' mapping with 'commands'")
        return ShellSynth(
            commands=self._as_commands(raw['commands']),
            install_commands=self._as_commands(raw.get('install_commands')),
            name=str(raw.get('name', 'Build')),
        )

    def _parse_approver(self, raw: Any):
        if isinstance(raw, dict) and 'manual' in raw:
            return ManualApproval(name=str(raw['manual']), comment=str(raw.get('comment', '')))
        if isinstance(raw, dict) and 'shell' in raw:
            return ShellApproval(name=str(raw['shell']), commands=self._as_commands(raw.get('commands')))
        raise PipelineConfigError(f"approver needs 'manual' or 'shell': {raw!r}")

    def _parse_stage(self, raw: Any):
        if not isinstance(raw, dict):
            raise PipelineConfigError(f"stage must be a mapping: {raw!r}")
        stage = ApplicationStage.from_dict(raw)
        approvers = tuple(self._parse_approver(a) for a in self._as_list(raw.get('approvers'), 'approvers'))
        return stage, AddApplicationOptions(approvers=approvers)


def load_pipeline(path: Union[str, Path], *, backend: Any = None,
                  config: Optional[PipelineConfig] = None) -> CdkPipeline:
    """Load a YAML declaration and build its CdkPipeline (not yet rendered)."""
    service = ConfigService(config)
    service.load_config(path)
    return service.build_pipeline(backend=backend)


__all__ = ["ConfigService", "load_pipeline"]
