import os
from dataclasses import dataclass, field


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in ('0', 'false', 'no', 'off', '')


def _env_list(name: str) -> tuple[str, ...]:
    return tuple(x.strip() for x in os.getenv(name, '').split(',') if x.strip())


@dataclass(frozen=True)
class PipelineConfig:
    """Pipeline assembly settings

    default_backend: backend used when none is passed ('kedro' | 'prefect' | 'mermaid')
    asset_publishing: strategy used when none is passed ('prepublish_all' | 'per_deployment')
    strict_deployment_groups: deployment group handles refuse deployments once built
    disabled_plugins: plugin module names skipped by load_plugins
    """
    default_backend: str = field(default_factory=lambda: os.getenv('PIPELINES_DEFAULT_BACKEND', 'kedro').lower())
    asset_publishing: str = field(default_factory=lambda: os.getenv('PIPELINES_ASSET_PUBLISHING', 'prepublish_all').lower())
    strict_deployment_groups: bool = field(default_factory=lambda: _env_flag('PIPELINES_STRICT_GROUPS', '1'))
    disabled_plugins: tuple[str, ...] = field(default_factory=lambda: _env_list('PIPELINES_DISABLE_PLUGINS'))
