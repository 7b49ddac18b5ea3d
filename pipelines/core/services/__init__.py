"""Pipeline services

HookManager is exported here; ConfigService lives in
pipelines.core.services.config_service (it depends on CdkPipeline).
"""
from .hook_manager import HookManager

__all__ = ['HookManager']
