"""Rendering backends

Each backend turns a finished PipelineGraph into the native objects of
one orchestration framework. Backends are resolved lazily so the
framework is only imported when it is actually used.
"""
from __future__ import annotations
from importlib import import_module
from typing import Union

from ..errors import PipelineConfigError
from ..protocols import Backend

_BACKENDS = {
    'kedro': ('pipelines.engines.kedro_engine', 'KedroBackend'),
    'prefect': ('pipelines.engines.prefect_engine', 'PrefectBackend'),
    'mermaid': ('pipelines.engines.mermaid_engine', 'MermaidBackend'),
}


def available_backends() -> list[str]:
    return sorted(_BACKENDS)


def resolve_backend(backend: Union[str, Backend, None] = None) -> Backend:
    """Resolve a backend

    Args:
        backend: backend instance, backend name, or None for 'kedro'

    Returns:
        Backend instance
    """
    if backend is None:
        backend = 'kedro'
    if not isinstance(backend, str):
        return backend
    try:
        module_name, class_name = _BACKENDS[backend.lower()]
    except KeyError:
        raise PipelineConfigError(
            f'unknown backend: {backend} (expected one of {available_backends()})'
        ) from None
    return getattr(import_module(module_name), class_name)()


__all__ = ['available_backends', 'resolve_backend']
