"""HookManager: pipeline assembly event hooks

Events:
 - after_source_attached(pipeline, source)
 - after_synth_attached(pipeline, synth)
 - after_phase_added(pipeline, phase, position)
 - after_deployment_added(pipeline, deployment_graph, phase)
 - before_render(pipeline, execution_graph)
 - after_render(pipeline, result)

Usage:
   from pipelines.core.services.hook_manager import HookManager
   hooks = HookManager.get()
   hooks.register('after_phase_added', callable)
"""
from __future__ import annotations
from typing import Callable, Dict, List, Any, ClassVar, Iterable, Optional
from pathlib import Path
import importlib
import logging
import pkgutil
import threading
import time


class HookManager:
    """Event hook manager (singleton)

    Handlers run in registration order. A failing handler is logged and
    counted, and never interrupts pipeline assembly.
    """
    _instance: ClassVar[Optional['HookManager']] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    SUPPORTED_EVENTS = frozenset([
        'after_source_attached',
        'after_synth_attached',
        'after_phase_added',
        'after_deployment_added',
        'before_render',
        'after_render',
    ])

    def __init__(self):
        self._hooks: Dict[str, List[Callable]] = {event: [] for event in self.SUPPORTED_EVENTS}
        self._logger = logging.getLogger(__name__)
        self._stats: Dict[str, Dict[str, Any]] = {
            event: {'call_count': 0, 'error_count': 0, 'total_time_ms': 0.0}
            for event in self.SUPPORTED_EVENTS
        }
        self._loaded_plugins: List[str] = []

    @classmethod
    def get(cls) -> 'HookManager':
        """Return the shared instance (thread-safe)."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = HookManager()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the shared instance (mainly for tests)."""
        with cls._lock:
            cls._instance = None

    def register(self, event: str, func: Callable) -> Callable:
        """Register an event handler

        Returns:
            func, so register can be used as a decorator helper

        Raises:
            ValueError: unsupported event name
        """
        if event not in self._hooks:
            raise ValueError(
                f"unsupported hook event: {event}. "
                f"supported events: {sorted(self.SUPPORTED_EVENTS)}"
            )
        self._hooks[event].append(func)
        self._logger.debug(f"hook registered: {event} <- {getattr(func, '__name__', func)!r}")
        return func

    def unregister(self, event: str, func: Callable) -> bool:
        if event not in self._hooks:
            return False
        try:
            self._hooks[event].remove(func)
            return True
        except ValueError:
            return False

    def emit(self, event: str, *args, **kwargs) -> int:
        """Fire an event

        Returns:
            number of handlers that completed without raising
        """
        handlers = self._hooks.get(event, [])
        if not handlers:
            return 0

        success_count = 0
        stats = self._stats[event]

        for handler in list(handlers):
            start = time.perf_counter()
            try:
                handler(*args, **kwargs)
                success_count += 1
            except Exception as e:
                stats['error_count'] += 1
                self._logger.warning(
                    f"hook '{event}.{getattr(handler, '__name__', handler)}' failed (ignored): {e}"
                )
            finally:
                stats['total_time_ms'] += (time.perf_counter() - start) * 1000
                stats['call_count'] += 1

        return success_count

    def get_handlers(self, event: str) -> List[Callable]:
        return list(self._hooks.get(event, []))

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        return {
            event: {
                'handler_count': len(self._hooks[event]),
                'call_count': stats['call_count'],
                'error_count': stats['error_count'],
                'total_time_ms': round(stats['total_time_ms'], 2),
                'avg_time_ms': round(stats['total_time_ms'] / max(1, stats['call_count']), 2),
            }
            for event, stats in self._stats.items()
        }

    def clear(self, event: Optional[str] = None) -> None:
        if event:
            if event in self._hooks:
                self._hooks[event].clear()
        else:
            for handlers in self._hooks.values():
                handlers.clear()

    @property
    def loaded_plugins(self) -> List[str]:
        return list(self._loaded_plugins)

    def load_plugins(self, disabled: Iterable[str] = (), package: str = 'pipelines.plugins') -> List[str]:
        """Import every module of package exposing register(hooks) and register it.

        Each plugin is loaded at most once per HookManager instance.

        Returns:
            names of the plugins loaded by this call
        """
        pkg = importlib.import_module(package)
        skip = set(disabled)
        loaded = []
        for module_info in pkgutil.iter_modules([str(Path(pkg.__file__).parent)]):
            name = module_info.name
            if name in skip:
                self._logger.info(f"skipping plugin: {name}")
                continue
            if name in self._loaded_plugins:
                continue
            try:
                mod = importlib.import_module(f'{package}.{name}')
            except ImportError as e:
                self._logger.warning(f"plugin import failed {name}: {e}")
                continue
            if hasattr(mod, 'register'):
                mod.register(self)
                self._loaded_plugins.append(name)
                loaded.append(name)
                self._logger.info(f"loaded plugin: {name}")
        return loaded


__all__ = ["HookManager"]
