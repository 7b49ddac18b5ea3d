from __future__ import annotations

from typing import Any, List

import pytest

from pipelines import (
    CdkPipeline,
    ExecutionGraph,
    HookManager,
    PipelineConfig,
    RepositorySource,
    ShellSynth,
)


class RecordingBackend:
    """Backend stub capturing what it was asked to render."""

    def __init__(self) -> None:
        self.calls: List[Any] = []
        self.snapshots: List[dict] = []

    def render_backend(self, *, scope, execution_graph):
        self.calls.append((scope, execution_graph))
        self.snapshots.append(execution_graph.to_dict())
        return {"rendered": execution_graph.name}


class RecordingSource:
    def __init__(self, name: str) -> None:
        self.name = name
        self.calls: List[Any] = []

    def add_to_execution_graph(self, *, root, parent):
        self.calls.append((root, parent))
        parent.add(ExecutionGraph(self.name))


class RecordingSynth:
    def __init__(self) -> None:
        self.calls: List[Any] = []

    def add_to_execution_graph(self, *, parent, root, scope):
        self.calls.append((parent, root, scope))
        parent.add(ExecutionGraph("Build"))


@pytest.fixture(autouse=True)
def reset_hooks():
    HookManager.reset()
    yield
    HookManager.reset()


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def make_pipeline(backend):
    def _make(**kwargs) -> CdkPipeline:
        kwargs.setdefault("sources", [RepositorySource("acme/web")])
        kwargs.setdefault("synth", ShellSynth(commands=("npx cdk synth",)))
        kwargs.setdefault("backend", backend)
        kwargs.setdefault("config", PipelineConfig(strict_deployment_groups=True))
        return CdkPipeline(**kwargs)

    return _make
