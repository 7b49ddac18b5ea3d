"""Minimal concrete collaborators

Lightweight Source / Synth / Approver implementations that contribute
plain leaf actions. Backends interpret the metadata they carry; nothing
here executes anything.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Tuple

from .graph import ExecutionGraph, NodeKind, PipelineGraph


@dataclass(frozen=True)
class RepositorySource:
    """Version-control checkout, e.g. RepositorySource('owner/repo', branch='main')."""

    repository: str
    branch: str = "main"
    name: str = ""

    @property
    def action_name(self) -> str:
        return self.name or self.repository.replace('/', '_')

    def add_to_execution_graph(self, *, root: PipelineGraph, parent: ExecutionGraph) -> None:
        parent.add(ExecutionGraph(self.action_name, metadata={
            'kind': NodeKind.SOURCE,
            'repository': self.repository,
            'branch': self.branch,
        }))


@dataclass(frozen=True)
class ShellSynth:
    """Build step running shell commands against the checked-out sources."""

    commands: Tuple[str, ...]
    install_commands: Tuple[str, ...] = tuple()
    name: str = "Build"

    def add_to_execution_graph(self, *, parent: ExecutionGraph, root: PipelineGraph, scope: Any) -> None:
        parent.add(ExecutionGraph(self.name, metadata={
            'kind': NodeKind.SYNTH,
            'install_commands': list(self.install_commands),
            'commands': list(self.commands),
        }))


@dataclass(frozen=True)
class ManualApproval:
    """Gate a stage on a human decision."""

    name: str = "Approve"
    comment: str = ""

    def produce_action(self, stage_name: str) -> ExecutionGraph:
        return ExecutionGraph(self.name, metadata={
            'kind': NodeKind.APPROVAL,
            'stage': stage_name,
            'comment': self.comment,
        })


@dataclass(frozen=True)
class ShellApproval:
    """Gate a stage on shell commands succeeding (smoke tests, checks)."""

    name: str
    commands: Tuple[str, ...] = tuple()

    def produce_action(self, stage_name: str) -> ExecutionGraph:
        return ExecutionGraph(self.name, metadata={
            'kind': NodeKind.VALIDATION,
            'stage': stage_name,
            'commands': list(self.commands),
        })
