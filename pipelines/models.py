from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple, TYPE_CHECKING

from .errors import PipelineConfigError

if TYPE_CHECKING:
    from .protocols import Approver


@dataclass(frozen=True)
class Asset:
    """Build artifact that must be published before a stack can deploy

    asset_id: content identifier, shared by every stack referencing the same artifact
    kind:     'file' or 'docker-image'
    source:   path of the artifact inside the synth output
    """

    asset_id: str
    kind: str = "file"
    source: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "Asset":
        if isinstance(data, str):
            return cls(asset_id=data)
        if not isinstance(data, Mapping) or "id" not in data:
            raise PipelineConfigError(f"asset must be a string or a mapping with 'id': {data!r}")
        return cls(
            asset_id=str(data["id"]),
            kind=data.get("kind", "file"),
            source=data.get("source", ""),
        )


@dataclass(frozen=True)
class Stack:
    """One deployable unit of an application stage."""

    name: str
    assets: Tuple[Asset, ...] = tuple()

    @classmethod
    def from_dict(cls, data: Any) -> "Stack":
        if isinstance(data, str):
            return cls(name=data)
        if not isinstance(data, Mapping) or "name" not in data:
            raise PipelineConfigError(f"stack must be a string or a mapping with 'name': {data!r}")
        return cls(
            name=str(data["name"]),
            assets=tuple(Asset.from_dict(a) for a in data.get("assets", []) or []),
        )


@dataclass(frozen=True)
class ApplicationStage:
    """Logical application stage: a named set of stacks deployed together."""

    name: str
    stacks: Tuple[Stack, ...] = tuple()

    @property
    def assets(self) -> Tuple[Asset, ...]:
        # first occurrence wins, stack order preserved
        seen: Dict[str, Asset] = {}
        for stack in self.stacks:
            for asset in stack.assets:
                seen.setdefault(asset.asset_id, asset)
        return tuple(seen.values())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ApplicationStage":
        name = data.get("stage") or data.get("name")
        if not name:
            raise PipelineConfigError(f"stage entry requires 'stage': {dict(data)!r}")
        return cls(
            name=str(name),
            stacks=tuple(Stack.from_dict(s) for s in data.get("stacks", []) or []),
        )


@dataclass(frozen=True)
class AddApplicationOptions:
    """Options for add_application_stage

    approvers: run after the stage's stacks are deployed, in order
    """

    approvers: Tuple["Approver", ...] = tuple()


@dataclass(frozen=True)
class AssetPlacement:
    """Asset publishing decision for one deployment

    prepublish: published together before any stack of the deployment
    per_stack:  published right before the named stack
    """

    prepublish: Tuple[Asset, ...] = tuple()
    per_stack: Dict[str, Tuple[Asset, ...]] = field(default_factory=dict)
