"""Kedro backend (default)

Renders the pipeline plan into a kedro Pipeline:
- one node per leaf action, named after its path
- ordering encoded through `<node>__done` marker datasets
- each node tagged with its top-level phase

The rendered Pipeline is a plan; its placeholder nodes do nothing when run.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from kedro.pipeline import Pipeline, node

from ..core.execution_plan import ExecutionPlan, build_execution_plan
from ..core.graph import PipelineGraph

_INVALID_CHARS = re.compile(r"[^0-9A-Za-z_]")


def _placeholder_action(*upstream):
    return None


class KedroBackend:
    def __init__(self, *, tag_phases: bool = True):
        self.logger = logging.getLogger(__name__)
        self.tag_phases = tag_phases
        self.plan: Optional[ExecutionPlan] = None
        self.pipeline: Optional[Pipeline] = None
        self.node_names: Dict[str, str] = {}

    @staticmethod
    def node_name(node_id: str) -> str:
        return '__'.join(_INVALID_CHARS.sub('_', part) for part in node_id.split('/'))

    def dataset_name(self, node_id: str) -> str:
        return f"{self.node_name(node_id)}__done"

    def render_backend(self, *, scope: Any, execution_graph: PipelineGraph) -> Pipeline:
        plan = build_execution_plan(execution_graph, logger=self.logger)
        kedro_nodes = []
        for node_id in plan.flatten():
            inputs: List[str] = [self.dataset_name(p) for p in plan.predecessors(node_id)]
            tags = None
            if self.tag_phases:
                tags = [self.node_name(node_id.split('/')[0])]
            name = self.node_name(node_id)
            self.node_names[node_id] = name
            kedro_nodes.append(node(
                _placeholder_action,
                inputs=inputs or None,
                outputs=self.dataset_name(node_id),
                name=name,
                tags=tags,
            ))
        self.plan = plan
        self.pipeline = Pipeline(kedro_nodes)
        self.logger.info(
            f"kedro pipeline rendered for {execution_graph.name!r}: "
            f"nodes={len(kedro_nodes)} layers={plan.depth}"
        )
        return self.pipeline
