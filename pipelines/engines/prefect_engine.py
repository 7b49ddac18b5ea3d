"""Prefect backend
===============

Renders the pipeline plan into a Prefect flow:
- one Prefect task per leaf action
- tasks submitted in plan order with wait_for set to their predecessors
- task tags carry the action kind (source / synth / asset_publishing / ...)

The flow is returned, not called. Calling it performs a dry run: each
task returns the description of its action.
"""
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from prefect import flow, task, get_run_logger

from ..core.execution_plan import ExecutionPlan, build_execution_plan
from ..core.graph import ExecutionGraph, PipelineGraph

_BANNED_CHARS = re.compile(r"[/%&><]")


def describe_action(node_id: str, action: ExecutionGraph) -> Dict[str, Any]:
    metadata = {
        k: (v.value if hasattr(v, 'value') else v) for k, v in action.metadata.items()
    }
    return {'action': node_id, 'metadata': metadata}


class PrefectBackend:
    def __init__(self, *, flow_name: Optional[str] = None, retries: int = 0,
                 retry_delay: int = 5, timeout: Optional[int] = None):
        self.logger = logging.getLogger(__name__)
        self.flow_name = flow_name
        self.retries = retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.plan: Optional[ExecutionPlan] = None
        self.flow: Optional[Callable] = None
        self.task_order: List[str] = []
        self.task_registry: Dict[str, Any] = {}

    @staticmethod
    def safe_name(name: str) -> str:
        return _BANNED_CHARS.sub('-', name)

    def _make_task(self, node_id: str, action: ExecutionGraph):
        kind = action.kind
        tags = [kind.value] if kind is not None else []

        @task(name=self.safe_name(node_id), tags=tags, retries=self.retries,
              retry_delay_seconds=self.retry_delay, timeout_seconds=self.timeout)
        def _run_action():
            get_run_logger().info(f"action: {node_id}")
            return describe_action(node_id, action)

        return _run_action

    def render_backend(self, *, scope: Any, execution_graph: PipelineGraph) -> Callable:
        plan = build_execution_plan(execution_graph, logger=self.logger)
        order = plan.flatten()
        predecessors = {node_id: plan.predecessors(node_id) for node_id in order}
        tasks = {node_id: self._make_task(node_id, plan.nodes[node_id]) for node_id in order}

        @flow(
            name=self.safe_name(self.flow_name or execution_graph.name),
            description=f"Deployment pipeline {execution_graph.name}",
            log_prints=True,
        )
        def pipeline_flow():
            futures = {}
            for node_id in order:
                wait_for = [futures[p] for p in predecessors[node_id]]
                futures[node_id] = tasks[node_id].submit(wait_for=wait_for)
            return {node_id: fut.result() for node_id, fut in futures.items()}

        self.plan = plan
        self.task_order = order
        self.task_registry = tasks
        self.flow = pipeline_flow
        self.logger.info(f"prefect flow rendered for {execution_graph.name!r}: tasks={len(order)}")
        return pipeline_flow
