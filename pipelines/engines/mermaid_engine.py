from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Optional, Union

from ..core.execution_plan import ExecutionPlan, build_execution_plan
from ..core.graph import PipelineGraph


class MermaidBackend:
    """Render the pipeline plan as a Mermaid flowchart (optionally written to a file)."""

    def __init__(self, output_path: Optional[Union[str, Path]] = None):
        self.output_path = Path(output_path) if output_path else None
        self.logger = logging.getLogger(__name__)
        self.plan: Optional[ExecutionPlan] = None
        self.diagram: Optional[str] = None

    def render_backend(self, *, scope: Any, execution_graph: PipelineGraph) -> str:
        self.plan = build_execution_plan(execution_graph, logger=self.logger)
        self.diagram = self.plan.to_mermaid()
        if self.output_path is not None:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self.output_path.write_text(self.diagram, encoding='utf-8')
            self.logger.info(f"mermaid diagram written: {self.output_path}")
        return self.diagram
