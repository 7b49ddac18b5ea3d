from __future__ import annotations

import argparse
import json
import logging
import sys

from .config import PipelineConfig
from .core.execution_plan import build_execution_plan
from .core.graph import ExecutionGraph
from .core.services.config_service import load_pipeline
from .core.services.hook_manager import HookManager
from .engines import available_backends
from .errors import PipelineError


def _setup_logging(level: str) -> None:
    logger = logging.getLogger("pipelines")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(level.upper())


def _format_tree(node: ExecutionGraph, depth: int = 0) -> list[str]:
    kind = f" [{node.kind.value}]" if node.kind is not None else ""
    lines = [f"{'  ' * depth}{node.name}{kind}"]
    for child in node.children:
        lines.extend(_format_tree(child, depth + 1))
    return lines


def cmd_plan(args: argparse.Namespace) -> None:
    pipeline = load_pipeline(args.config, backend='mermaid')
    if args.format == "tree":
        print("\n".join(_format_tree(pipeline.graph)))
        return
    plan = build_execution_plan(pipeline.graph)
    if args.format == "mermaid":
        print(plan.to_mermaid(), end="")
    else:
        print(json.dumps({"graph": pipeline.graph.to_dict(), "plan": plan.to_dict()}, indent=2))


def cmd_render(args: argparse.Namespace) -> None:
    with load_pipeline(args.config, backend=args.backend) as pipeline:
        pass
    summary = {
        "pipeline": pipeline.name,
        "backend": type(pipeline.backend).__name__,
        "phases": [p.name for p in pipeline.graph.phases],
        "built": pipeline.built,
    }
    print(json.dumps(summary, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deployment pipeline assembly")
    parser.add_argument("--log-level", default="WARNING", help="Logging level for the pipelines logger.")
    parser.add_argument("--no-plugins", action="store_true", help="Do not load hook plugins.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan_parser = subparsers.add_parser("plan", help="Print the execution plan of a declared pipeline")
    plan_parser.add_argument("config", help="Path to the YAML pipeline declaration.")
    plan_parser.add_argument("--format", choices=("tree", "json", "mermaid"), default="tree")
    plan_parser.set_defaults(func=cmd_plan)

    render_parser = subparsers.add_parser("render", help="Render a declared pipeline with a backend")
    render_parser.add_argument("config", help="Path to the YAML pipeline declaration.")
    render_parser.add_argument("--backend", choices=available_backends(), default=None,
                               help="Overrides the declared backend.")
    render_parser.set_defaults(func=cmd_render)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.log_level)
    if not args.no_plugins:
        HookManager.get().load_plugins(disabled=PipelineConfig().disabled_plugins)
    try:
        args.func(args)
    except PipelineError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
