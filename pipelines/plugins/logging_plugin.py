"""Example plugin: log pipeline assembly events (handy for teaching or debugging)

Any module in pipelines/plugins/ exposing register(hooks) is discovered
by HookManager.load_plugins.
"""
from __future__ import annotations
import logging

logger = logging.getLogger("pipelines.plugins.logging")


def register(hooks):  # hooks: HookManager
    def after_source_attached(pipeline, source):
        logger.info(f"[PLUGIN] source attached to {pipeline.name}: {type(source).__name__}")

    def after_synth_attached(pipeline, synth):
        logger.info(f"[PLUGIN] synth attached to {pipeline.name}: {type(synth).__name__}")

    def after_phase_added(pipeline, phase, position):
        logger.info(f"[PLUGIN] -> phase #{position} {phase.name} children={len(phase)}")

    def after_deployment_added(pipeline, deployment_graph, phase):
        target = phase.name if phase is not None else pipeline.name
        logger.info(f"[PLUGIN] deployment {deployment_graph.name} added under {target}")

    def before_render(pipeline, execution_graph):
        logger.info(f"[PLUGIN] rendering {pipeline.name} phases={len(execution_graph.phases)}")

    def after_render(pipeline, result):
        logger.info(f"[PLUGIN] <- rendered {pipeline.name} with {type(pipeline.backend).__name__}")

    hooks.register('after_source_attached', after_source_attached)
    hooks.register('after_synth_attached', after_synth_attached)
    hooks.register('after_phase_added', after_phase_added)
    hooks.register('after_deployment_added', after_deployment_added)
    hooks.register('before_render', before_render)
    hooks.register('after_render', after_render)
