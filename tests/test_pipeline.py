from __future__ import annotations

import pytest

from pipelines import (
    AddApplicationOptions,
    ApplicationStage,
    CdkPipeline,
    DoubleRenderError,
    ExecutionGraph,
    ImmutablePipelineError,
    ManualApproval,
    PipelineConfig,
    PrepublishAll,
    PublishPerDeployment,
    ShellSynth,
)

from conftest import RecordingBackend, RecordingSource, RecordingSynth


def _phase_names(pipeline: CdkPipeline) -> list[str]:
    return [child.name for child in pipeline.graph]


def test_sources_and_synth_attach_eagerly_at_construction(backend) -> None:
    first, second = RecordingSource("Checkout"), RecordingSource("Tools")
    synth = RecordingSynth()

    pipeline = CdkPipeline(sources=[first, second], synth=synth, backend=backend)

    graph = pipeline.graph
    assert first.calls == [(graph, graph.source_stage)]
    assert second.calls == [(graph, graph.source_stage)]
    assert synth.calls == [(graph.synth_stage, graph, pipeline)]
    assert [n.name for n in graph.source_stage] == ["Checkout", "Tools"]
    assert [n.name for n in graph.synth_stage] == ["Build"]
    assert backend.calls == []


def test_sources_are_optional(backend) -> None:
    pipeline = CdkPipeline(synth=RecordingSynth(), backend=backend)
    assert len(pipeline.graph.source_stage) == 0
    assert _phase_names(pipeline) == ["Source", "Synth"]


def test_defaults_resolve_from_config(backend) -> None:
    pipeline = CdkPipeline(
        synth=RecordingSynth(),
        backend=backend,
        config=PipelineConfig(asset_publishing="per_deployment"),
    )
    assert isinstance(pipeline.asset_publishing, PublishPerDeployment)

    pipeline = CdkPipeline(synth=RecordingSynth(), backend=backend)
    assert isinstance(pipeline.asset_publishing, PrepublishAll)


def test_default_backend_is_kedro() -> None:
    pytest.importorskip("kedro")
    from pipelines.engines.kedro_engine import KedroBackend

    pipeline = CdkPipeline(synth=RecordingSynth(), config=PipelineConfig(default_backend="kedro"))
    assert isinstance(pipeline.backend, KedroBackend)


def test_scenario_application_stages_in_call_order(make_pipeline, backend) -> None:
    pipeline = make_pipeline()
    pipeline.add_application_stage(ApplicationStage("StageA"))
    pipeline.add_application_stage(ApplicationStage("StageB"))

    pipeline.render_to_backend()

    assert backend.calls == [(pipeline, pipeline.graph)]
    assert [c["name"] for c in backend.snapshots[0]["children"]] == ["Source", "Synth", "StageA", "StageB"]


def test_scenario_group_keeps_creation_position(make_pipeline, backend) -> None:
    pipeline = make_pipeline()
    prod = pipeline.add_deployment_group("prod")
    prod.add_application_stage(ApplicationStage("StageC"))
    pipeline.add_application_stage(ApplicationStage("StageD"))

    pipeline.render_to_backend()

    children = backend.snapshots[0]["children"]
    assert [c["name"] for c in children] == ["Source", "Synth", "prod", "StageD"]
    assert [c["name"] for c in children[2]["children"]] == ["StageC"]


def test_group_position_fixed_regardless_of_later_additions(make_pipeline) -> None:
    pipeline = make_pipeline()
    early = pipeline.add_deployment_group("early")
    pipeline.add_application_stage(ApplicationStage("Middle"))
    late = pipeline.add_deployment_group("late")
    late.add_application_stage(ApplicationStage("L1"))
    early.add_application_stage(ApplicationStage("E1"))
    early.add_application_stage(ApplicationStage("E2"))

    assert _phase_names(pipeline) == ["Source", "Synth", "early", "Middle", "late"]
    assert [n.name for n in early.phase] == ["E1", "E2"]
    assert early.name == "early"
    assert pipeline.graph.phases[0] is early.phase


def test_source_and_synth_precede_user_phases(make_pipeline) -> None:
    pipeline = make_pipeline()
    pipeline.add_deployment_group("first")
    pipeline.add_application_stage(ApplicationStage("second"))
    children = pipeline.graph.children
    assert children[0] is pipeline.graph.source_stage
    assert children[1] is pipeline.graph.synth_stage


def test_scenario_mutation_after_render_is_rejected(make_pipeline, backend) -> None:
    pipeline = make_pipeline()
    pipeline.add_application_stage(ApplicationStage("StageA"))
    pipeline.render_to_backend()
    snapshot = pipeline.graph.to_dict()

    with pytest.raises(ImmutablePipelineError):
        pipeline.add_application_stage(ApplicationStage("StageE"))
    with pytest.raises(ImmutablePipelineError):
        pipeline.add_deployment_group("late")

    assert pipeline.built
    assert pipeline.graph.to_dict() == snapshot == backend.snapshots[0]


def test_render_twice_raises(make_pipeline, backend) -> None:
    pipeline = make_pipeline()
    assert pipeline.render_to_backend() == {"rendered": "Pipeline"}
    with pytest.raises(DoubleRenderError):
        pipeline.render_to_backend()
    assert len(backend.calls) == 1


def test_prepare_is_idempotent(make_pipeline, backend) -> None:
    pipeline = make_pipeline()
    pipeline.prepare()
    pipeline.prepare()
    assert len(backend.calls) == 1


def test_context_manager_renders_on_clean_exit(make_pipeline, backend) -> None:
    with make_pipeline() as pipeline:
        pipeline.add_application_stage(ApplicationStage("Beta"))
        assert backend.calls == []
    assert len(backend.calls) == 1
    assert pipeline.built


def test_context_manager_does_not_render_after_explicit_render(make_pipeline, backend) -> None:
    with make_pipeline() as pipeline:
        pipeline.render_to_backend()
    assert len(backend.calls) == 1


def test_context_manager_skips_render_on_error(make_pipeline, backend) -> None:
    with pytest.raises(RuntimeError):
        with make_pipeline():
            raise RuntimeError("boom")
    assert backend.calls == []


def test_backend_failure_leaves_pipeline_built(make_pipeline) -> None:
    class FailingBackend:
        def render_backend(self, *, scope, execution_graph):
            raise OSError("backend unavailable")

    pipeline = make_pipeline(backend=FailingBackend())
    with pytest.raises(OSError):
        pipeline.render_to_backend()
    assert pipeline.built
    with pytest.raises(ImmutablePipelineError):
        pipeline.add_application_stage(ApplicationStage("Late"))


def test_collaborator_errors_propagate_unwrapped(backend) -> None:
    class BrokenSynth:
        def add_to_execution_graph(self, *, parent, root, scope):
            raise KeyError("synth")

    with pytest.raises(KeyError):
        CdkPipeline(synth=BrokenSynth(), backend=backend)


def test_add_deployment_appends_custom_deployment(make_pipeline) -> None:
    seen = {}

    class CustomDeployment:
        def produce_execution_graph(self, *, scope, pipeline_graph, asset_publishing):
            seen.update(scope=scope, graph=pipeline_graph, policy=asset_publishing,
                        phases=len(pipeline_graph.phases))
            return ExecutionGraph("Custom")

    pipeline = make_pipeline()
    subtree = pipeline.add_deployment(CustomDeployment())

    assert seen == {"scope": pipeline, "graph": pipeline.graph,
                    "policy": pipeline.asset_publishing, "phases": 0}
    assert pipeline.graph.phases == (subtree,)


def test_group_deployments_see_same_graph_and_policy(make_pipeline) -> None:
    seen = []

    class CustomDeployment:
        def produce_execution_graph(self, *, scope, pipeline_graph, asset_publishing):
            seen.append((scope, pipeline_graph, asset_publishing))
            return ExecutionGraph(f"D{len(seen)}")

    pipeline = make_pipeline()
    group = pipeline.add_deployment_group("wave")
    group.add_deployment(CustomDeployment())
    group.add_deployment(CustomDeployment())

    assert seen == [(pipeline, pipeline.graph, pipeline.asset_publishing)] * 2
    assert [n.name for n in group.phase] == ["D1", "D2"]


def test_strict_group_rejects_deployment_after_build(make_pipeline, backend) -> None:
    pipeline = make_pipeline(config=PipelineConfig(strict_deployment_groups=True))
    group = pipeline.add_deployment_group("prod")
    pipeline.render_to_backend()

    with pytest.raises(ImmutablePipelineError):
        group.add_application_stage(ApplicationStage("Late"))
    assert len(group.phase) == 0


def test_lenient_group_accepts_deployment_after_build(make_pipeline, backend) -> None:
    pipeline = make_pipeline(config=PipelineConfig(strict_deployment_groups=False))
    group = pipeline.add_deployment_group("prod")
    pipeline.render_to_backend()

    group.add_application_stage(ApplicationStage("Late"))

    assert [n.name for n in group.phase] == ["Late"]
    assert [c["name"] for c in backend.snapshots[0]["children"][2].get("children", [])] == []


def test_approvers_follow_stage_deployment(make_pipeline) -> None:
    pipeline = make_pipeline()
    subtree = pipeline.add_application_stage(
        ApplicationStage("Beta"),
        AddApplicationOptions(approvers=(ManualApproval("Promote"),)),
    )
    assert subtree.children[-1].name == "Promote"


def test_identical_declarations_build_identical_graphs() -> None:
    def declare() -> dict:
        pipeline = CdkPipeline(
            sources=[RecordingSource("Checkout")],
            synth=ShellSynth(commands=("make",)),
            backend=RecordingBackend(),
        )
        pipeline.add_application_stage(ApplicationStage("Beta"))
        group = pipeline.add_deployment_group("Prod")
        group.add_application_stage(ApplicationStage("EU"))
        group.add_application_stage(ApplicationStage("US"))
        pipeline.render_to_backend()
        return pipeline.graph.to_dict()

    assert declare() == declare()
