from __future__ import annotations

import textwrap

import pytest

from pipelines import (
    ConfigService,
    ManualApproval,
    PipelineConfig,
    PipelineConfigError,
    PublishPerDeployment,
    load_pipeline,
)

from conftest import RecordingBackend

DECLARATION = textwrap.dedent("""
    pipeline:
      name: WebService
      asset_publishing: per_deployment
      backend: mermaid
      sources:
        - repository: acme/web-service
          branch: release
        - acme/tools
      synth:
        install_commands: npm ci
        commands: [npx cdk synth]
      phases:
        - stage: Beta
          stacks:
            - name: Api
              assets: [api-bundle]
          approvers:
            - manual: PromoteToProd
              comment: looks good?
        - group: Prod
          stages:
            - stage: ProdEU
              stacks: [Api]
            - stage: ProdUS
              stacks: [Api]
""")


@pytest.fixture
def declaration(tmp_path):
    path = tmp_path / "pipeline.yaml"
    path.write_text(DECLARATION, encoding="utf-8")
    return path


def test_load_pipeline_builds_declared_phases(declaration) -> None:
    backend = RecordingBackend()
    pipeline = load_pipeline(declaration, backend=backend)

    assert pipeline.name == "WebService"
    assert pipeline.backend is backend
    assert isinstance(pipeline.asset_publishing, PublishPerDeployment)
    assert not pipeline.built
    assert [n.name for n in pipeline.graph.source_stage] == ["acme_web-service", "acme_tools"]
    assert pipeline.graph.source_stage.get("acme_web-service").metadata["branch"] == "release"
    build = pipeline.graph.synth_stage.get("Build")
    assert build.metadata["install_commands"] == ["npm ci"]
    assert [p.name for p in pipeline.graph.phases] == ["Beta", "Prod"]
    assert [n.name for n in pipeline.graph.get("Prod")] == ["ProdEU", "ProdUS"]
    beta = pipeline.graph.get("Beta")
    assert [n.name for n in beta] == ["Api-Publish-api-bundle", "Api", "PromoteToProd"]
    assert beta.get("PromoteToProd").metadata["comment"] == "looks good?"


def test_declared_backend_is_used_without_override(declaration) -> None:
    from pipelines.engines.mermaid_engine import MermaidBackend

    assert isinstance(load_pipeline(declaration).backend, MermaidBackend)


def test_service_parses_dict_declaration() -> None:
    service = ConfigService(PipelineConfig(strict_deployment_groups=False))
    service.load_dict({"pipeline": {
        "synth": {"commands": "make"},
        "phases": [{"stage": "Beta", "approvers": [{"shell": "Smoke", "commands": ["./smoke.sh"]}]}],
    }})
    pipeline = service.build_pipeline(backend=RecordingBackend())

    assert pipeline.name == "Pipeline"
    assert pipeline.config.strict_deployment_groups is False
    assert [n.name for n in pipeline.graph.get("Beta")] == ["Smoke"]


def test_parse_approver_builds_manual_approval() -> None:
    approver = ConfigService()._parse_approver({"manual": "Gate"})
    assert approver == ManualApproval(name="Gate")


def test_missing_file_is_a_config_error(tmp_path) -> None:
    with pytest.raises(PipelineConfigError, match="cannot read pipeline declaration"):
        load_pipeline(tmp_path / "absent.yaml")


def test_invalid_yaml(tmp_path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("pipeline: [unclosed", encoding="utf-8")
    with pytest.raises(PipelineConfigError, match="invalid YAML"):
        load_pipeline(path)


@pytest.mark.parametrize("data, message", [
    (None, "top-level 'pipeline'"),
    ({"pipeline": []}, "top-level 'pipeline'"),
])
def test_declaration_must_be_mapping(data, message) -> None:
    with pytest.raises(PipelineConfigError, match=message):
        ConfigService().load_dict(data)


def test_build_requires_loaded_declaration() -> None:
    with pytest.raises(PipelineConfigError, match="no declaration loaded"):
        ConfigService().build_pipeline()


@pytest.mark.parametrize("pipeline, message", [
    ({}, "'synth' mapping"),
    ({"synth": {"commands": []}}, "'synth' mapping"),
    ({"synth": {"commands": "make"}, "sources": "acme/web"}, "'sources' must be a list"),
    ({"synth": {"commands": "make"}, "sources": [{"branch": "main"}]}, "needs 'repository'"),
    ({"synth": {"commands": "make"}, "phases": ["Beta"]}, "must be a mapping"),
    ({"synth": {"commands": "make"}, "phases": [{"stacks": []}]}, "needs 'stage' or 'group'"),
    ({"synth": {"commands": "make"}, "phases": [{"stage": "Beta", "approvers": [{"auto": "x"}]}]},
     "'manual' or 'shell'"),
    ({"synth": {"commands": "make"}, "asset_publishing": "sometimes"}, "unknown asset publishing"),
])
def test_invalid_declarations(pipeline, message) -> None:
    service = ConfigService()
    service.load_dict({"pipeline": pipeline})
    with pytest.raises(PipelineConfigError, match=message):
        service.build_pipeline(backend=RecordingBackend())
