# tests/core/pipeline/test_definition.py
"""
Testes do parser da definição declarativa de pipeline.

Os testes asseguram que:
- `command` string vira shell; lista vira argv
- `needs` é alias de `depends_on`; `retries` e `retry` produzem RetryPolicy
- `defaults` aplica retry/timeout a todos os Steps
- Steps `uses: publish | deploy` exigem os parâmetros mínimos
- chaves desconhecidas e combinações inválidas são rejeitadas

Invariantes:
    - Nenhum campo é ignorado em silêncio
    - Toda falha é PipelineValidationError com o Step em details
"""

import pytest

try:
    from atlas_pipeline.core.exceptions import PipelineValidationError
    from atlas_pipeline.core.pipeline.definition import parse_definition
    from atlas_pipeline.core.pipeline.types import RetryPolicy, StepAction
except Exception as e:  # noqa: BLE001
    PipelineValidationError = None
    parse_definition = None
    RetryPolicy = None
    StepAction = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing definition module. Implement:\n"
            "- src/atlas_pipeline/core/pipeline/definition.py (parse_definition)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def _single(step, **doc):
    return parse_definition({"steps": [step], **doc})["steps"][0]


def test_command_forms_and_aliases():
    _require_imports()
    parsed = parse_definition(
        {
            "name": "svc",
            "group_id": "team-a",
            "steps": [
                {"name": "fetch", "command": ["go", "mod", "download"], "cwd": "service"},
                {"name": "build", "command": "go build ./...", "needs": ["fetch"], "variables": ["GOFLAGS"]},
            ],
        }
    )

    fetch, build = parsed["steps"]
    assert parsed["name"] == "svc"
    assert parsed["group_id"] == "team-a"
    assert fetch.command.argv == ("go", "mod", "download")
    assert fetch.command.cwd == "service"
    assert build.command.shell == "go build ./..."
    assert build.depends_on == frozenset({"fetch"})
    assert build.variables == ("GOFLAGS",)
    assert build.action is StepAction.COMMAND


def test_compact_mapping_form():
    _require_imports()
    parsed = parse_definition({"steps": {"lint": {"command": "make lint"}, "unit": {"command": "make unit"}}})

    assert [s.name for s in parsed["steps"]] == ["lint", "unit"]
    assert parsed["name"] == "pipeline"
    assert parsed["group_id"] is None


def test_retries_shorthand_keeps_default_backoff():
    _require_imports()
    default = RetryPolicy(max_attempts=1, backoff_seconds=0.5, multiplier=3.0, max_backoff_seconds=4.0)
    step = parse_definition({"steps": [{"name": "t", "command": "x", "retries": 2}]}, default_retry=default)["steps"][0]

    assert step.retry == RetryPolicy(max_attempts=3, backoff_seconds=0.5, multiplier=3.0, max_backoff_seconds=4.0)


def test_retry_mapping_and_timeout():
    _require_imports()
    step = _single(
        {
            "name": "push",
            "command": "docker push x",
            "retry": {"max_attempts": 4, "backoff_seconds": 2},
            "timeout_seconds": 30,
        }
    )

    assert step.retry.max_attempts == 4
    assert step.retry.backoff_seconds == 2.0
    assert step.timeout_seconds == 30.0


def test_defaults_section_applies_to_every_step():
    _require_imports()
    parsed = parse_definition(
        {
            "defaults": {"retries": 1, "timeout": 120},
            "steps": [
                {"name": "a", "command": "x"},
                {"name": "b", "command": "y", "retries": 0, "timeout": 5},
            ],
        }
    )

    a, b = parsed["steps"]
    assert a.retry.max_attempts == 2
    assert a.timeout_seconds == 120.0
    assert b.retry.max_attempts == 1
    assert b.timeout_seconds == 5.0


def test_publish_and_deploy_steps():
    _require_imports()
    parsed = parse_definition(
        {
            "steps": [
                {"name": "image", "command": "make image"},
                {
                    "name": "push",
                    "uses": "publish",
                    "depends_on": ["image"],
                    "with": {"artifact": "build/image.tar", "target": "svc", "revision": "${GIT_SHA}"},
                    "variables": ["GIT_SHA"],
                },
                {
                    "name": "release",
                    "uses": "deploy",
                    "depends_on": ["push"],
                    "with": {"target": "prod", "artifact_from": "push"},
                },
            ]
        }
    )

    push, release = parsed["steps"][1:]
    assert push.action is StepAction.PUBLISH
    assert push.command is None
    assert push.params["artifact"] == "build/image.tar"
    assert release.action is StepAction.DEPLOY
    assert release.params == {"target": "prod", "artifact_from": "push"}


@pytest.mark.parametrize(
    "step",
    [
        {"name": "x"},
        {"name": "x", "command": "a", "uses": "publish"},
        {"name": "x", "command": ""},
        {"name": "x", "command": [1, 2]},
        {"name": "x", "command": "a", "unknown": 1},
        {"name": "x", "command": "a", "retries": -1},
        {"name": "x", "command": "a", "retries": 1, "retry": {"max_attempts": 2}},
        {"name": "x", "command": "a", "timeout": 0},
        {"name": "x", "command": "a", "depends_on": "fetch"},
        {"name": "x", "command": "a", "depends_on": ["y"], "needs": ["y"]},
        {"name": "x", "command": "a", "secrets": ["TOKEN"], "variables": ["TOKEN"]},
        {"name": "x", "command": "a", "with": {"k": "v"}},
        {"name": "x", "uses": "rollback"},
        {"name": "x", "uses": "command"},
        {"name": "x", "uses": "publish", "with": {"target": "svc"}},
        {"name": "x", "uses": "publish", "with": {"artifact": "a.tar", "target": "svc"}},
        {"name": "x", "uses": "deploy", "with": {"tag": "svc:v1"}},
        {"name": "x", "uses": "deploy", "with": {"target": "prod"}},
        {"name": "x", "uses": "deploy", "with": {"target": "prod", "artifact_from": "push"}},
        {"name": "", "command": "a"},
    ],
)
def test_invalid_steps_are_rejected(step):
    _require_imports()
    with pytest.raises(PipelineValidationError):
        _single(step)


def test_unknown_document_keys_are_rejected():
    _require_imports()
    with pytest.raises(PipelineValidationError) as exc:
        parse_definition({"steps": [{"name": "a", "command": "x"}], "stages": []})

    assert exc.value.details["keys"] == ["stages"]
