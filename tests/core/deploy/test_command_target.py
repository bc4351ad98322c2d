# tests/core/deploy/test_command_target.py
"""
Testes do CommandDeploymentTarget (operações como comandos externos).
"""

import pytest

try:
    from atlas_pipeline.core.deploy.targets import CommandDeploymentTarget, DeploymentTarget, RevisionStatus
    from atlas_pipeline.core.environment.resolver import ScopedEnv
    from atlas_pipeline.core.exceptions import StepExecutionError
    from atlas_pipeline.core.process.runner import CommandResult
    from tests.fixtures.fakes import ScriptedRunner
except Exception as e:  # noqa: BLE001
    CommandDeploymentTarget = None
    DeploymentTarget = None
    RevisionStatus = None
    ScopedEnv = None
    StepExecutionError = None
    CommandResult = None
    ScriptedRunner = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing targets module (CommandDeploymentTarget). Import error: {_IMPORT_ERR}")


def _target(runner, **kwargs):
    return CommandDeploymentTarget.from_settings(
        "prod",
        {
            "submit": "deployctl apply ${TARGET} ${TAG} --region ${REGION}",
            "status": ["deployctl", "status", "${REVISION_ID}"],
            "current": "deployctl current ${TARGET}",
        },
        runner=runner,
        env=ScopedEnv(step_name="release", variables={"REGION": "eu-west-1"}, secrets={"DEPLOY_TOKEN": "t0k"}),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_submit_renders_template_and_returns_revision_id():
    _require_imports()
    cmd = "deployctl apply prod svc:v3 --region eu-west-1"
    runner = ScriptedRunner({cmd: CommandResult(exit_code=0, duration_ms=5, output="applying\nrev-42\n")})
    target = _target(runner)

    revision = await target.submit_revision("svc:v3")

    assert isinstance(target, DeploymentTarget)
    assert revision == "rev-42"
    assert runner.env_of(cmd) == {"REGION": "eu-west-1", "DEPLOY_TOKEN": "t0k"}


@pytest.mark.asyncio
async def test_submit_failure_raises():
    _require_imports()
    runner = ScriptedRunner({"deployctl apply prod svc:v3 --region eu-west-1": 2})

    with pytest.raises(StepExecutionError) as exc:
        await _target(runner).submit_revision("svc:v3")

    assert exc.value.details["exit_code"] == 2
    assert exc.value.retryable is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "result, expected",
    [
        (CommandResult(exit_code=0, duration_ms=1, output="READY\n"), "ready"),
        (CommandResult(exit_code=0, duration_ms=1, output="failed"), "failed"),
        (CommandResult(exit_code=0, duration_ms=1, output="rolling"), "pending"),
        (CommandResult(exit_code=1, duration_ms=1, output="ready"), "pending"),
    ],
)
async def test_status_parsing(result, expected):
    _require_imports()
    runner = ScriptedRunner({"deployctl status rev-42": result})

    status = await _target(runner).get_status("rev-42")

    assert status is RevisionStatus(expected)


@pytest.mark.asyncio
async def test_current_revision():
    _require_imports()
    runner = ScriptedRunner(
        {"deployctl current prod": CommandResult(exit_code=0, duration_ms=1, output="svc:v2\n")}
    )

    assert await _target(runner).current_revision() == "svc:v2"


def test_from_settings_requires_submit_and_status():
    _require_imports()
    with pytest.raises(ValueError):
        CommandDeploymentTarget.from_settings("prod", {"submit": "x"}, runner=ScriptedRunner())
