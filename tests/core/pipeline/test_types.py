# tests/core/pipeline/test_types.py
"""
Testes dos tipos canônicos (RetryPolicy, CommandSpec, StepStatus, StepResult).
"""

import pytest

try:
    from atlas_pipeline.core.pipeline.types import CommandSpec, RetryPolicy, StepResult, StepStatus
except Exception as e:  # noqa: BLE001
    CommandSpec = None
    RetryPolicy = None
    StepResult = None
    StepStatus = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing pipeline types module. Import error: {_IMPORT_ERR}")


def test_backoff_is_exponential_and_bounded():
    _require_imports()
    policy = RetryPolicy(max_attempts=6, backoff_seconds=1.0, multiplier=2.0, max_backoff_seconds=5.0)

    assert [policy.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]
    assert policy.delay_for(0) == 0.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_attempts": 0},
        {"max_attempts": True},
        {"backoff_seconds": -1},
        {"multiplier": 0.5},
    ],
)
def test_invalid_retry_policy(kwargs):
    _require_imports()
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)


def test_command_spec_requires_exactly_one_form():
    _require_imports()
    assert CommandSpec(shell="make build").display() == "make build"
    assert CommandSpec(argv=("go", "test")).display() == "go test"
    with pytest.raises(ValueError):
        CommandSpec()
    with pytest.raises(ValueError):
        CommandSpec(argv=("a",), shell="a")


def test_terminal_statuses():
    _require_imports()
    assert {s for s in StepStatus if s.is_terminal} == {
        StepStatus.SUCCEEDED,
        StepStatus.FAILED,
        StepStatus.SKIPPED,
    }


def test_step_result_to_dict():
    _require_imports()
    result = StepResult(step_name="build", status=StepStatus.SUCCEEDED, exit_code=0, attempts=2, duration_ms=10)

    assert result.to_dict() == {
        "step": "build",
        "status": "succeeded",
        "exit_code": 0,
        "attempts": 2,
        "duration_ms": 10,
        "summary": "",
        "error": None,
        "outputs": {},
    }
