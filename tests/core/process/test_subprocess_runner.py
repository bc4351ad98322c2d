# tests/core/process/test_subprocess_runner.py
"""
Testes de integração do SubprocessRunner com processos reais (/bin/sh).

Os testes asseguram que:
- o exit code do processo é observado como está
- a saída (stdout + stderr) é capturada e truncada no limite
- o processo recebe apenas o ambiente resolvido + allowlist herdada
- timeout mata o processo e devolve `timed_out=True`
- falha ao iniciar o executável vira StepExecutionError não reexecutável
"""

import os
import sys

import pytest

try:
    from atlas_pipeline.core.exceptions import StepExecutionError
    from atlas_pipeline.core.pipeline.types import CommandSpec
    from atlas_pipeline.core.process.runner import CommandRunner, SubprocessRunner
except Exception as e:  # noqa: BLE001
    StepExecutionError = None
    CommandSpec = None
    CommandRunner = None
    SubprocessRunner = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


pytestmark = pytest.mark.skipif(sys.platform.startswith("win"), reason="requires a POSIX shell")


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing process runner module. Import error: {_IMPORT_ERR}")


@pytest.mark.asyncio
async def test_exit_codes():
    _require_imports()
    runner = SubprocessRunner()

    ok = await runner.run(CommandSpec(shell="true"), {})
    failed = await runner.run(CommandSpec(shell="exit 3"), {})

    assert isinstance(runner, CommandRunner)
    assert ok.ok and ok.exit_code == 0
    assert not failed.ok and failed.exit_code == 3
    assert failed.timed_out is False
    assert failed.duration_ms >= 0


@pytest.mark.asyncio
async def test_output_capture_and_truncation():
    _require_imports()
    runner = SubprocessRunner(max_output_bytes=4)

    result = await runner.run(CommandSpec(shell="printf 'abcdef'; printf 'XY' >&2"), {})

    assert result.output == "efXY"


@pytest.mark.asyncio
async def test_environment_is_scoped(tmp_path):
    _require_imports()
    runner = SubprocessRunner(
        inherit_env=("PATH",),
        environ={"PATH": os.environ.get("PATH", "/usr/bin:/bin"), "HOST_SECRET": "leak"},
    )

    result = await runner.run(
        CommandSpec(shell='echo "${SERVICE}:${HOST_SECRET:-none}"', cwd=str(tmp_path)),
        {"SERVICE": "billing"},
    )

    assert result.output.strip() == "billing:none"


@pytest.mark.asyncio
async def test_argv_and_cwd(tmp_path):
    _require_imports()
    (tmp_path / "marker.txt").write_text("x", encoding="utf-8")

    result = await SubprocessRunner().run(CommandSpec(argv=("ls",), cwd=str(tmp_path)), {})

    assert result.ok
    assert "marker.txt" in result.output


@pytest.mark.asyncio
async def test_timeout_kills_process():
    _require_imports()
    result = await SubprocessRunner().run(CommandSpec(argv=("sleep", "10")), {}, timeout=0.2)

    assert result.timed_out is True
    assert not result.ok
    assert result.duration_ms < 5000


@pytest.mark.asyncio
async def test_missing_executable():
    _require_imports()
    with pytest.raises(StepExecutionError) as exc:
        await SubprocessRunner().run(CommandSpec(argv=("definitely-not-a-real-binary-xyz",)), {})

    assert exc.value.retryable is False
    assert exc.value.details["command"] == "definitely-not-a-real-binary-xyz"
