# src/atlas_pipeline/core/process/runner.py
"""
Execução de comandos externos opacos.

O Engine não interpreta o que um comando faz (build, lint, docker push);
ele observa apenas exit status, tempo decorrido e, opcionalmente, a
saída capturada para log.

Decisões arquiteturais:
    - O processo recebe somente o ambiente resolvido do Step mais uma
      allowlist explícita herdada do processo pai (ex.: PATH)
    - Timeout mata o processo e aguarda seu término antes de retornar
    - Cancelamento (fail-fast) também mata e aguarda o processo antes de
      propagar `CancelledError`; nenhum processo fica órfão

Limites explícitos:
    - Não faz retry (responsabilidade do Engine)
    - Não registra eventos (responsabilidade do Engine)
"""

from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Sequence, runtime_checkable

from atlas_pipeline.core.exceptions import StepExecutionError
from atlas_pipeline.core.pipeline.types import CommandSpec


@dataclass(frozen=True)
class CommandResult:
    """Observação do Engine sobre um processo externo."""

    exit_code: Optional[int]
    duration_ms: int
    output: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.exit_code == 0


@runtime_checkable
class CommandRunner(Protocol):
    """Interface de execução de processos usada pelo Engine e pelos targets."""

    async def run(
        self,
        command: CommandSpec,
        env: Mapping[str, str],
        *,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        ...


class SubprocessRunner:
    """CommandRunner baseado em `asyncio.create_subprocess_*`."""

    def __init__(
        self,
        *,
        inherit_env: Sequence[str] = ("PATH",),
        capture_output: bool = True,
        max_output_bytes: int = 64 * 1024,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.inherit_env = tuple(inherit_env)
        self.capture_output = capture_output
        self.max_output_bytes = max_output_bytes
        self._environ = os.environ if environ is None else environ

    def process_env(self, env: Mapping[str, str]) -> dict:
        base = {k: self._environ[k] for k in self.inherit_env if k in self._environ}
        base.update(env)
        return base

    async def _spawn(self, command: CommandSpec, env: dict) -> asyncio.subprocess.Process:
        stdout = asyncio.subprocess.PIPE if self.capture_output else asyncio.subprocess.DEVNULL
        stderr = asyncio.subprocess.STDOUT if self.capture_output else asyncio.subprocess.DEVNULL
        try:
            if command.shell is not None:
                return await asyncio.create_subprocess_shell(
                    command.shell, stdout=stdout, stderr=stderr, env=env, cwd=command.cwd
                )
            return await asyncio.create_subprocess_exec(
                *command.argv, stdout=stdout, stderr=stderr, env=env, cwd=command.cwd
            )
        except OSError as e:
            raise StepExecutionError(
                message=f"Falha ao iniciar comando: {e.strerror or e}",
                details={"command": command.display(), "errno": e.errno},
                hint="Verifique se o executável existe e se PATH está em process.inherit_env.",
                retryable=False,
            ) from e

    @staticmethod
    async def _terminate(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        await proc.wait()

    def _decode(self, raw: Optional[bytes]) -> str:
        if not raw:
            return ""
        if len(raw) > self.max_output_bytes:
            raw = raw[-self.max_output_bytes:]
        return raw.decode("utf-8", errors="replace")

    async def run(
        self,
        command: CommandSpec,
        env: Mapping[str, str],
        *,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        started = time.monotonic()
        proc = await self._spawn(command, self.process_env(env))

        def _elapsed() -> int:
            return int((time.monotonic() - started) * 1000)

        try:
            out, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._terminate(proc)
            return CommandResult(exit_code=proc.returncode, duration_ms=_elapsed(), timed_out=True)
        except asyncio.CancelledError:
            await asyncio.shield(self._terminate(proc))
            raise

        return CommandResult(exit_code=proc.returncode, duration_ms=_elapsed(), output=self._decode(out))
