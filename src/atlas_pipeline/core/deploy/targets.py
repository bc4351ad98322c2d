# src/atlas_pipeline/core/deploy/targets.py
"""
Interface de deployment target e adapter baseado em comandos externos.

Interface (v1):
    - name
    - current_revision() -> tag atualmente servida (ou None)
    - submit_revision(tag) -> revision_id
    - get_status(revision_id) -> PENDING | READY | FAILED

O target é dono da revisão corrente; o Atlas Pipeline só a altera via
`DeploymentController.deploy` e nunca remove o target.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from atlas_pipeline.core.environment.resolver import ScopedEnv
from atlas_pipeline.core.exceptions import StepExecutionError
from atlas_pipeline.core.pipeline.types import CommandSpec
from atlas_pipeline.core.process.runner import CommandRunner


class RevisionStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@runtime_checkable
class DeploymentTarget(Protocol):
    name: str

    async def current_revision(self) -> Optional[str]:
        ...

    async def submit_revision(self, tag: str) -> str:
        ...

    async def get_status(self, revision_id: str) -> RevisionStatus:
        ...


CommandTemplate = Union[str, Sequence[str]]


def _last_line(output: str) -> str:
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    return lines[-1] if lines else ""


class CommandDeploymentTarget:
    """
    Target cujas operações são comandos externos (ex.: CLI do provedor de nuvem).

    Templates aceitam `${TARGET}`, `${TAG}` e `${REVISION_ID}` além das
    variables do Step. Convenções de saída:
        - submit: última linha não vazia = revision_id (vazia → a própria tag)
        - status: última linha = pending | ready | failed; exit code != 0
          conta como PENDING (consulta inconclusiva, o polling continua)
        - current: última linha = tag servida (vazia → None)
    """

    def __init__(
        self,
        name: str,
        *,
        runner: CommandRunner,
        submit: CommandTemplate,
        status: CommandTemplate,
        current: Optional[CommandTemplate] = None,
        env: Optional[ScopedEnv] = None,
        timeout: Optional[float] = None,
    ):
        self.name = name
        self.runner = runner
        self.templates: Dict[str, Optional[CommandTemplate]] = {
            "submit": submit,
            "status": status,
            "current": current,
        }
        self.env = env or ScopedEnv(step_name=f"target:{name}")
        self.timeout = timeout

    @classmethod
    def from_settings(
        cls,
        name: str,
        spec: Mapping[str, Any],
        *,
        runner: CommandRunner,
        env: Optional[ScopedEnv] = None,
    ) -> "CommandDeploymentTarget":
        if "submit" not in spec or "status" not in spec:
            raise ValueError(f"target '{name}' requires 'submit' and 'status' commands")
        return cls(
            name,
            runner=runner,
            submit=spec["submit"],
            status=spec["status"],
            current=spec.get("current"),
            env=env,
            timeout=spec.get("timeout"),
        )

    def _command(self, which: str, **values: str) -> CommandSpec:
        template = self.templates[which]
        extra = {"TARGET": self.name, **values}
        rendered = self.env.interpolate_value(template, extra=extra)
        if isinstance(rendered, str):
            return CommandSpec(shell=rendered)
        return CommandSpec(argv=tuple(rendered))

    async def _run(self, which: str, **values: str):
        command = self._command(which, **values)
        return await self.runner.run(command, self.env.as_process_env(), timeout=self.timeout)

    async def current_revision(self) -> Optional[str]:
        if self.templates["current"] is None:
            return None
        result = await self._run("current")
        if not result.ok:
            return None
        return _last_line(result.output) or None

    async def submit_revision(self, tag: str) -> str:
        result = await self._run("submit", TAG=tag)
        if not result.ok:
            raise StepExecutionError(
                message=f"Submissão da revisão falhou no target '{self.name}'",
                details={"target": self.name, "tag": tag, "exit_code": result.exit_code, "timed_out": result.timed_out},
                retryable=False,
            )
        return _last_line(result.output) or tag

    async def get_status(self, revision_id: str) -> RevisionStatus:
        result = await self._run("status", REVISION_ID=revision_id)
        if not result.ok:
            return RevisionStatus.PENDING
        try:
            return RevisionStatus(_last_line(result.output).lower())
        except ValueError:
            return RevisionStatus.PENDING
