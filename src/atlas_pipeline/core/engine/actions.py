# src/atlas_pipeline/core/engine/actions.py
"""
Handlers de ação despachados pelo Engine.

Cada Step declara uma ação:
    - command: processo externo opaco (CommandAction)
    - publish: publicação idempotente de artefato (PublishAction → Publisher)
    - deploy: rollout de uma tag publicada (DeployAction → DeploymentController)

Um handler recebe o Step, o ambiente resolvido e o RunContext, e devolve
um ActionResult ou levanta uma AtlasException tipada. Retry, timeout e
registro de resultados são responsabilidade do Engine.

Saídas declaradas (`outputs`) são gravadas no artifact store do RunContext
como `"{step}.{chave}"`; é assim que a tag publicada chega ao deploy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Union

from atlas_pipeline.core.artifacts.publisher import Publisher
from atlas_pipeline.core.artifacts.versioning import Artifact, image_tag, version
from atlas_pipeline.core.deploy.controller import DeploymentController, RolloutState
from atlas_pipeline.core.deploy.targets import DeploymentTarget
from atlas_pipeline.core.environment.resolver import ScopedEnv
from atlas_pipeline.core.exceptions import (
    PipelineValidationError,
    RolloutFailedError,
    StepExecutionError,
)
from atlas_pipeline.core.pipeline.context import RunContext
from atlas_pipeline.core.pipeline.types import StepAction, StepSpec
from atlas_pipeline.core.process.runner import CommandRunner


@dataclass(frozen=True)
class ActionResult:
    exit_code: Optional[int] = 0
    summary: str = ""
    outputs: Dict[str, Any] = field(default_factory=dict)


class ActionHandler(Protocol):
    async def __call__(self, step: StepSpec, env: ScopedEnv, ctx: RunContext) -> ActionResult:
        ...


def output_key(step_name: str, key: str) -> str:
    return f"{step_name}.{key}"


def _text(params: Mapping[str, Any], key: str) -> Optional[str]:
    # YAML lê SHAs só com dígitos e `tag: 3` como números
    value = params.get(key)
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise PipelineValidationError(
        message=f"Parâmetro '{key}' deve ser texto, recebido {type(value).__name__}",
        details={"param": key, "type": type(value).__name__},
    )


class CommandAction:
    """Executa o comando externo do Step com o ambiente resolvido."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    async def __call__(self, step: StepSpec, env: ScopedEnv, ctx: RunContext) -> ActionResult:
        if step.command is None:
            raise PipelineValidationError(message=f"Step '{step.name}' sem comando", details={"step": step.name})

        # o timeout por tentativa é aplicado pelo Engine (cancelamento mata o processo)
        result = await self.runner.run(step.command, env.as_process_env())
        if result.output:
            ctx.log(step_id=step.name, level="DEBUG", message="command output", output=result.output)

        if not result.ok:
            raise StepExecutionError(
                message=f"Comando terminou com exit code {result.exit_code}",
                details={
                    "step": step.name,
                    "exit_code": result.exit_code,
                    "timed_out": result.timed_out,
                    "duration_ms": result.duration_ms,
                },
            )
        return ActionResult(exit_code=result.exit_code, summary=f"exit {result.exit_code} in {result.duration_ms}ms")


class PublishAction:
    """
    Deriva versão/tag e publica o artefato via Publisher.

    Parâmetros (`with:`):
        - artifact: caminho do arquivo produzido pelo build (interpolável)
        - tag: tag explícita, ou
        - target + revision (+ group, padrão: group_id da run): tag derivada
        - name: nome lógico do artefato (opcional)
    """

    def __init__(self, publisher: Publisher, *, workdir: Union[str, Path, None] = None):
        self.publisher = publisher
        self.workdir = Path(workdir) if workdir is not None else None

    def _artifact_path(self, raw: str) -> Path:
        path = Path(raw)
        if not path.is_absolute() and self.workdir is not None:
            path = self.workdir / path
        return path

    async def __call__(self, step: StepSpec, env: ScopedEnv, ctx: RunContext) -> ActionResult:
        params = env.interpolate_value(dict(step.params), extra={"GROUP_ID": ctx.group_id, "RUN_ID": ctx.run_id})

        path = self._artifact_path(params["artifact"])
        try:
            artifact = Artifact.from_path(path, name=params.get("name"))
        except FileNotFoundError as e:
            raise StepExecutionError(
                message=f"Artefato não encontrado: {path}",
                details={"step": step.name, "artifact": str(path)},
                hint="Garanta que o Step de build/containerize gerou o arquivo declarado.",
                retryable=False,
            ) from e

        artifact_version: Optional[str] = None
        tag = _text(params, "tag")
        if tag is None:
            group = _text(params, "group") or ctx.group_id
            try:
                artifact_version = version(group, _text(params, "revision"))
                tag = image_tag(_text(params, "target"), group, artifact_version)
            except ValueError as e:
                raise StepExecutionError(
                    message=f"Não foi possível derivar a tag: {e}",
                    details={"step": step.name, "group": group, "revision": _text(params, "revision")},
                    hint="Defina `group_id` no pipeline (ou `with.group`) e uma `revision` não vazia.",
                    retryable=False,
                ) from e

        outcome = await self.publisher.publish(artifact, tag)
        ctx.log(
            step_id=step.name,
            level="INFO",
            message="artifact published" if outcome.uploaded else "artifact already published",
            **outcome.to_dict(),
        )

        outputs = dict(outcome.to_dict())
        outputs["version"] = artifact_version
        return ActionResult(
            exit_code=0,
            summary=f"{tag} ({'uploaded' if outcome.uploaded else 'unchanged'})",
            outputs=outputs,
        )


TargetFactory = Callable[[str, ScopedEnv], DeploymentTarget]


def targets_from_mapping(targets: Mapping[str, DeploymentTarget]) -> TargetFactory:
    def _factory(name: str, env: ScopedEnv) -> DeploymentTarget:
        if name not in targets:
            raise PipelineValidationError(
                message=f"Deployment target desconhecido: {name}",
                details={"target": name, "known": sorted(targets)},
            )
        return targets[name]

    return _factory


class DeployAction:
    """
    Implanta a tag publicada em um deployment target.

    Parâmetros (`with:`):
        - target: nome do target (interpolável)
        - artifact_from: Step de publish cuja tag será implantada, ou
        - tag: tag explícita
    """

    def __init__(self, controller: DeploymentController, target_factory: TargetFactory):
        self.controller = controller
        self.target_factory = target_factory

    async def __call__(self, step: StepSpec, env: ScopedEnv, ctx: RunContext) -> ActionResult:
        params = env.interpolate_value(dict(step.params), extra={"GROUP_ID": ctx.group_id, "RUN_ID": ctx.run_id})

        if "artifact_from" in params:
            key = output_key(params["artifact_from"], "tag")
            if not ctx.has_artifact(key):
                raise StepExecutionError(
                    message=f"Tag publicada por '{params['artifact_from']}' não encontrada",
                    details={"step": step.name, "artifact_from": params["artifact_from"]},
                    retryable=False,
                )
            tag = ctx.get_artifact(key)
        else:
            tag = _text(params, "tag")

        target = self.target_factory(_text(params, "target"), env)
        outcome = await self.controller.deploy(target, tag)
        ctx.log(step_id=step.name, level="INFO", message=f"rollout {outcome.state.value}", **outcome.to_dict())

        if not outcome.ok:
            if outcome.state is RolloutState.FAILED:
                hint = "Nenhuma revisão boa conhecida: o target segue na revisão com falha e requer intervenção."
            else:
                hint = "O target foi mantido na última revisão boa; investigue a revisão antes de reexecutar."
            raise RolloutFailedError(
                message=f"Rollout de '{tag}' em '{target.name}' não ficou saudável",
                details=outcome.to_dict(),
                hint=hint,
            )
        return ActionResult(exit_code=0, summary=f"{target.name} -> {tag}", outputs=outcome.to_dict())


def default_actions(
    *,
    runner: CommandRunner,
    publisher: Optional[Publisher] = None,
    controller: Optional[DeploymentController] = None,
    target_factory: Optional[TargetFactory] = None,
    workdir: Union[str, Path, None] = None,
) -> Dict[StepAction, ActionHandler]:
    actions: Dict[StepAction, ActionHandler] = {StepAction.COMMAND: CommandAction(runner)}
    if publisher is not None:
        actions[StepAction.PUBLISH] = PublishAction(publisher, workdir=workdir)
    if controller is not None and target_factory is not None:
        actions[StepAction.DEPLOY] = DeployAction(controller, target_factory)
    return actions
