# src/atlas_pipeline/core/engine/engine.py
"""
Engine de execução do pipeline do Atlas Pipeline.

O Executor percorre os batches topológicos do grafo: Steps de um mesmo
batch são despachados concorrentemente (limitados por
`engine.max_parallel`); um batch só começa depois que todos os Steps do
batch anterior chegaram a um estado terminal.

Por Step e por tentativa:
    1. resolve o ambiente declarado (MissingBindingError → falha terminal, sem retry)
    2. despacha o handler da ação (command | publish | deploy)
    3. aplica o timeout por tentativa (o processo é morto ao estourar)
    4. em falha reexecutável, aguarda o backoff com `await sleep(...)`

Propagação de falhas (fail-isolated):
    - Um Step com falha terminal marca todos os dependentes transitivos
      como SKIPPED, sem executá-los
    - Steps sem caminho a partir da falha seguem normalmente

Fail-fast (opcional, `engine.fail_fast`):
    - Quando o fecho de dependentes da falha cobre todos os Steps ainda não
      agendados, Steps irmãos em andamento são cancelados (best-effort)
    - O Executor sempre aguarda os Steps cancelados e registra cada um como
      FAILED (StepCancelledError); nenhum Step é abandonado sem resultado

Erros:
    - Toda exceção vira AtlasErrorPayload em `StepResult.error`
    - Exceções fora da taxonomia viram ENGINE_EXECUTION_ERROR (sem stack trace)
    - Ação sem handler registrado vira ENGINE_CONFIGURATION_ERROR
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Set

from atlas_pipeline import __version__
from atlas_pipeline.core.artifacts.publisher import Publisher
from atlas_pipeline.core.artifacts.registry import FileSystemRegistry, Registry
from atlas_pipeline.core.config.settings import EngineSettings
from atlas_pipeline.core.deploy.controller import DeploymentController
from atlas_pipeline.core.deploy.targets import CommandDeploymentTarget, DeploymentTarget
from atlas_pipeline.core.environment.resolver import ScopedEnv, resolve
from atlas_pipeline.core.environment.store import BindingStore
from atlas_pipeline.core.errors import (
    AtlasErrorPayload,
    engine_configuration_error,
    from_exception,
    upstream_failed,
)
from atlas_pipeline.core.exceptions import (
    AtlasException,
    MissingBindingError,
    PipelineValidationError,
    StepCancelledError,
    StepExecutionError,
)
from atlas_pipeline.core.pipeline.context import RunContext
from atlas_pipeline.core.pipeline.types import StepAction, StepResult, StepSpec, StepStatus
from atlas_pipeline.core.process.runner import CommandRunner, SubprocessRunner
from atlas_pipeline.core.retry import Sleep, is_retryable
from atlas_pipeline.core.traceability import manifest as mf

from .actions import ActionHandler, ActionResult, default_actions, output_key
from .outcome import RunOutcome, summarize
from .planner import PipelineGraph, topological_batches


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _Batch:
    """Estado de um batch em execução (tasks por Step e cancelamentos pedidos)."""

    def __init__(self, index: int):
        self.index = index
        self.tasks: Dict[str, "asyncio.Task[None]"] = {}
        self.cancel_requested: Set[str] = set()


class Executor:
    """Executor canônico do Atlas Pipeline (batches + retry + propagação de falhas)."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        *,
        runner: Optional[CommandRunner] = None,
        actions: Optional[Mapping[StepAction, ActionHandler]] = None,
        store: Optional[BindingStore] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings or EngineSettings()
        self.runner = runner or SubprocessRunner(
            inherit_env=self.settings.inherit_env,
            capture_output=self.settings.capture_output,
            max_output_bytes=self.settings.max_output_bytes,
        )
        self.actions: Dict[StepAction, ActionHandler] = dict(actions or default_actions(runner=self.runner))
        self.store = store or BindingStore()
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Registro de resultados (RunContext + Manifest)
    # ------------------------------------------------------------------
    def _record_running(self, ctx: RunContext, step: StepSpec, attempt: int, started: float) -> None:
        ctx.record(
            StepResult(
                step_name=step.name,
                status=StepStatus.RUNNING,
                attempts=attempt,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        )
        if ctx.manifest is not None:
            mf.step_started(ctx.manifest, step_id=step.name, action=step.action.value, ts=_now(), attempt=attempt)
        ctx.log(step_id=step.name, level="INFO", message="step started", attempt=attempt)

    def _record_success(
        self,
        ctx: RunContext,
        step: StepSpec,
        result: ActionResult,
        attempt: int,
        started: float,
    ) -> StepResult:
        outputs = ctx.redact(dict(result.outputs))
        for key, value in result.outputs.items():
            ctx.set_artifact(output_key(step.name, key), value)

        final = ctx.record(
            StepResult(
                step_name=step.name,
                status=StepStatus.SUCCEEDED,
                exit_code=result.exit_code,
                attempts=attempt,
                duration_ms=int((time.monotonic() - started) * 1000),
                summary=ctx.redact(result.summary),
                outputs=outputs,
            )
        )
        if ctx.manifest is not None:
            mf.step_finished(ctx.manifest, step_id=step.name, ts=_now(), result=final.to_dict())
        ctx.log(step_id=step.name, level="INFO", message="step succeeded", attempts=attempt, duration_ms=final.duration_ms)
        return final

    def _record_failure(
        self,
        ctx: RunContext,
        graph: PipelineGraph,
        step: StepSpec,
        error: AtlasErrorPayload,
        attempts: int,
        started: float,
        exit_code: Optional[int] = None,
    ) -> StepResult:
        payload: Dict[str, Any] = ctx.redact(error.to_dict())
        final = ctx.record(
            StepResult(
                step_name=step.name,
                status=StepStatus.FAILED,
                exit_code=exit_code,
                attempts=attempts,
                duration_ms=int((time.monotonic() - started) * 1000),
                summary=payload["message"],
                error=payload,
            )
        )
        if ctx.manifest is not None:
            mf.step_failed(ctx.manifest, step_id=step.name, ts=_now(), error=payload, attempts=attempts)
        ctx.log(
            step_id=step.name,
            level="ERROR",
            message="step failed",
            error_type=payload["type"],
            error_message=payload["message"],
            attempts=attempts,
        )
        self._skip_downstream(ctx, graph, step.name)
        return final

    def _skip_downstream(self, ctx: RunContext, graph: PipelineGraph, failed: str) -> None:
        for name in graph.order_of(graph.downstream(failed)):
            if ctx.status_of(name).is_terminal:
                continue
            payload = upstream_failed(step=name, failed_upstream=failed).to_dict()
            ctx.record(
                StepResult(
                    step_name=name,
                    status=StepStatus.SKIPPED,
                    summary=payload["message"],
                    error=payload,
                )
            )
            if ctx.manifest is not None:
                mf.step_skipped(ctx.manifest, step_id=name, ts=_now(), failed_upstream=failed)
            ctx.log(step_id=name, level="WARNING", message="step skipped", failed_upstream=failed)

    # ------------------------------------------------------------------
    # Fail-fast
    # ------------------------------------------------------------------
    def _maybe_cancel_siblings(self, ctx: RunContext, graph: PipelineGraph, batches: List[Any], batch: _Batch, failed: str) -> None:
        if not self.settings.fail_fast:
            return
        unscheduled = [
            name
            for later in batches[batch.index + 1:]
            for name in later
            if not ctx.status_of(name).is_terminal
        ]
        # o fecho de dependentes já foi marcado SKIPPED; sobra algo independente?
        if unscheduled:
            return
        for name, task in batch.tasks.items():
            if name != failed and not task.done() and not ctx.status_of(name).is_terminal:
                batch.cancel_requested.add(name)
                task.cancel()
        if batch.cancel_requested:
            ctx.log(
                step_id=failed,
                level="WARNING",
                message="fail-fast: cancelling in-flight steps",
                cancelled=sorted(batch.cancel_requested),
            )

    # ------------------------------------------------------------------
    # Execução de um Step
    # ------------------------------------------------------------------
    async def _attempt(self, handler: ActionHandler, step: StepSpec, env: ScopedEnv, ctx: RunContext) -> ActionResult:
        if step.timeout_seconds is None:
            return await handler(step, env, ctx)
        try:
            return await asyncio.wait_for(handler(step, env, ctx), timeout=step.timeout_seconds)
        except asyncio.TimeoutError:
            raise StepExecutionError(
                message=f"Step excedeu o timeout de {step.timeout_seconds:g}s",
                details={"step": step.name, "timed_out": True, "timeout_seconds": step.timeout_seconds},
                hint="Aumente `timeout` do Step ou investigue o comando travado.",
            ) from None

    async def _execute_step(
        self,
        step: StepSpec,
        graph: PipelineGraph,
        ctx: RunContext,
        batches: List[Any],
        batch: _Batch,
        semaphore: asyncio.Semaphore,
    ) -> None:
        started = time.monotonic()
        attempt = 0
        try:
            async with semaphore:
                started = time.monotonic()
                try:
                    env = resolve(step, self.store)
                except MissingBindingError as exc:
                    self._record_failure(ctx, graph, step, from_exception(exc, step=step.name), 0, started)
                    self._maybe_cancel_siblings(ctx, graph, batches, batch, step.name)
                    return
                ctx.register_secrets(env.secret_values)

                handler = self.actions.get(step.action)
                if handler is None:
                    error = engine_configuration_error(
                        message=f"Nenhum handler registrado para a ação '{step.action.value}'",
                        details={"step": step.name, "action": step.action.value},
                    )
                    self._record_failure(ctx, graph, step, error, 0, started)
                    self._maybe_cancel_siblings(ctx, graph, batches, batch, step.name)
                    return

                while True:
                    attempt += 1
                    self._record_running(ctx, step, attempt, started)
                    try:
                        result = await self._attempt(handler, step, env, ctx)
                    except Exception as exc:
                        if attempt < step.retry.max_attempts and is_retryable(exc):
                            delay = step.retry.delay_for(attempt)
                            ctx.log(
                                step_id=step.name,
                                level="WARNING",
                                message="attempt failed, retrying",
                                attempt=attempt,
                                delay_seconds=delay,
                                error_type=exc.__class__.__name__,
                                error_message=str(exc),
                            )
                            await self._sleep(delay)
                            continue
                        exit_code = exc.details.get("exit_code") if isinstance(exc, AtlasException) else None
                        self._record_failure(
                            ctx, graph, step, from_exception(exc, step=step.name), attempt, started, exit_code
                        )
                        self._maybe_cancel_siblings(ctx, graph, batches, batch, step.name)
                        return
                    self._record_success(ctx, step, result, attempt, started)
                    return
        except asyncio.CancelledError:
            if step.name not in batch.cancel_requested:
                raise
            error = from_exception(
                StepCancelledError(
                    message="Step cancelado por fail-fast",
                    details={"step": step.name},
                    hint="Desative `engine.fail_fast` para que Steps irmãos sempre concluam.",
                ),
                step=step.name,
            )
            self._record_failure(ctx, graph, step, error, attempt, started)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    async def run(self, graph: PipelineGraph, ctx: RunContext) -> RunOutcome:
        """
        Executa o grafo e devolve o RunOutcome.

        O RunContext é mutado durante a run (results, eventos, artefatos,
        Manifest); nenhuma exceção de Step escapa deste método.
        """
        batches = topological_batches(graph)
        semaphore = asyncio.Semaphore(self.settings.max_parallel)

        ctx.mark_pending(graph.names)
        if ctx.manifest is not None:
            mf.add_event(ctx.manifest, event_type="run_started", ts=_now(), payload={"pipeline": graph.name})
        ctx.log(step_id=None, level="INFO", message="run started", pipeline=graph.name, steps=len(graph))

        for index, names in enumerate(batches):
            batch = _Batch(index)
            for name in graph.order_of(names):
                if ctx.status_of(name).is_terminal:
                    continue
                batch.tasks[name] = asyncio.create_task(
                    self._execute_step(graph.get(name), graph, ctx, batches, batch, semaphore),
                    name=f"atlas-step:{name}",
                )
            if batch.tasks:
                await asyncio.gather(*batch.tasks.values())

        outcome = summarize(
            run_id=ctx.run_id,
            pipeline=graph.name,
            order=graph.names,
            results=ctx.results,
            started_at=ctx.started_at.isoformat(),
            finished_at=_now().isoformat(),
        )
        if ctx.manifest is not None:
            mf.add_event(
                ctx.manifest,
                event_type="run_finished",
                ts=_now(),
                payload={"status": outcome.status.value, "failed": outcome.failed, "skipped": outcome.skipped},
            )
        ctx.log(
            step_id=None,
            level="INFO" if outcome.ok else "ERROR",
            message="run finished",
            status=outcome.status.value,
            failed=outcome.failed,
            skipped=outcome.skipped,
        )
        return outcome


def attach_manifest(ctx: RunContext, graph: PipelineGraph, settings: EngineSettings) -> mf.RunManifest:
    """Cria o Manifest da run e o associa ao RunContext."""
    ctx.manifest = mf.create_manifest(
        run_id=ctx.run_id,
        started_at=ctx.started_at,
        pipeline=graph.name,
        atlas_version=__version__,
        definition_hash=graph.document_hash,
        settings_hash=settings.settings_hash,
    )
    return ctx.manifest


def settings_target_factory(settings: EngineSettings, runner: CommandRunner):
    """TargetFactory para os targets declarados em `settings.targets`."""

    def _factory(name: str, env: ScopedEnv) -> DeploymentTarget:
        spec = settings.targets.get(name)
        if spec is None:
            raise PipelineValidationError(
                message=f"Deployment target '{name}' não configurado",
                details={"target": name, "known": sorted(settings.targets)},
                hint="Declare o target em `targets:` no arquivo de settings.",
            )
        try:
            return CommandDeploymentTarget.from_settings(name, spec, runner=runner, env=env)
        except ValueError as e:
            raise PipelineValidationError(message=str(e), details={"target": name}) from e

    return _factory


def build_executor(
    settings: EngineSettings,
    *,
    store: Optional[BindingStore] = None,
    runner: Optional[CommandRunner] = None,
    registry: Optional[Registry] = None,
    controller: Optional[DeploymentController] = None,
    sleep: Sleep = asyncio.sleep,
) -> Executor:
    """Monta um Executor com as ações embutidas configuradas a partir dos settings."""
    runner = runner or SubprocessRunner(
        inherit_env=settings.inherit_env,
        capture_output=settings.capture_output,
        max_output_bytes=settings.max_output_bytes,
    )
    publisher = Publisher(
        registry or FileSystemRegistry(settings.registry_root),
        retry=settings.publish_retry,
        sleep=sleep,
    )
    controller = controller or DeploymentController(readiness=settings.readiness, sleep=sleep)
    actions = default_actions(
        runner=runner,
        publisher=publisher,
        controller=controller,
        target_factory=settings_target_factory(settings, runner),
    )
    return Executor(settings, runner=runner, actions=actions, store=store, sleep=sleep)
