# src/atlas_pipeline/core/deploy/controller.py
"""
Controlador de rollout por deployment target.

Máquina de estados por target:

    IDLE -> ROLLOUT_IN_PROGRESS -> {HEALTHY, ROLLED_BACK, FAILED}

Princípios fundamentais:
    - No máximo um rollout em andamento por target; um segundo pedido
      falha imediatamente com DeployInProgressError (nunca disputa)
    - Targets diferentes são implantados em paralelo (lock por target,
      nunca lock global)
    - Readiness é consultada com tentativas limitadas e backoff
    - Estourar o prazo de readiness devolve o target à última revisão
      conhecida como boa; nada fica parcialmente aplicado
    - Cancelamento durante a readiness (timeout do Step, fail-fast)
      também restaura a revisão boa antes de propagar

Revisão boa conhecida:
    - a reportada por `current_revision()` antes do submit, ou
    - a última tag que este controller levou a HEALTHY no target
    - sem nenhuma das duas, o rollout termina FAILED: nada foi restaurado

Decisões arquiteturais:
    - Se o target já serve a tag desejada, o deploy é um no-op HEALTHY
      (reexecução idempotente da mesma run)
    - Falha de submissão não aplica nada: o resultado é ROLLED_BACK sem
      reenvio da revisão anterior

Limites explícitos:
    - Não conhece a API do provedor (ver `targets`)
    - Não publica artefatos
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from atlas_pipeline.core.exceptions import DeployInProgressError
from atlas_pipeline.core.pipeline.types import RetryPolicy
from atlas_pipeline.core.retry import Sleep, is_retryable

from .targets import DeploymentTarget, RevisionStatus


DEFAULT_READINESS = RetryPolicy(max_attempts=30, backoff_seconds=2.0, multiplier=1.5, max_backoff_seconds=15.0)


class RolloutState(str, Enum):
    IDLE = "idle"
    ROLLOUT_IN_PROGRESS = "rollout_in_progress"
    HEALTHY = "healthy"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


@dataclass(frozen=True)
class DeployOutcome:
    target: str
    tag: str
    state: RolloutState
    revision_id: Optional[str] = None
    previous_revision: Optional[str] = None
    rolled_back_to: Optional[str] = None
    polls: int = 0
    submitted: bool = False
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is RolloutState.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "tag": self.tag,
            "state": self.state.value,
            "revision_id": self.revision_id,
            "previous_revision": self.previous_revision,
            "rolled_back_to": self.rolled_back_to,
            "polls": self.polls,
            "submitted": self.submitted,
            "reason": self.reason,
        }


class DeploymentController:
    """Conduz rollouts com exclusão mútua por target."""

    def __init__(self, *, readiness: RetryPolicy = DEFAULT_READINESS, sleep: Sleep = asyncio.sleep):
        self.readiness = readiness
        self._sleep = sleep
        self._locks: Dict[str, asyncio.Lock] = {}
        self._states: Dict[str, RolloutState] = {}
        self._known_good: Dict[str, str] = {}

    def state_of(self, target_name: str) -> RolloutState:
        return self._states.get(target_name, RolloutState.IDLE)

    def known_good(self, target_name: str) -> Optional[str]:
        return self._known_good.get(target_name)

    async def deploy(self, target: DeploymentTarget, artifact_tag: str) -> DeployOutcome:
        """
        Implanta `artifact_tag` em `target`.

        Raises:
            DeployInProgressError: já existe rollout em andamento para o target.
        """
        lock = self._locks.setdefault(target.name, asyncio.Lock())
        # sem await entre a checagem e a aquisição: atômico no event loop
        if lock.locked():
            raise DeployInProgressError(
                message=f"Rollout já em andamento para o target '{target.name}'",
                details={"target": target.name, "tag": artifact_tag},
                hint="Aguarde o rollout atual terminar e reexecute o deploy.",
            )
        async with lock:
            self._states[target.name] = RolloutState.ROLLOUT_IN_PROGRESS
            try:
                outcome = await self._rollout(target, artifact_tag)
            except BaseException:
                if self._states[target.name] is RolloutState.ROLLOUT_IN_PROGRESS:
                    self._states[target.name] = RolloutState.IDLE
                raise
            self._states[target.name] = outcome.state
            if outcome.ok:
                self._known_good[target.name] = artifact_tag
            return outcome

    async def _rollout(self, target: DeploymentTarget, tag: str) -> DeployOutcome:
        previous = await target.current_revision()
        if previous == tag:
            return DeployOutcome(
                target=target.name,
                tag=tag,
                state=RolloutState.HEALTHY,
                previous_revision=previous,
                reason="target already serving tag",
            )

        try:
            revision_id = await target.submit_revision(tag)
        except Exception as exc:
            return DeployOutcome(
                target=target.name,
                tag=tag,
                state=RolloutState.ROLLED_BACK,
                previous_revision=previous,
                rolled_back_to=previous,
                reason=f"submit failed: {exc}",
            )

        restore_to = previous if previous is not None else self._known_good.get(target.name)
        try:
            polls, ready, reason = await self._await_ready(target, revision_id)
        except asyncio.CancelledError:
            if restore_to is not None:
                # o submit de restauração termina mesmo com novo cancelamento
                await asyncio.shield(target.submit_revision(restore_to))
                self._states[target.name] = RolloutState.ROLLED_BACK
            else:
                self._states[target.name] = RolloutState.FAILED
            raise

        if ready:
            return DeployOutcome(
                target=target.name,
                tag=tag,
                state=RolloutState.HEALTHY,
                revision_id=revision_id,
                previous_revision=previous,
                polls=polls,
                submitted=True,
            )

        if restore_to is None:
            return DeployOutcome(
                target=target.name,
                tag=tag,
                state=RolloutState.FAILED,
                revision_id=revision_id,
                previous_revision=previous,
                polls=polls,
                submitted=True,
                reason=f"{reason}; no known-good revision to restore",
            )

        await target.submit_revision(restore_to)
        return DeployOutcome(
            target=target.name,
            tag=tag,
            state=RolloutState.ROLLED_BACK,
            revision_id=revision_id,
            previous_revision=previous,
            rolled_back_to=restore_to,
            polls=polls,
            submitted=True,
            reason=reason,
        )

    async def _await_ready(self, target: DeploymentTarget, revision_id: str):
        polls = 0
        reason = "readiness deadline exceeded"
        while polls < self.readiness.max_attempts:
            polls += 1
            try:
                status = await target.get_status(revision_id)
            except Exception as exc:
                if not is_retryable(exc):
                    return polls, False, f"status check failed: {exc}"
                status = RevisionStatus.PENDING

            if status is RevisionStatus.READY:
                return polls, True, None
            if status is RevisionStatus.FAILED:
                return polls, False, "revision reported failed"
            if polls < self.readiness.max_attempts:
                await self._sleep(self.readiness.delay_for(polls))
        return polls, False, reason
