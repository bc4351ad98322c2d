# src/atlas_pipeline/core/pipeline/context.py
"""
RunContext: contexto canônico de uma execução do pipeline.

Uma run = um RunContext. O Engine é o único dono do contexto durante a
run; ao final ele pode ser descartado ou ter Manifest/eventos persistidos.

O RunContext concentra:
- identidade da execução (run_id, group_id, started_at)
- mapa mutável step → StepResult (com finalização única)
- store de artefatos entre Steps (ex.: tag publicada consumida pelo deploy)
- log estruturado de eventos, com redaction de secrets
- Manifest opcional para rastreabilidade forense
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from atlas_pipeline.core.environment.redaction import REDACTED, redact

from .types import StepResult, StepStatus


def new_run_id(group_id: str, sequence: Optional[int] = None) -> str:
    """
    Identificador único de run: `{group_id}-{sequence}`.

    `sequence` deve ser monotonicamente crescente por grupo (ex.: número
    da execução na CI); por padrão usa `time.time_ns()`.
    """
    if not isinstance(group_id, str) or not group_id.strip():
        raise ValueError("group_id must be a non-empty string")
    seq = time.time_ns() if sequence is None else int(sequence)
    if seq < 0:
        raise ValueError("sequence must be >= 0")
    return f"{group_id}-{seq}"


class FinalizedResultError(RuntimeError):
    """Tentativa de alterar um StepResult já finalizado."""


@dataclass
class RunContext:
    """
    Contexto de execução de uma run do pipeline.

    Campos canônicos:
    - run_id: identificador único da execução
    - group_id: grupo/tenant dono da run
    - started_at: timestamp UTC de início
    - results: StepResult corrente por Step
    - events: log estruturado de eventos
    - manifest: Manifest opcional (atualizado pelo Engine)
    - meta: metadados livres (ex.: revisão de código, runner)
    """

    run_id: str
    group_id: str = "default"
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    meta: Dict[str, Any] = field(default_factory=dict)
    manifest: Any = None

    results: Dict[str, StepResult] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    _artifacts: Dict[str, Any] = field(default_factory=dict, repr=False)
    _secret_values: Set[str] = field(default_factory=set, repr=False)

    @classmethod
    def create(cls, group_id: str, *, sequence: Optional[int] = None, **kwargs: Any) -> "RunContext":
        return cls(run_id=new_run_id(group_id, sequence), group_id=group_id, **kwargs)

    # -----------------------------
    # Step results
    # -----------------------------
    def mark_pending(self, names: Iterable[str]) -> None:
        for name in names:
            self.results.setdefault(name, StepResult(step_name=name, status=StepStatus.PENDING))

    def record(self, result: StepResult) -> StepResult:
        """Registra o estado de um Step. Resultados terminais são imutáveis."""
        current = self.results.get(result.step_name)
        if current is not None and current.status.is_terminal:
            raise FinalizedResultError(
                f"Step '{result.step_name}' already finalized as {current.status.value}"
            )
        self.results[result.step_name] = result
        return result

    def status_of(self, name: str) -> StepStatus:
        result = self.results.get(name)
        return result.status if result is not None else StepStatus.PENDING

    # -----------------------------
    # Artifact store
    # -----------------------------
    def set_artifact(self, key: str, value: Any) -> None:
        self._artifacts[key] = value

    def has_artifact(self, key: str) -> bool:
        return key in self._artifacts

    def get_artifact(self, key: str) -> Any:
        if key not in self._artifacts:
            raise KeyError(key)
        return self._artifacts[key]

    # -----------------------------
    # Logging (com redaction)
    # -----------------------------
    def register_secrets(self, values: Iterable[str]) -> None:
        self._secret_values.update(v for v in values if v)

    def redact(self, value: Any) -> Any:
        if not self._secret_values:
            return value
        if isinstance(value, str):
            return redact(value, self._secret_values)
        if isinstance(value, list):
            return [self.redact(v) for v in value]
        if isinstance(value, dict):
            return {k: self.redact(v) for k, v in value.items()}
        return value

    def log(self, *, step_id: Optional[str], level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "step_id": step_id,
            "level": level,
            "message": self.redact(message),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update({k: self.redact(v) for k, v in extra.items()})
        self.events.append(event)


__all__ = ["RunContext", "FinalizedResultError", "new_run_id", "REDACTED"]
