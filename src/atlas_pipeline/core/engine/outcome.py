# src/atlas_pipeline/core/engine/outcome.py
"""
Relatório estruturado de uma run (RunOutcome v1).

Consumido pelo processo chamador (CI hospedeira, CLI) para decidir o
exit code. Toda falha aparece com o Step de origem e o tipo do erro.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from atlas_pipeline.core.pipeline.types import StepResult, StepStatus


class RunStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class RunOutcome:
    """Resultado agregado de uma run."""

    run_id: str
    pipeline: str
    status: RunStatus
    steps: Dict[str, StepResult] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is RunStatus.SUCCESS

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    @property
    def errors(self) -> Dict[str, Dict[str, Any]]:
        """Erros por Step (falhas e skips), com tipo e mensagem."""
        return {
            name: dict(result.error)
            for name, result in self.steps.items()
            if result.error is not None
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "pipeline": self.pipeline,
            "status": self.status.value,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "failed": list(self.failed),
            "skipped": list(self.skipped),
            "steps": {name: r.to_dict() for name, r in self.steps.items()},
        }

    def to_json(self, *, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent, sort_keys=False)


def summarize(
    *,
    run_id: str,
    pipeline: str,
    order: List[str],
    results: Dict[str, StepResult],
    started_at: Optional[str] = None,
    finished_at: Optional[str] = None,
) -> RunOutcome:
    """Consolida resultados em um RunOutcome, preservando a ordem de declaração."""
    steps = {name: results[name] for name in order if name in results}
    failed = [n for n in order if n in steps and steps[n].status is StepStatus.FAILED]
    skipped = [n for n in order if n in steps and steps[n].status is StepStatus.SKIPPED]
    all_ok = len(steps) == len(order) and all(r.status is StepStatus.SUCCEEDED for r in steps.values())
    return RunOutcome(
        run_id=run_id,
        pipeline=pipeline,
        status=RunStatus.SUCCESS if all_ok else RunStatus.FAILED,
        steps=steps,
        failed=failed,
        skipped=skipped,
        started_at=started_at,
        finished_at=finished_at,
    )
