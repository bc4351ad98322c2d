"""
Scripted Deployment Target: Atlas Pipeline (fake para testes)

Target em memória cujo status de readiness segue um roteiro. `current`
acompanha a última revisão submetida, inclusive o reenvio feito no rollback.
Com `reports_current=False` o target imita um provedor sem consulta da
revisão atual.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Sequence

from atlas_pipeline.core.deploy.targets import RevisionStatus


class ScriptedTarget:
    def __init__(
        self,
        name: str,
        *,
        current: Optional[str] = None,
        statuses: Sequence[Any] = (RevisionStatus.READY,),
        submit_delay: float = 0.0,
        submit_error: Optional[BaseException] = None,
        reports_current: bool = True,
    ):
        self.name = name
        self.current = current
        self.statuses: List[Any] = list(statuses)
        self.submit_delay = submit_delay
        self.submit_error = submit_error
        self.reports_current = reports_current
        self.submitted: List[str] = []
        self.status_calls = 0

    async def current_revision(self) -> Optional[str]:
        # targets sem comando `current` não sabem o que estão servindo
        return self.current if self.reports_current else None

    async def submit_revision(self, tag: str) -> str:
        if self.submit_delay:
            await asyncio.sleep(self.submit_delay)
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(tag)
        self.current = tag
        return f"{self.name}-rev-{len(self.submitted)}"

    async def get_status(self, revision_id: str) -> RevisionStatus:
        self.status_calls += 1
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(status, BaseException):
            raise status
        return status
