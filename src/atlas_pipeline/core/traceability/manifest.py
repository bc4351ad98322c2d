# src/atlas_pipeline/core/traceability/manifest.py
"""
Manifest v1 de uma run do Atlas Pipeline.

O Manifest é o registro que sobra depois da run: quem rodou (run_id,
pipeline, versão do engine), sobre quais entradas (hash da definição e dos
settings efetivos), o estado final de cada Step e o Event Log na ordem em
que o Engine o escreveu.

O Engine é o único escritor: cada transição de Step corresponde a uma
chamada desta API (`step_started`, `step_finished`, `step_failed`,
`step_skipped`) e nenhuma delas é inferida. Timestamps são gravados em
ISO-8601 UTC e o arquivo persistido é JSON com chaves ordenadas, de modo
que duas runs idênticas produzem diffs legíveis.

Payloads chegam já redigidos; valores de secrets nunca são gravados.

Limites explícitos:
    - Não executa Steps nem decide retry, skip ou fail-fast
    - Não migra Manifests de versões anteriores
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


def _utc(ts: datetime) -> datetime:
    # naive conta como UTC
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts.astimezone(timezone.utc)


def _iso(ts: datetime) -> str:
    return _utc(ts).isoformat()


def _elapsed_ms(start: datetime, end: datetime) -> int:
    delta = _utc(end) - _utc(start)
    return max(0, round(delta.total_seconds() * 1000))


@dataclass
class RunManifest:
    """
    Estado serializável de uma run (ver docstring do módulo).

    Campos:
        - run: metadados da execução
        - inputs: hashes da definição do pipeline e dos settings efetivos
        - steps: estado incremental de cada Step
        - events: Event Log ordenado

    Invariantes:
        - A estrutura completa é serializável em JSON
        - `from_dict(to_dict())` reconstrói o mesmo Manifest
    """

    run: Dict[str, Any]
    inputs: Dict[str, Any]
    steps: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Cópia serializável e independente do estado interno."""
        return {
            "run": dict(self.run),
            "inputs": dict(self.inputs),
            "steps": {k: dict(v) for k, v in self.steps.items()},
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunManifest":
        return cls(
            run=dict(data.get("run", {})),
            inputs=dict(data.get("inputs", {})),
            steps={k: dict(v) for k, v in (data.get("steps", {}) or {}).items()},
            events=[dict(e) for e in (data.get("events", []) or [])],
        )


def create_manifest(
    *,
    run_id: str,
    started_at: datetime,
    pipeline: str,
    atlas_version: str,
    definition_hash: Optional[str],
    settings_hash: Optional[str],
) -> RunManifest:
    """
    Cria o Manifest inicial de uma run.

    ⚠️ Importante: esta função **não emite eventos**. O evento `run_started`
    (e todos os demais) deve ser registrado explicitamente via `add_event`.
    """
    return RunManifest(
        run={
            "run_id": run_id,
            "pipeline": pipeline,
            "started_at": _iso(started_at),
            "atlas_version": atlas_version,
        },
        inputs={
            "definition_hash": definition_hash,
            "settings_hash": settings_hash,
        },
        steps={},
        events=[],
    )


def add_event(
    manifest: RunManifest,
    *,
    event_type: str,
    ts: datetime,
    step_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Adiciona um evento explícito ao Event Log.

    A ordem de chamada é a ordem canônica do Event Log; `step_id` é omitido
    em eventos de escopo global (ex.: run_started).
    """
    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": _iso(ts)}
    if step_id is not None:
        ev["step_id"] = step_id
    if payload is not None:
        ev["payload"] = payload
    manifest.events.append(ev)


def step_started(manifest: RunManifest, *, step_id: str, action: str, ts: datetime, attempt: int = 1) -> None:
    """Marca o Step como `running`; o início da primeira tentativa é preservado."""
    s = manifest.steps.setdefault(step_id, {"step_id": step_id})
    s.setdefault("started_at", _iso(ts))
    s.update({"action": action, "status": "running", "attempts": attempt})
    add_event(manifest, event_type="step_started", ts=ts, step_id=step_id, payload={"action": action, "attempt": attempt})


def _finish(manifest: RunManifest, *, step_id: str, ts: datetime, status: str) -> Dict[str, Any]:
    s = manifest.steps.setdefault(step_id, {"step_id": step_id})
    started_iso = s.get("started_at")
    started_dt = datetime.fromisoformat(started_iso) if started_iso else ts
    s.update({"status": status, "finished_at": _iso(ts), "duration_ms": _elapsed_ms(started_dt, ts)})
    return s


def step_finished(manifest: RunManifest, *, step_id: str, ts: datetime, result: Dict[str, Any]) -> None:
    """Registra a conclusão bem-sucedida do Step a partir de `StepResult.to_dict()`."""
    status = result.get("status", "succeeded")
    s = _finish(manifest, step_id=step_id, ts=ts, status=status)
    s.update(
        {
            "attempts": result.get("attempts", s.get("attempts", 1)),
            "exit_code": result.get("exit_code"),
            "summary": result.get("summary"),
            "outputs": result.get("outputs", {}) or {},
        }
    )
    add_event(
        manifest,
        event_type="step_finished",
        ts=ts,
        step_id=step_id,
        payload={"status": status, "duration_ms": s["duration_ms"]},
    )


def step_failed(manifest: RunManifest, *, step_id: str, ts: datetime, error: Dict[str, Any], attempts: int = 0) -> None:
    """Registra a falha terminal do Step com o AtlasErrorPayload serializado."""
    s = _finish(manifest, step_id=step_id, ts=ts, status="failed")
    s.update({"attempts": attempts, "error": dict(error)})
    add_event(
        manifest,
        event_type="step_failed",
        ts=ts,
        step_id=step_id,
        payload={"type": error.get("type"), "message": error.get("message")},
    )


def step_skipped(manifest: RunManifest, *, step_id: str, ts: datetime, failed_upstream: str) -> None:
    """Registra um Step pulado por falha em dependência (nunca iniciado)."""
    manifest.steps[step_id] = {
        "step_id": step_id,
        "status": "skipped",
        "finished_at": _iso(ts),
        "failed_upstream": failed_upstream,
    }
    add_event(
        manifest,
        event_type="step_skipped",
        ts=ts,
        step_id=step_id,
        payload={"failed_upstream": failed_upstream},
    )


def save_manifest(manifest: RunManifest, path: Union[str, Path]) -> None:
    """Persiste o Manifest em JSON determinístico (chaves ordenadas, UTF-8)."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(manifest.to_dict(), ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")


def load_manifest(path: Union[str, Path]) -> RunManifest:
    p = Path(path)
    return RunManifest.from_dict(json.loads(p.read_text(encoding="utf-8")))
