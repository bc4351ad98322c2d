# src/atlas_pipeline/core/traceability/__init__.py
"""
Pacote de rastreabilidade (traceability) do Atlas Pipeline: Manifest v1.

API pública exposta:
    - RunManifest     → estrutura canônica do Manifest
    - create_manifest → criação explícita do Manifest
    - add_event       → registro explícito de eventos no Event Log
    - step_started    → marca início de uma tentativa de um Step
    - step_finished   → registra conclusão bem-sucedida de um Step
    - step_failed     → registra falha terminal de um Step
    - step_skipped    → registra Step pulado por falha em dependência
    - save_manifest   → persistência do Manifest em JSON
    - load_manifest   → restauração determinística do Manifest

Decisões arquiteturais:
    - Nenhum evento é emitido implicitamente
    - A ordem do Event Log reflete a ordem de chamada
"""

from .manifest import (
    RunManifest,
    create_manifest,
    add_event,
    step_started,
    step_finished,
    step_failed,
    step_skipped,
    save_manifest,
    load_manifest,
)

__all__ = [
    "RunManifest",
    "create_manifest",
    "add_event",
    "step_started",
    "step_finished",
    "step_failed",
    "step_skipped",
    "save_manifest",
    "load_manifest",
]
