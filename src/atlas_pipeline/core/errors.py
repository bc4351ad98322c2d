"""
Atlas Pipeline: Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do Atlas Pipeline.
Erros fazem parte do contrato operacional do sistema e aparecem no
relatório da run (RunOutcome) e no Manifest, devendo ser:

- explícitos
- serializáveis
- rastreáveis até o Step de origem

Nenhuma falha é engolida silenciosamente.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from .exceptions import AtlasException


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AtlasErrorPayload:
    """
    Payload canônico de erro do Atlas Pipeline.

    Campos:
    - type: código estável do erro (nome da exceção tipada ou código do engine)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador
    - retryable: se a falha admitia nova tentativa
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None
    retryable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Engine / Execução
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"
ENGINE_CONFIGURATION_ERROR = "ENGINE_CONFIGURATION_ERROR"

# Propagação de falhas
UPSTREAM_FAILED = "UPSTREAM_FAILED"


def from_exception(exc: BaseException, *, step: Optional[str] = None) -> AtlasErrorPayload:
    """Converte exceções em AtlasErrorPayload (serializável, acionável).

    - AtlasException: já vem com message/details/hint/retryable; o nome da
      classe é usado como código estável.
    - Outras exceções: encapsuladas como ENGINE_EXECUTION_ERROR, sem stack trace.
    """
    if isinstance(exc, AtlasException):
        details = dict(exc.details or {})
        if step is not None:
            details.setdefault("step", step)
        return AtlasErrorPayload(
            type=exc.__class__.__name__,
            message=exc.message or "Erro de execução",
            details=details,
            hint=exc.hint,
            retryable=bool(exc.retryable),
        )

    return engine_execution_error(
        step=step,
        exc_type=exc.__class__.__name__,
        exc_message=str(exc) or None,
    )


def engine_execution_error(
    *,
    step: Optional[str] = None,
    exc_type: Optional[str] = None,
    exc_message: Optional[str] = None,
    hint: str = "Verifique os eventos da run para diagnosticar a falha. Nenhum fallback é aplicado automaticamente.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message="Falha inesperada durante a execução do pipeline",
        details={
            "step": step,
            "exc_type": exc_type,
            "exc_message": exc_message,
        },
        hint=hint,
        retryable=False,
    )


def engine_configuration_error(
    *,
    message: str = "Configuração inválida para execução do pipeline",
    details: Optional[Dict[str, Any]] = None,
    hint: str = "Revise a configuração do engine e dos targets antes de reexecutar.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=ENGINE_CONFIGURATION_ERROR,
        message=message,
        details=details or {},
        hint=hint,
        retryable=False,
    )


def upstream_failed(*, step: str, failed_upstream: str) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=UPSTREAM_FAILED,
        message="Step pulado por falha em dependência",
        details={"step": step, "failed_upstream": failed_upstream},
        hint=f"Corrija o Step '{failed_upstream}' e reexecute o pipeline.",
        retryable=False,
    )
