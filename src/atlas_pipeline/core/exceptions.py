"""
Atlas Pipeline: Canonical Exceptions (v1)

Este módulo define as exceções tipadas internas do Atlas Pipeline.

Objetivo:
- Permitir que Engine, Resolver, Publisher e DeploymentController levantem
  exceções semânticas tipadas
- Facilitar o mapeamento determinístico para AtlasErrorPayload
- Declarar explicitamente quais falhas admitem nova tentativa (`retryable`)

Regras:
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
- Valores de secrets nunca entram em `message` ou `details`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AtlasException(Exception):
    """Base class para exceções internas do Atlas Pipeline.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    - `retryable` indica se a política de retry do Step pode reexecutá-lo
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None
    retryable: bool = False

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# ---------------------------------------------------------------------------
# Definição do pipeline
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PipelineValidationError(AtlasException):
    """Definição de pipeline inválida (ciclo, dependência inexistente, nome duplicado)."""


# Nome canônico usado na taxonomia de erros do pipeline.
ValidationError = PipelineValidationError


# ---------------------------------------------------------------------------
# Ambiente (secrets / variables)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MissingBindingError(AtlasException):
    """Binding declarado pelo Step não existe no store correspondente."""

    @classmethod
    def for_name(cls, name: str, *, step: Optional[str] = None, kind: str = "binding") -> "MissingBindingError":
        return cls(
            message=f"Binding declarado ausente: {name}",
            details={"name": name, "step": step, "kind": kind},
            hint="Publique o secret/variable no ambiente antes da run ou remova a declaração do Step.",
        )


@dataclass(frozen=True)
class BindingConflictError(AtlasException):
    """O mesmo nome existe como secret e como variable."""


@dataclass(frozen=True)
class SecretInterpolationError(AtlasException):
    """Tentativa de interpolar um secret em texto (ex.: tag de artefato)."""


# ---------------------------------------------------------------------------
# Execução de Steps
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StepExecutionError(AtlasException):
    """Comando externo terminou com exit code != 0 ou estourou o timeout."""

    retryable: bool = True


@dataclass(frozen=True)
class StepCancelledError(AtlasException):
    """Step em andamento cancelado pelo Engine (fail-fast)."""


# ---------------------------------------------------------------------------
# Publicação de artefatos
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TagCollisionError(AtlasException):
    """Tag já publicada com digest diferente. Nunca é reexecutada."""


@dataclass(frozen=True)
class RegistryTransientError(AtlasException):
    """Falha transitória do registry (rede, indisponibilidade)."""

    retryable: bool = True


@dataclass(frozen=True)
class PublishError(AtlasException):
    """Publicação não concluída após esgotar as tentativas."""


# ---------------------------------------------------------------------------
# Deploy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DeployInProgressError(AtlasException):
    """Já existe um rollout em andamento para o mesmo target."""

    retryable: bool = True


@dataclass(frozen=True)
class RolloutFailedError(AtlasException):
    """Rollout não atingiu readiness e o target foi mantido na última revisão boa."""
