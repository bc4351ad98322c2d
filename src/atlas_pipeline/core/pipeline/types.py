# src/atlas_pipeline/core/pipeline/types.py
"""
Tipos canônicos do pipeline do Atlas Pipeline.

Este módulo define as estruturas e enums fundamentais que padronizam
a comunicação entre definição do pipeline, Engine, Resolver e camadas
de rastreabilidade.

Os tipos aqui definidos representam:
    - estados de execução de Steps
    - política de retry com backoff exponencial
    - descritor de comando externo (opaco)
    - descritor declarativo de Step
    - resultado imutável produzido pela execução de um Step

Princípios fundamentais:
    - Tipos são estáveis e serializáveis
    - Valores são projetados para persistência em Manifest e relatório
    - Nenhuma lógica de execução vive neste módulo

Invariantes:
    - Enums possuem valores textuais canônicos
    - StepSpec e StepResult são imutáveis
    - Tipos não dependem de engine, config ou CLI

Limites explícitos:
    - Não executa Steps
    - Não planeja pipelines
    - Não interpreta o significado de comandos (build, lint, deploy)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple


class StepStatus(str, Enum):
    """
    Estados possíveis de um Step durante uma run.

    Os valores são strings para facilitar:
        - serialização em JSON
        - persistência em Manifest
        - leitura do relatório pela CI hospedeira

    Estados definidos:
        - PENDING: ainda não despachado
        - RUNNING: em execução (inclui esperas de backoff entre tentativas)
        - SUCCEEDED: comando terminou com exit code 0
        - FAILED: falha terminal (tentativas esgotadas ou erro não reexecutável)
        - SKIPPED: não executado porque uma dependência falhou

    Invariantes:
        - SUCCEEDED, FAILED e SKIPPED são terminais
        - O valor textual do enum é estável e canônico
    """
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.SUCCEEDED, StepStatus.FAILED, StepStatus.SKIPPED)


class StepAction(str, Enum):
    """
    Tipo de trabalho executado por um Step.

    - COMMAND: processo externo opaco (build, lint, test, docker build...)
    - PUBLISH: publicação idempotente de artefato no registry
    - DEPLOY: rollout de uma tag publicada em um deployment target
    """
    COMMAND = "command"
    PUBLISH = "publish"
    DEPLOY = "deploy"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Política de retry com backoff exponencial limitado.

    O atraso antes da tentativa `n + 1` (após a falha da tentativa `n`) é:

        min(backoff_seconds * multiplier ** (n - 1), max_backoff_seconds)

    A mesma estrutura é usada para retries de Steps, de uploads no registry
    e para o polling de readiness do DeploymentController (onde
    `max_attempts` é o número máximo de consultas).

    Invariantes:
        - max_attempts >= 1 (1 significa "sem retry")
        - atrasos nunca são negativos e nunca excedem `max_backoff_seconds`
    """
    max_attempts: int = 1
    backoff_seconds: float = 1.0
    multiplier: float = 2.0
    max_backoff_seconds: float = 30.0

    def __post_init__(self) -> None:
        if not isinstance(self.max_attempts, int) or isinstance(self.max_attempts, bool) or self.max_attempts < 1:
            raise ValueError(f"max_attempts must be an int >= 1, got {self.max_attempts!r}")
        if self.backoff_seconds < 0 or self.max_backoff_seconds < 0:
            raise ValueError("backoff values must be >= 0")
        if self.multiplier < 1:
            raise ValueError(f"multiplier must be >= 1, got {self.multiplier!r}")

    def delay_for(self, attempt: int) -> float:
        """Atraso (segundos) a aguardar depois da falha da tentativa `attempt` (1-based)."""
        if attempt < 1:
            return 0.0
        delay = self.backoff_seconds * (self.multiplier ** (attempt - 1))
        return float(min(delay, self.max_backoff_seconds))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, base: Optional["RetryPolicy"] = None) -> "RetryPolicy":
        base = base or cls()
        return cls(
            max_attempts=int(data.get("max_attempts", base.max_attempts)),
            backoff_seconds=float(data.get("backoff_seconds", base.backoff_seconds)),
            multiplier=float(data.get("multiplier", base.multiplier)),
            max_backoff_seconds=float(data.get("max_backoff_seconds", base.max_backoff_seconds)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "backoff_seconds": self.backoff_seconds,
            "multiplier": self.multiplier,
            "max_backoff_seconds": self.max_backoff_seconds,
        }


@dataclass(frozen=True)
class CommandSpec:
    """
    Descritor opaco de invocação externa.

    - argv: vetor de argumentos (executado sem shell)
    - shell: linha de comando executada via `/bin/sh -c`
    - cwd: diretório de trabalho opcional

    Exatamente um entre `argv` e `shell` é preenchido.
    """
    argv: Tuple[str, ...] = ()
    shell: Optional[str] = None
    cwd: Optional[str] = None

    def __post_init__(self) -> None:
        if bool(self.argv) == bool(self.shell):
            raise ValueError("CommandSpec requires exactly one of argv or shell")

    def display(self) -> str:
        return self.shell if self.shell is not None else " ".join(self.argv)


@dataclass(frozen=True)
class StepSpec:
    """
    Descritor declarativo de um Step do pipeline.

    Campos:
        - name: identificador único do Step
        - depends_on: nomes dos Steps dos quais depende
        - action: tipo de trabalho (comando externo, publish, deploy)
        - command: invocação externa (apenas para `StepAction.COMMAND`)
        - params: parâmetros da ação embutida (`with:` no documento)
        - secrets / variables: nomes de bindings declarados
        - retry: política de retry do Step
        - timeout_seconds: limite por tentativa (None = sem limite)
    """
    name: str
    depends_on: FrozenSet[str] = frozenset()
    action: StepAction = StepAction.COMMAND
    command: Optional[CommandSpec] = None
    params: Mapping[str, Any] = field(default_factory=dict)
    secrets: Tuple[str, ...] = ()
    variables: Tuple[str, ...] = ()
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    timeout_seconds: Optional[float] = None

    @property
    def declared_bindings(self) -> Tuple[str, ...]:
        return tuple(self.secrets) + tuple(self.variables)


@dataclass(frozen=True)
class StepResult:
    """
    Resultado imutável da execução de um Step.

    Campos:
        - step_name: nome do Step
        - status: estado do Step
        - exit_code: exit code do último comando executado (quando houver)
        - attempts: número de tentativas despachadas
        - duration_ms: duração total, incluindo esperas de backoff
        - summary: resumo textual
        - error: AtlasErrorPayload serializado (falhas e skips)
        - outputs: saídas declaradas da ação (ex.: tag publicada)

    Invariantes:
        - Criado como RUNNING quando o Step começa
        - Substituído uma única vez pela versão terminal
        - Nunca alterado após finalizado (frozen)
    """
    step_name: str
    status: StepStatus
    exit_code: Optional[int] = None
    attempts: int = 0
    duration_ms: int = 0
    summary: str = ""
    error: Optional[Dict[str, Any]] = None
    outputs: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step_name,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "attempts": self.attempts,
            "duration_ms": self.duration_ms,
            "summary": self.summary,
            "error": dict(self.error) if self.error else None,
            "outputs": dict(self.outputs),
        }
