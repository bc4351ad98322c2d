# src/atlas_pipeline/core/environment/resolver.py
"""
Resolver de ambiente por Step (least-privilege).

Este módulo produz, para cada Step, um ambiente imutável contendo apenas
os bindings que o Step declarou, nunca o store completo.

Princípios fundamentais:
    - Fail-closed: um nome declarado e ausente impede o Step de rodar
    - Separação: nome declarado como variable precisa existir em variables,
      nome declarado como secret precisa existir em secrets
    - Secrets nunca são interpolados em texto nem registrados em eventos

Invariantes:
    - O ScopedEnv contém exatamente os nomes declarados pelo Step
    - O store de origem não é alterado

Limites explícitos:
    - Não carrega secrets de cofres externos
    - Não executa processos
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Union

from atlas_pipeline.core.exceptions import MissingBindingError, SecretInterpolationError
from atlas_pipeline.core.pipeline.types import StepSpec

from .store import BindingStore


_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(frozen=True)
class ScopedEnv:
    """Ambiente imutável de um Step: apenas os bindings declarados."""

    step_name: str
    secrets: Mapping[str, str] = field(default_factory=dict)
    variables: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "secrets", MappingProxyType(dict(self.secrets)))
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))

    def __repr__(self) -> str:
        return f"ScopedEnv(step={self.step_name!r}, secrets={sorted(self.secrets)}, variables={sorted(self.variables)})"

    @property
    def names(self) -> FrozenSet[str]:
        return frozenset(self.secrets) | frozenset(self.variables)

    @property
    def secret_values(self) -> FrozenSet[str]:
        return frozenset(v for v in self.secrets.values() if v)

    def as_process_env(self) -> Dict[str, str]:
        env = dict(self.variables)
        env.update(self.secrets)
        return env

    def interpolate(self, template: str, *, extra: Optional[Mapping[str, str]] = None) -> str:
        """
        Substitui `${NOME}` por variables (e `extra`, quando fornecido).

        Raises:
            SecretInterpolationError: se `NOME` for um secret.
            MissingBindingError: se `NOME` não estiver disponível.
        """
        lookup: Dict[str, str] = dict(self.variables)
        if extra:
            lookup.update(extra)

        def _sub(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name in self.secrets:
                raise SecretInterpolationError(
                    message=f"Secret '{name}' não pode ser interpolado",
                    details={"name": name, "step": self.step_name},
                    hint="Declare o valor como variable ou remova-o do template.",
                )
            if name not in lookup:
                raise MissingBindingError.for_name(name, step=self.step_name, kind="variable")
            return lookup[name]

        return _PLACEHOLDER.sub(_sub, template)

    def interpolate_value(self, value: Any, *, extra: Optional[Mapping[str, str]] = None) -> Any:
        """Interpolação recursiva em strings de listas/dicts."""
        if isinstance(value, str):
            return self.interpolate(value, extra=extra)
        if isinstance(value, (list, tuple)):
            return [self.interpolate_value(v, extra=extra) for v in value]
        if isinstance(value, Mapping):
            return {k: self.interpolate_value(v, extra=extra) for k, v in value.items()}
        return value


def resolve(
    step: StepSpec,
    secrets_or_store: Union[BindingStore, Mapping[str, str]],
    variables: Optional[Mapping[str, str]] = None,
) -> ScopedEnv:
    """
    Produz o ambiente do Step a partir do snapshot de bindings.

    Aceita `resolve(step, store)` ou `resolve(step, secrets, variables)`.

    Raises:
        MissingBindingError: se algum nome declarado não existir no store
            correspondente. Nenhum ambiente parcial é devolvido.
    """
    if isinstance(secrets_or_store, BindingStore):
        store = secrets_or_store
    else:
        store = BindingStore(secrets=secrets_or_store, variables=variables or {})

    scoped_secrets: Dict[str, str] = {}
    for name in step.secrets:
        if name not in store.secrets:
            raise MissingBindingError.for_name(name, step=step.name, kind="secret")
        scoped_secrets[name] = store.secrets[name]

    scoped_variables: Dict[str, str] = {}
    for name in step.variables:
        if name not in store.variables:
            raise MissingBindingError.for_name(name, step=step.name, kind="variable")
        scoped_variables[name] = store.variables[name]

    return ScopedEnv(step_name=step.name, secrets=scoped_secrets, variables=scoped_variables)
