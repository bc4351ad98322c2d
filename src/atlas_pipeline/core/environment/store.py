# src/atlas_pipeline/core/environment/store.py
"""
Snapshot imutável de secrets e variables.

O ambiente hospedeiro (CI, operador, arquivo local) popula o store antes
da run; durante a run ele é somente leitura. Secrets e variables vivem em
namespaces separados e um mesmo nome não pode existir nos dois.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from atlas_pipeline.core.config.loader import load_document
from atlas_pipeline.core.exceptions import BindingConflictError


DEFAULT_SECRET_PREFIX = "ATLAS_SECRET_"
DEFAULT_VARIABLE_PREFIX = "ATLAS_VAR_"


def _frozen(values: Optional[Mapping[str, Any]], *, kind: str) -> Mapping[str, str]:
    out = {}
    for key, value in (values or {}).items():
        if not isinstance(key, str) or not key:
            raise BindingConflictError(
                message=f"Nome de {kind} inválido: {key!r}",
                details={"kind": kind},
            )
        if value is None:
            continue
        out[key] = value if isinstance(value, str) else str(value)
    return MappingProxyType(out)


@dataclass(frozen=True)
class BindingStore:
    """Secrets e variables disponíveis para uma run (somente leitura)."""

    secrets: Mapping[str, str] = field(default_factory=dict)
    variables: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        secrets = _frozen(self.secrets, kind="secret")
        variables = _frozen(self.variables, kind="variable")
        overlap = sorted(set(secrets) & set(variables))
        if overlap:
            raise BindingConflictError(
                message=f"Nomes presentes como secret e variable: {overlap}",
                details={"names": overlap},
                hint="Cada binding deve existir em apenas um dos stores.",
            )
        object.__setattr__(self, "secrets", secrets)
        object.__setattr__(self, "variables", variables)

    def __repr__(self) -> str:
        # nunca expor valores de secrets
        return f"BindingStore(secrets={sorted(self.secrets)}, variables={sorted(self.variables)})"

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, str],
        *,
        secret_prefix: str = DEFAULT_SECRET_PREFIX,
        variable_prefix: str = DEFAULT_VARIABLE_PREFIX,
    ) -> "BindingStore":
        """Extrai bindings de variáveis de ambiente prefixadas (prefixo removido)."""
        secrets = {k[len(secret_prefix):]: v for k, v in environ.items() if k.startswith(secret_prefix) and len(k) > len(secret_prefix)}
        variables = {k[len(variable_prefix):]: v for k, v in environ.items() if k.startswith(variable_prefix) and len(k) > len(variable_prefix)}
        return cls(secrets=secrets, variables=variables)

    @classmethod
    def from_files(
        cls,
        *,
        variables_path: Optional[Union[str, Path]] = None,
        secrets_path: Optional[Union[str, Path]] = None,
    ) -> "BindingStore":
        variables = load_document(variables_path) if variables_path is not None else {}
        secrets = load_document(secrets_path) if secrets_path is not None else {}
        return cls(secrets=secrets, variables=variables)

    def merged(self, other: "BindingStore") -> "BindingStore":
        """Novo store com os bindings de `other` sobrepondo os deste."""
        return BindingStore(
            secrets={**self.secrets, **other.secrets},
            variables={**self.variables, **other.variables},
        )
