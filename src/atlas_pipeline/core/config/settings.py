# src/atlas_pipeline/core/config/settings.py
"""
Settings tipados do engine.

A configuração efetiva é resolvida em três camadas, sempre via
`deep_merge` (a camada seguinte tem prioridade):

    DEFAULT_SETTINGS → arquivo de settings (YAML/JSON) → overrides explícitos

Seções:
    - engine: paralelismo, fail-fast, timeout padrão por tentativa
    - retry: política padrão de retry dos Steps
    - publish: política de retry de uploads no registry
    - deploy: polling de readiness do DeploymentController
    - process: allowlist de variáveis herdadas e captura de saída
    - registry: diretório do registry local
    - targets: deployment targets baseados em comandos

Invariantes:
    - EngineSettings é imutável e validado na construção
    - O hash dos settings efetivos é registrado no Manifest
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from atlas_pipeline.core.pipeline.types import RetryPolicy

from .errors import InvalidSettingError
from .hashing import compute_config_hash
from .loader import load_document
from .merge import deep_merge


DEFAULT_SETTINGS: Dict[str, Any] = {
    "engine": {
        "fail_fast": False,
        "max_parallel": 8,
        "default_timeout_seconds": None,
    },
    "retry": {
        "max_attempts": 1,
        "backoff_seconds": 1.0,
        "multiplier": 2.0,
        "max_backoff_seconds": 30.0,
    },
    "publish": {
        "max_attempts": 3,
        "backoff_seconds": 1.0,
        "multiplier": 2.0,
        "max_backoff_seconds": 10.0,
    },
    "deploy": {
        "max_polls": 30,
        "poll_interval_seconds": 2.0,
        "multiplier": 1.5,
        "max_poll_interval_seconds": 15.0,
    },
    "process": {
        "inherit_env": ["PATH"],
        "capture_output": True,
        "max_output_bytes": 65536,
    },
    "registry": {
        "root": ".atlas/registry",
    },
    "targets": {},
}


def _policy(section: Mapping[str, Any], name: str) -> RetryPolicy:
    try:
        return RetryPolicy.from_mapping(section)
    except (TypeError, ValueError) as e:
        raise InvalidSettingError(f"Seção '{name}' inválida: {e}") from e


@dataclass(frozen=True)
class EngineSettings:
    fail_fast: bool = False
    max_parallel: int = 8
    default_timeout_seconds: Optional[float] = None
    default_retry: RetryPolicy = field(default_factory=RetryPolicy)
    publish_retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(max_attempts=3, max_backoff_seconds=10.0))
    readiness: RetryPolicy = field(default_factory=lambda: RetryPolicy(max_attempts=30, backoff_seconds=2.0, multiplier=1.5, max_backoff_seconds=15.0))
    inherit_env: Tuple[str, ...] = ("PATH",)
    capture_output: bool = True
    max_output_bytes: int = 65536
    registry_root: str = ".atlas/registry"
    targets: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.max_parallel, int) or isinstance(self.max_parallel, bool) or self.max_parallel < 1:
            raise InvalidSettingError(f"engine.max_parallel deve ser int >= 1, recebido: {self.max_parallel!r}")
        if self.default_timeout_seconds is not None and self.default_timeout_seconds <= 0:
            raise InvalidSettingError("engine.default_timeout_seconds deve ser > 0")
        if self.max_output_bytes < 0:
            raise InvalidSettingError("process.max_output_bytes deve ser >= 0")

    @property
    def settings_hash(self) -> str:
        return compute_config_hash(dict(self.raw))

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "EngineSettings":
        """Constrói settings a partir de um dict já mesclado com os defaults."""
        merged = deep_merge(DEFAULT_SETTINGS, dict(config))
        engine = merged["engine"]
        deploy = merged["deploy"]
        process = merged["process"]

        timeout = engine.get("default_timeout_seconds")
        targets = merged.get("targets") or {}
        if not isinstance(targets, Mapping):
            raise InvalidSettingError("'targets' deve ser um mapeamento")

        return cls(
            fail_fast=bool(engine.get("fail_fast", False)),
            max_parallel=engine.get("max_parallel", 8),
            default_timeout_seconds=float(timeout) if timeout is not None else None,
            default_retry=_policy(merged["retry"], "retry"),
            publish_retry=_policy(merged["publish"], "publish"),
            readiness=_policy(
                {
                    "max_attempts": deploy.get("max_polls"),
                    "backoff_seconds": deploy.get("poll_interval_seconds"),
                    "multiplier": deploy.get("multiplier"),
                    "max_backoff_seconds": deploy.get("max_poll_interval_seconds"),
                },
                "deploy",
            ),
            inherit_env=tuple(process.get("inherit_env") or ()),
            capture_output=bool(process.get("capture_output", True)),
            max_output_bytes=int(process.get("max_output_bytes", 65536)),
            registry_root=str(merged["registry"].get("root", ".atlas/registry")),
            targets={k: dict(v or {}) for k, v in targets.items()},
            raw=merged,
        )


def load_settings(
    path: Optional[Union[str, Path]] = None,
    *,
    overrides: Optional[Mapping[str, Any]] = None,
) -> EngineSettings:
    """
    Resolve os settings efetivos (defaults → arquivo → overrides).

    Raises:
        ConfigError: arquivo ausente/mal formado, conflito de tipos ou valor inválido.
    """
    effective: Dict[str, Any] = dict(DEFAULT_SETTINGS)
    if path is not None:
        effective = deep_merge(effective, load_document(path))
    if overrides:
        effective = deep_merge(effective, dict(overrides))
    return EngineSettings.from_dict(effective)
