# src/atlas_pipeline/core/config/merge.py
"""
Deep-merge de camadas de configuração.

Camadas aplicadas pelo engine, da mais fraca para a mais forte:

    DEFAULT_SETTINGS → arquivo de settings → overrides (flags de CLI)

Regras por chave:
    - dict em ambos os lados: mescla recursiva
    - qualquer outro valor: o override substitui (listas inclusive)
    - None em qualquer lado é aceito (liga ou desliga um valor opcional)
    - int e float se misturam livremente; bool não é número aqui
    - tipos incompatíveis: ConfigTypeConflictError, sem resultado parcial

Nenhuma das entradas é mutada.
"""

from copy import deepcopy
from typing import Any, Dict, List

from .errors import ConfigTypeConflictError


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    return type(value).__name__


def _check(path: List[str], base_value: Any, override_value: Any) -> None:
    if base_value is None or override_value is None:
        return
    if _kind(base_value) != _kind(override_value):
        raise ConfigTypeConflictError(
            f"Conflito de tipo em '{'.'.join(path)}': "
            f"{type(base_value).__name__} vs {type(override_value).__name__}"
        )


def _merge(base: Dict[str, Any], override: Dict[str, Any], path: List[str]) -> Dict[str, Any]:
    out = deepcopy(base)
    for key, value in override.items():
        here = path + [str(key)]
        current = out.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            out[key] = _merge(current, value, here)
            continue
        if key in out:
            _check(here, current, value)
        out[key] = deepcopy(value)
    return out


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mescla `override` sobre `base` e devolve um novo dict.

    Raises:
        ConfigTypeConflictError: raiz não-dict ou tipos incompatíveis em uma chave.
    """
    if not isinstance(base, dict) or not isinstance(override, dict):
        raise ConfigTypeConflictError(
            f"Deep-merge requer dicts na raiz, recebido: "
            f"{type(base).__name__} vs {type(override).__name__}"
        )
    return _merge(base, override, [])
