# src/atlas_pipeline/core/config/loader.py
"""
Leitura de documentos declarativos do disco (YAML ou JSON).

Três tipos de documento passam por aqui:
    - settings do engine (`--settings`, com camada local opcional)
    - arquivos de variables/secrets publicados pela CI hospedeira
    - definições de pipeline, antes do parse em `pipeline.definition`

O formato é decidido pela extensão; o conteúdo raiz precisa ser um
mapeamento. Um arquivo vazio equivale a `{}`.

Limites explícitos:
    - Não interpreta o conteúdo (settings e definição têm parsers próprios)
    - Não expande variáveis de ambiente dentro dos documentos
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, IO, Optional, Union

import yaml  # PyYAML

from .merge import deep_merge
from .errors import (
    ConfigFileNotFoundError,
    InvalidConfigRootTypeError,
    InvalidConfigSyntaxError,
    UnsupportedConfigFormatError,
)


PathLike = Union[str, Path]

_PARSERS: Dict[str, Callable[[IO[str]], Any]] = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.load,
}


def _syntax_detail(error: Exception) -> str:
    if isinstance(error, json.JSONDecodeError):
        return f"{error.msg} (linha {error.lineno}, coluna {error.colno})"
    mark = getattr(error, "problem_mark", None)
    problem = getattr(error, "problem", None) or str(error)
    if mark is not None:
        return f"{problem} (linha {mark.line + 1}, coluna {mark.column + 1})"
    return problem


def load_document(path: PathLike) -> Dict[str, Any]:
    """
    Lê um documento YAML/JSON e devolve seu conteúdo como dict.

    Raises:
        ConfigFileNotFoundError: arquivo inexistente.
        UnsupportedConfigFormatError: extensão fora de .yaml/.yml/.json.
        InvalidConfigSyntaxError: YAML/JSON mal formado.
        InvalidConfigRootTypeError: raiz do documento não é um mapeamento.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigFileNotFoundError(f"Arquivo de configuração não encontrado: {path}")

    parser = _PARSERS.get(path.suffix.lower())
    if parser is None:
        raise UnsupportedConfigFormatError(
            f"Formato não suportado: '{path.suffix}' (use {', '.join(sorted(_PARSERS))})"
        )

    with path.open("r", encoding="utf-8") as f:
        try:
            data = parser(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise InvalidConfigSyntaxError(f"{path.name}: documento inválido: {_syntax_detail(e)}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(
            f"{path.name}: a raiz deve ser um mapeamento, recebido {type(data).__name__}"
        )
    return data


def load_config(
    *,
    defaults_path: PathLike,
    local_path: Optional[PathLike] = None,
) -> Dict[str, Any]:
    """
    Resolve um documento em duas camadas: defaults obrigatório + local opcional.

    O arquivo local só é aplicado se existir no disco; quando aplicado,
    vence o defaults chave a chave (ver `deep_merge`).
    """
    base = load_document(defaults_path)
    if local_path is None or not Path(local_path).is_file():
        return base
    return deep_merge(base, load_document(local_path))
