# src/atlas_pipeline/core/config/hashing.py
"""
Hashing canônico de documentos de configuração.

O hash representa a identidade estrutural de um documento (definição do
pipeline ou settings efetivos) e é registrado no Manifest da run para
auditoria.

Política de hashing (v1):
    - Serialização JSON canônica (chaves ordenadas, separadores compactos)
    - Codificação UTF-8
    - Algoritmo SHA-256

Limites explícitos:
    - Não inclui informações de runtime
    - Nunca recebe valores de secrets (apenas nomes declarados)
"""


import hashlib
import json
from typing import Any, Dict


def canonical_json(document: Any) -> str:
    return json.dumps(
        document,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash determinístico de um documento de configuração.

    Args:
        config (Dict[str, Any]): Documento resolvido (dict puro).

    Returns:
        str: Hash SHA-256 hexadecimal (64 caracteres).

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """

    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )

    return hashlib.sha256(canonical_json(config).encode("utf-8")).hexdigest()
