# src/atlas_pipeline/core/artifacts/__init__.py
"""
Versionamento e publicação idempotente de artefatos.

API pública exposta:
    - version / image_tag → identidade determinística de uma versão
    - Artifact            → conteúdo + digest
    - Registry            → interface de destino (exists / upload)
    - FileSystemRegistry  → registry local em diretório
    - Publisher           → publicação idempotente com retry
"""

from .versioning import Artifact, compute_digest, image_tag, version
from .registry import FileSystemRegistry, Registry
from .publisher import PublishOutcome, Publisher

__all__ = [
    "Artifact",
    "compute_digest",
    "image_tag",
    "version",
    "FileSystemRegistry",
    "Registry",
    "PublishOutcome",
    "Publisher",
]
