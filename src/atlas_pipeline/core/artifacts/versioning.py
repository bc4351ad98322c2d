# src/atlas_pipeline/core/artifacts/versioning.py
"""
Versionamento determinístico de artefatos.

A versão de um artefato é função pura de `(group_id, source_revision)`:
reexecutar o pipeline sobre a mesma revisão produz a mesma versão e,
portanto, a mesma tag. Isso é o que torna a publicação idempotente em
vez de apenas "reexecutável" (nenhuma run deixa artefatos duplicados).

A tag combina target, grupo e versão e só aceita variables: secrets
nunca chegam aqui (ver `ScopedEnv.interpolate`).
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union


VERSION_LENGTH = 12
_CHUNK = 1024 * 1024
_REPO_INVALID = re.compile(r"[^a-z0-9._/:-]+")
_TAG_INVALID = re.compile(r"[^A-Za-z0-9_.-]+")


def _require(value: str, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")
    return value.strip()


def version(group_id: str, source_revision: str) -> str:
    """Versão determinística: primeiros 12 hex de sha256("{group_id}:{source_revision}")."""
    group_id = _require(group_id, "group_id")
    source_revision = _require(source_revision, "source_revision")
    raw = f"{group_id}:{source_revision}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()[:VERSION_LENGTH]


def image_tag(target: str, group_id: str, artifact_version: str) -> str:
    """Tag `{target}:{group_id}-{version}`, normalizada para o formato de registries OCI."""
    repository = _REPO_INVALID.sub("-", _require(target, "target").lower()).strip("-/")
    if ":" in repository.rsplit("/", 1)[-1]:
        raise ValueError(f"target must not carry its own tag: {target!r}")
    suffix = f"{_require(group_id, 'group_id')}-{_require(artifact_version, 'version')}"
    suffix = _TAG_INVALID.sub("-", suffix).strip("-.")[:128]
    if not repository or not suffix:
        raise ValueError("tag components are empty after normalization")
    return f"{repository}:{suffix}"


def compute_digest(source: Union[bytes, str, Path]) -> str:
    """Digest `sha256:<hex>` de bytes ou do conteúdo de um arquivo."""
    h = hashlib.sha256()
    if isinstance(source, bytes):
        h.update(source)
    else:
        with Path(source).open("rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK), b""):
                h.update(chunk)
    return f"sha256:{h.hexdigest()}"


@dataclass(frozen=True)
class Artifact:
    """
    Saída de build endereçada por conteúdo.

    Exatamente um entre `path` (arquivo no disco, ex.: `docker save`) e
    `content` (bytes em memória) carrega o conteúdo.
    """

    name: str
    digest: str
    size: int
    path: Optional[Path] = None
    content: Optional[bytes] = field(default=None, repr=False)

    @classmethod
    def from_path(cls, path: Union[str, Path], *, name: Optional[str] = None) -> "Artifact":
        p = Path(path)
        if not p.is_file():
            raise FileNotFoundError(f"Artifact file not found: {p}")
        return cls(name=name or p.name, digest=compute_digest(p), size=p.stat().st_size, path=p)

    @classmethod
    def from_bytes(cls, content: bytes, *, name: str) -> "Artifact":
        return cls(name=name, digest=compute_digest(content), size=len(content), content=content)

    def read_bytes(self) -> bytes:
        if self.content is not None:
            return self.content
        if self.path is None:
            raise ValueError(f"Artifact '{self.name}' has no content")
        return self.path.read_bytes()
