# src/atlas_pipeline/core/artifacts/registry.py
"""
Interface de registry consumida pelo Publisher e um registry local.

Interface (v1):
    - exists(tag) -> (present, digest)
    - upload(artifact, tag) -> None (falha levanta exceção)

`FileSystemRegistry` guarda blobs por digest e um índice JSON por tag.
Serve para execuções locais e como cache de artefatos entre runs.
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Protocol, Tuple, Union, runtime_checkable
from urllib.parse import quote

from atlas_pipeline.core.exceptions import RegistryTransientError, TagCollisionError

from .versioning import Artifact


@runtime_checkable
class Registry(Protocol):
    async def exists(self, tag: str) -> Tuple[bool, Optional[str]]:
        ...

    async def upload(self, artifact: Artifact, tag: str) -> None:
        ...


def _atomic_write(target: Path, write) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".tmp-")
    try:
        with os.fdopen(fd, "wb") as f:
            write(f)
        os.replace(tmp, target)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


class FileSystemRegistry:
    """Registry em diretório local: `blobs/sha256/<hex>` + `tags/<tag>.json`."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _tag_file(self, tag: str) -> Path:
        return self.root / "tags" / f"{quote(tag, safe='')}.json"

    def _blob_file(self, digest: str) -> Path:
        algo, _, hexdigest = digest.partition(":")
        return self.root / "blobs" / algo / hexdigest

    def _read_tag(self, tag: str) -> Tuple[bool, Optional[str]]:
        path = self._tag_file(tag)
        if not path.exists():
            return False, None
        data = json.loads(path.read_text(encoding="utf-8"))
        return True, data.get("digest")

    def _write(self, artifact: Artifact, tag: str) -> None:
        present, digest = self._read_tag(tag)
        if present:
            if digest == artifact.digest:
                return
            raise TagCollisionError(
                message=f"Tag '{tag}' já publicada com outro digest",
                details={"tag": tag, "existing_digest": digest, "digest": artifact.digest},
            )

        blob = self._blob_file(artifact.digest)
        if not blob.exists():
            if artifact.path is not None:
                with artifact.path.open("rb") as src:
                    _atomic_write(blob, lambda dst: shutil.copyfileobj(src, dst))
            else:
                content = artifact.read_bytes()
                _atomic_write(blob, lambda dst: dst.write(content))

        entry = {"tag": tag, "digest": artifact.digest, "size": artifact.size, "name": artifact.name}
        payload = json.dumps(entry, sort_keys=True).encode("utf-8")
        _atomic_write(self._tag_file(tag), lambda dst: dst.write(payload))

    async def exists(self, tag: str) -> Tuple[bool, Optional[str]]:
        try:
            return await asyncio.to_thread(self._read_tag, tag)
        except OSError as e:
            raise RegistryTransientError(message=f"Falha ao consultar registry: {e}", details={"tag": tag}) from e

    async def upload(self, artifact: Artifact, tag: str) -> None:
        try:
            await asyncio.to_thread(self._write, artifact, tag)
        except OSError as e:
            raise RegistryTransientError(message=f"Falha ao enviar artefato: {e}", details={"tag": tag}) from e
