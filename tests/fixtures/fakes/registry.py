"""
In-memory Registry: Atlas Pipeline (fake para testes)

Implementa a interface `Registry` (exists / upload) em memória e registra
cada upload para que os testes possam afirmar "zero bytes enviados".
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from atlas_pipeline.core.artifacts.versioning import Artifact
from atlas_pipeline.core.exceptions import RegistryTransientError


class InMemoryRegistry:
    def __init__(self, tags: Optional[Dict[str, str]] = None, *, transient_failures: int = 0):
        self.tags: Dict[str, str] = dict(tags or {})
        self.transient_failures = transient_failures
        self.uploads: List[str] = []
        self.bytes_uploaded = 0
        self.exists_calls = 0

    async def exists(self, tag: str) -> Tuple[bool, Optional[str]]:
        self.exists_calls += 1
        return tag in self.tags, self.tags.get(tag)

    async def upload(self, artifact: Artifact, tag: str) -> None:
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise RegistryTransientError(message="registry temporarily unavailable", details={"tag": tag})
        self.tags[tag] = artifact.digest
        self.uploads.append(tag)
        self.bytes_uploaded += artifact.size
