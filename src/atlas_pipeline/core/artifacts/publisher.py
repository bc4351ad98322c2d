# src/atlas_pipeline/core/artifacts/publisher.py
"""
Publicação idempotente de artefatos.

Regra de idempotência (v1):
    - tag inexistente no destino → upload
    - tag existente com o mesmo digest → sucesso sem upload (no-op)
    - tag existente com digest diferente → TagCollisionError

Uma versão publicada é imutável: o Publisher nunca sobrescreve uma tag.
Falhas transitórias do registry são reexecutadas com backoff; cada
tentativa volta a consultar `exists`, de modo que um upload concluído
antes de uma falha de rede não é repetido. TagCollisionError nunca é
reexecutado.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional

from atlas_pipeline.core.exceptions import PublishError, TagCollisionError
from atlas_pipeline.core.pipeline.types import RetryPolicy
from atlas_pipeline.core.retry import Sleep, is_retryable, retry_async

from .registry import Registry
from .versioning import Artifact


DEFAULT_PUBLISH_RETRY = RetryPolicy(max_attempts=3, backoff_seconds=1.0, multiplier=2.0, max_backoff_seconds=10.0)


@dataclass(frozen=True)
class PublishOutcome:
    tag: str
    digest: str
    uploaded: bool
    bytes_uploaded: int
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag": self.tag,
            "digest": self.digest,
            "uploaded": self.uploaded,
            "bytes_uploaded": self.bytes_uploaded,
            "attempts": self.attempts,
        }


class Publisher:
    """Publica artefatos em um Registry com idempotência por digest."""

    def __init__(
        self,
        registry: Registry,
        *,
        retry: RetryPolicy = DEFAULT_PUBLISH_RETRY,
        sleep: Sleep = asyncio.sleep,
        on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    ):
        self.registry = registry
        self.retry = retry
        self._sleep = sleep
        self._on_retry = on_retry

    async def _attempt(self, artifact: Artifact, tag: str) -> PublishOutcome:
        present, digest = await self.registry.exists(tag)
        if present:
            if digest == artifact.digest:
                return PublishOutcome(tag=tag, digest=artifact.digest, uploaded=False, bytes_uploaded=0)
            raise TagCollisionError(
                message=f"Tag '{tag}' já publicada com outro digest",
                details={"tag": tag, "existing_digest": digest, "digest": artifact.digest},
                hint="Versões publicadas são imutáveis: gere uma nova versão ou investigue o build não determinístico.",
            )

        await self.registry.upload(artifact, tag)
        return PublishOutcome(tag=tag, digest=artifact.digest, uploaded=True, bytes_uploaded=artifact.size)

    async def publish(self, artifact: Artifact, tag: str) -> PublishOutcome:
        """
        Publica `artifact` sob `tag`.

        Raises:
            TagCollisionError: tag existente com digest diferente.
            PublishError: falhas transitórias persistiram após todas as tentativas.
        """
        try:
            outcome, attempts = await retry_async(
                lambda: self._attempt(artifact, tag),
                self.retry,
                should_retry=is_retryable,
                on_retry=self._on_retry,
                sleep=self._sleep,
            )
        except TagCollisionError:
            raise
        except Exception as exc:
            if not is_retryable(exc):
                raise
            raise PublishError(
                message=f"Publicação de '{tag}' falhou após {self.retry.max_attempts} tentativas",
                details={"tag": tag, "digest": artifact.digest, "cause": exc.__class__.__name__},
                hint="Verifique a disponibilidade do registry e reexecute; a publicação é idempotente.",
            ) from exc

        return replace(outcome, attempts=attempts)
