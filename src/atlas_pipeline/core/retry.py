# src/atlas_pipeline/core/retry.py
"""
Retry com backoff exponencial como ponto de suspensão explícito.

Esperas entre tentativas usam `await sleep(...)`, nunca bloqueio: um
Step (ou upload) em backoff não impede o progresso de Steps irmãos.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

from atlas_pipeline.core.exceptions import AtlasException
from atlas_pipeline.core.pipeline.types import RetryPolicy


T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def is_retryable(exc: BaseException) -> bool:
    """Erros Atlas declaram `retryable`; falhas de rede/timeout são transitórias."""
    if isinstance(exc, AtlasException):
        return bool(exc.retryable)
    return isinstance(exc, (ConnectionError, TimeoutError, asyncio.TimeoutError))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    sleep: Sleep = asyncio.sleep,
) -> Tuple[T, int]:
    """
    Executa `operation` até `policy.max_attempts` vezes.

    Returns:
        Tuple[T, int]: resultado da operação e número de tentativas usadas.

    Raises:
        A última exceção, quando não reexecutável ou quando as tentativas acabam.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation(), attempt
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if attempt >= policy.max_attempts or not should_retry(exc):
                raise
            delay = policy.delay_for(attempt)
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            await sleep(delay)
