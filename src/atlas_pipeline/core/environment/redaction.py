# src/atlas_pipeline/core/environment/redaction.py
"""Redaction de valores de secrets em texto de log e saída capturada."""

from __future__ import annotations

from typing import Iterable


REDACTED = "***"


def redact(text: str, secret_values: Iterable[str]) -> str:
    """Substitui ocorrências de valores de secrets por `***`."""
    # valores mais longos primeiro para não deixar sufixos expostos
    for value in sorted({v for v in secret_values if v}, key=len, reverse=True):
        text = text.replace(value, REDACTED)
    return text
