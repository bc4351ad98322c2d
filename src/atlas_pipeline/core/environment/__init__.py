# src/atlas_pipeline/core/environment/__init__.py
"""
Secrets, variables e resolução de ambiente por Step.

- store     → BindingStore (snapshot imutável, somente leitura durante a run)
- resolver  → ScopedEnv e `resolve` (least-privilege, fail-closed)
- redaction → mascaramento de valores de secrets em texto
"""

from .redaction import REDACTED, redact
from .store import BindingStore
from .resolver import ScopedEnv, resolve

__all__ = ["REDACTED", "redact", "BindingStore", "ScopedEnv", "resolve"]
