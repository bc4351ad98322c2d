from .registry import InMemoryRegistry
from .runner import ScriptedRunner
from .targets import ScriptedTarget

__all__ = ["InMemoryRegistry", "ScriptedRunner", "ScriptedTarget"]
