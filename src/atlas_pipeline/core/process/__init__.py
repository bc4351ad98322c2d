# src/atlas_pipeline/core/process/__init__.py
"""Execução de comandos externos (CommandRunner / SubprocessRunner)."""
