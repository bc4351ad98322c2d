# src/atlas_pipeline/core/__init__.py
"""
Core do Atlas Pipeline.

Este pacote contém a implementação canônica do engine, reunindo as
responsabilidades de carregamento, planejamento, execução, publicação,
deploy e rastreabilidade de runs.

O core é projetado para ser:
    - determinístico no planejamento
    - testável de forma isolada (runner, registry e targets são injetáveis)
    - livre de dependências de provedores de nuvem específicos

Componentes principais:
    - pipeline     → tipos, definição declarativa e RunContext
    - engine       → planner, Executor, ações embutidas e RunOutcome
    - environment  → BindingStore e resolução least-privilege
    - process      → CommandRunner e SubprocessRunner
    - artifacts    → versionamento, Registry e Publisher
    - deploy       → DeploymentTarget e DeploymentController
    - config       → settings (merge, validação estrutural, hashing)
    - traceability → Manifest e Event Log

Limites explícitos:
    - Não contém a CLI (ver `atlas_pipeline.cli`)
    - Não interpreta o significado dos comandos dos Steps
"""
