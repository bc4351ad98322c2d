# src/atlas_pipeline/__init__.py
"""
Atlas Pipeline: engine de orquestração de pipelines de CI/CD.

Este pacote raiz define o namespace público do Atlas Pipeline, um engine
que executa uma definição declarativa de pipeline (validação, build,
containerização, publicação e deploy) como uma run ordenada, isolada e
idempotente.

Princípios centrais:
    - O pipeline é um DAG explícito de Steps, validado antes de qualquer execução
    - Cada run tem estado próprio (RunContext) e identidade `{group_id}-{sequence}`
    - Publicação de artefatos é idempotente; versões publicadas são imutáveis
    - No máximo um rollout em andamento por deployment target
    - Falhas são isoladas: apenas dependentes transitivos são pulados

Arquitetura em alto nível:
    - core.pipeline     → tipos canônicos, definição declarativa e RunContext
    - core.engine       → planejamento (batches topológicos) e execução
    - core.environment  → secrets/variables e resolução por Step
    - core.process      → execução de comandos externos opacos
    - core.artifacts    → versionamento e publicação idempotente
    - core.deploy       → deployment targets e controle de rollout
    - core.config       → carregamento, merge e hashing de settings
    - core.traceability → Manifest e Event Log da run
    - cli               → entrypoint de linha de comando

Limites explícitos:
    - Não é uma linguagem de workflow genérica (sem branching/loops)
    - Não agenda pipelines de grupos não relacionados
    - Não possui interface gráfica
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
