# src/atlas_pipeline/core/pipeline/__init__.py
"""
# Pipeline Core: Atlas Pipeline

Este pacote define os **tipos canônicos** e as **estruturas fundamentais**
que compõem um pipeline no Atlas Pipeline.

## Componentes

- **types**
  - `StepStatus`, `StepAction`: estados e ações de Steps
  - `RetryPolicy`: backoff exponencial limitado
  - `CommandSpec`, `StepSpec`: descritores declarativos
  - `StepResult`: resultado imutável da execução de um Step

- **definition**
  - `parse_definition`: leitura e validação do documento declarativo

- **context**
  - `RunContext`: estado isolado de uma run (resultados, artefatos, eventos)

## Invariantes

- Cada Step possui um nome único
- Dependências são explícitas e declarativas
- Um StepResult terminal nunca é sobrescrito
"""
