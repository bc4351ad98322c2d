# src/atlas_pipeline/core/engine/__init__.py
"""
Engine do Atlas Pipeline.

Este pacote contém a implementação responsável por **planejar** e
**executar** pipelines.

Componentes principais:
    - planner → validação estrutural (DAG) e batches topológicos
    - engine  → Executor assíncrono com retry, timeout e propagação de falhas
    - actions → handlers de command, publish e deploy
    - outcome → RunOutcome consumido pela CI hospedeira

Invariantes:
    - Steps só são executados após suas dependências chegarem a estado terminal
    - Cada Step termina com exatamente um resultado terminal por run
    - O RunOutcome expõe toda falha com o Step de origem e o tipo do erro
"""
