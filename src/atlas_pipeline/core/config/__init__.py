# src/atlas_pipeline/core/config/__init__.py

"""
Camada de configuração do Atlas Pipeline.

Este pacote contém as estruturas e utilitários responsáveis por carregar,
mesclar, validar estruturalmente e identificar configurações de execução
do engine.

Responsabilidades do pacote:
    - Carregamento de documentos YAML/JSON (defaults + overrides locais)
    - Resolução de configuração final via deep-merge determinístico
    - Settings tipados do engine (EngineSettings)
    - Geração de hash canônico para rastreabilidade

Invariantes:
    - A configuração final é um dicionário puro (dict)
    - Conflitos estruturais são tratados como erro

Limites explícitos:
    - Não executa pipeline
    - Não valida a definição do pipeline (ver `core.pipeline.definition`)
"""
