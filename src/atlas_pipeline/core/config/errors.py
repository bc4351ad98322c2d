# src/atlas_pipeline/core/config/errors.py
"""
Exceções canônicas da camada de configuração do Atlas Pipeline.

Este módulo define a hierarquia de exceções utilizadas durante o
carregamento, a resolução e a tipagem das configurações do engine
(settings), de variáveis e de definições de pipeline lidas do disco.

Princípios fundamentais:
    - Exceções são tipadas e semânticas
    - Erros estruturais são tratados como falhas fatais
    - Nenhuma configuração parcial é aceita

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa falha de execução de Step
"""


class ConfigError(Exception):
    """
    Exceção base para erros de configuração do Atlas Pipeline.

    Permite captura genérica de falhas de configuração, separando-as
    das falhas de execução de Steps (que viram StepResult FAILED).
    """


class ConfigFileNotFoundError(ConfigError):
    """
    Arquivo de configuração obrigatório não encontrado.

    Decisões arquiteturais:
        - Arquivos explicitamente informados pelo operador são obrigatórios
        - Nenhum arquivo é criado ou inferido automaticamente
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Formato de arquivo não suportado pelo loader.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """
    Conteúdo raiz do arquivo não é um dicionário (`dict`).

    Listas ou valores escalares no root são rejeitados sem normalização.
    """


class ConfigTypeConflictError(ConfigError):
    """
    Conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"engine": {"max_parallel": 4}}
        - override: {"engine": "fast"}

    Nenhum merge parcial é produzido em caso de conflito.
    """


class InvalidSettingError(ConfigError):
    """
    Valor de setting fora do domínio aceito (ex.: `max_parallel` <= 0).

    A validação ocorre na construção de `EngineSettings`, antes de
    qualquer run.
    """


class InvalidConfigSyntaxError(ConfigError):
    """
    Documento YAML/JSON sintaticamente inválido.

    O erro do parser é encadeado (`__cause__`); a mensagem traz o arquivo
    e, quando disponível, a linha e a coluna do problema.
    """
