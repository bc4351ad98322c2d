# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas Pipeline.

Este módulo define fixtures reutilizáveis que fornecem:
- settings determinísticos do engine
- RunContext com identidade fixa
- sleep gravador (backoff sem espera real)
- definição canônica de pipeline (fetch → build → {format, analyze, test})
- fakes de runner, registry e deployment target (ver tests/fixtures/fakes)

Decisões arquiteturais:
    - Nenhum fixture cria processos reais
    - Esperas de backoff/polling são registradas, nunca dormidas
    - Imports do core são feitos de forma lazy para que a falha de import
      apareça no teste, com mensagem clara

Invariantes:
    - Fixtures são determinísticos e isolados entre testes
    - Nenhum fixture depende de variáveis de ambiente do host

Limites explícitos:
    - Não substitui testes de integração com subprocessos reais
      (ver tests/core/process)
"""

from datetime import datetime, timezone

import pytest


class RecordingSleep:
    """Substituto de `asyncio.sleep` que registra os atrasos pedidos."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        import asyncio

        self.delays.append(delay)
        # cede o loop sem esperar de verdade
        await asyncio.sleep(0)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def engine_settings():
    """
    EngineSettings mínimo para testes do Executor.

    Retry padrão com 1 tentativa (sem retry) e fail-fast desabilitado,
    exatamente como os defaults do engine.
    """
    from atlas_pipeline.core.config.settings import EngineSettings

    return EngineSettings.from_dict({})


@pytest.fixture
def run_ctx():
    """
    RunContext determinístico para testes.

    `run_id` e `started_at` são fixos; o group_id segue o formato
    `{group_id}-{sequence}` usado em produção.
    """
    from atlas_pipeline.core.pipeline.context import RunContext

    return RunContext.create(
        "team-a",
        sequence=1,
        started_at=datetime(2026, 1, 16, 0, 0, 0, tzinfo=timezone.utc),
        meta={"source": "pytest"},
    )


@pytest.fixture
def ci_pipeline_doc() -> dict:
    """
    Definição canônica de 5 Steps usada em testes de engine e E2E:

        fetch → build → {format, analyze, test}
    """
    return {
        "name": "service-ci",
        "group_id": "team-a",
        "steps": [
            {"name": "fetch", "command": "go mod download"},
            {"name": "build", "command": "go build ./...", "depends_on": ["fetch"]},
            {"name": "format", "command": "gofmt -l .", "depends_on": ["build"]},
            {"name": "analyze", "command": "go vet ./...", "depends_on": ["build"]},
            {"name": "test", "command": "go test ./...", "depends_on": ["build"]},
        ],
    }


@pytest.fixture
def ci_pipeline_yaml() -> str:
    return """\
name: service-ci
group_id: team-a
steps:
  - name: fetch
    command: ["go", "mod", "download"]
  - name: build
    command: go build ./...
    depends_on: [fetch]
    retries: 1
  - name: format
    command: gofmt -l .
    needs: [build]
  - name: analyze
    command: go vet ./...
    needs: [build]
  - name: test
    command: go test ./...
    needs: [build]
    timeout: 600
"""
