# src/atlas_pipeline/core/pipeline/definition.py
"""
Leitura do documento declarativo de pipeline.

Este módulo converte o documento declarativo (YAML/JSON já carregado
como dict) em uma sequência de `StepSpec`, validando o formato de cada
Step individualmente.

Formato (v1):

    name: service-ci
    group_id: team-a              # opcional
    steps:
      - name: fetch
        command: ["go", "mod", "download"]   # argv, ou string para shell
        cwd: service/                        # opcional
        depends_on: []                       # alias: needs
        secrets: []
        variables: [GOFLAGS]
        retries: 2                           # ou retry: {max_attempts: 3, ...}
        timeout: 300                         # segundos por tentativa
      - name: push
        uses: publish                        # ação embutida (publish | deploy)
        depends_on: [containerize]
        with: {artifact: build/image.tar, target: "${SERVICE}"}

Decisões arquiteturais:
    - Chaves desconhecidas são rejeitadas (nenhum campo é ignorado em silêncio)
    - Cada Step declara exatamente um entre `command` e `uses`
    - Validações de grafo (duplicidade, dependências, ciclos) pertencem ao planner

Limites explícitos:
    - Não lê arquivos (ver `config.loader.load_document`)
    - Não resolve secrets/variables
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from atlas_pipeline.core.exceptions import PipelineValidationError

from .types import CommandSpec, RetryPolicy, StepAction, StepSpec


_STEP_KEYS = {
    "name",
    "command",
    "cwd",
    "uses",
    "with",
    "depends_on",
    "needs",
    "secrets",
    "variables",
    "retries",
    "retry",
    "timeout",
    "timeout_seconds",
}

_DOCUMENT_KEYS = {"name", "group_id", "steps", "defaults"}


def _invalid(message: str, **details: Any) -> PipelineValidationError:
    return PipelineValidationError(
        message=message,
        details=details,
        hint="Corrija a definição do pipeline antes de executar.",
    )


def _names(value: Any, *, step: str, field_name: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise _invalid(f"Step '{step}': '{field_name}' deve ser uma lista de nomes", step=step, field=field_name)
    out: List[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise _invalid(f"Step '{step}': '{field_name}' contém nome inválido: {item!r}", step=step, field=field_name)
        if item not in out:
            out.append(item)
    return tuple(out)


def _command(raw: Mapping[str, Any], *, step: str) -> CommandSpec:
    value = raw.get("command")
    cwd = raw.get("cwd")
    if cwd is not None and not isinstance(cwd, str):
        raise _invalid(f"Step '{step}': 'cwd' deve ser string", step=step)

    if isinstance(value, str):
        if not value.strip():
            raise _invalid(f"Step '{step}': 'command' vazio", step=step)
        return CommandSpec(shell=value, cwd=cwd)

    if isinstance(value, (list, tuple)) and value and all(isinstance(a, str) for a in value):
        return CommandSpec(argv=tuple(value), cwd=cwd)

    raise _invalid(f"Step '{step}': 'command' deve ser string ou lista de strings não vazia", step=step)


def _retry(raw: Mapping[str, Any], *, step: str, default: RetryPolicy) -> RetryPolicy:
    if "retries" in raw and "retry" in raw:
        raise _invalid(f"Step '{step}': use 'retries' ou 'retry', não ambos", step=step)
    try:
        if "retries" in raw:
            retries = raw["retries"]
            if not isinstance(retries, int) or isinstance(retries, bool) or retries < 0:
                raise ValueError(f"retries must be an int >= 0, got {retries!r}")
            return RetryPolicy(
                max_attempts=retries + 1,
                backoff_seconds=default.backoff_seconds,
                multiplier=default.multiplier,
                max_backoff_seconds=default.max_backoff_seconds,
            )
        if "retry" in raw:
            if not isinstance(raw["retry"], Mapping):
                raise ValueError("retry must be a mapping")
            return RetryPolicy.from_mapping(raw["retry"], base=default)
    except (TypeError, ValueError) as e:
        raise _invalid(f"Step '{step}': política de retry inválida ({e})", step=step) from e
    return default


def _timeout(raw: Mapping[str, Any], *, step: str, default: Optional[float]) -> Optional[float]:
    value = raw.get("timeout", raw.get("timeout_seconds", default))
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise _invalid(f"Step '{step}': timeout deve ser número > 0", step=step, timeout=value)
    return float(value)


def _check_action_params(
    action: StepAction,
    params: Mapping[str, Any],
    *,
    step: str,
    depends_on: Tuple[str, ...],
) -> None:
    if action is StepAction.PUBLISH:
        if "artifact" not in params:
            raise _invalid(f"Step '{step}': publish requer 'with.artifact'", step=step)
        if "tag" not in params and not {"target", "revision"} <= set(params):
            raise _invalid(
                f"Step '{step}': publish requer 'with.tag' ou 'with.target' + 'with.revision'",
                step=step,
            )
    elif action is StepAction.DEPLOY:
        if "target" not in params:
            raise _invalid(f"Step '{step}': deploy requer 'with.target'", step=step)
        if ("tag" in params) == ("artifact_from" in params):
            raise _invalid(f"Step '{step}': deploy requer exatamente um entre 'with.tag' e 'with.artifact_from'", step=step)
        source = params.get("artifact_from")
        if source is not None and source not in depends_on:
            raise _invalid(
                f"Step '{step}': 'artifact_from' ({source}) precisa estar em depends_on",
                step=step,
                artifact_from=source,
            )


def parse_step(
    raw: Any,
    *,
    index: int,
    default_retry: RetryPolicy,
    default_timeout: Optional[float] = None,
) -> StepSpec:
    """Converte um item de `steps` em `StepSpec`."""
    if not isinstance(raw, Mapping):
        raise _invalid(f"Step #{index} deve ser um mapeamento", index=index)

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise _invalid(f"Step #{index}: 'name' deve ser string não vazia", index=index)

    unknown = sorted(set(raw) - _STEP_KEYS)
    if unknown:
        raise _invalid(f"Step '{name}': chaves desconhecidas {unknown}", step=name, keys=unknown)

    has_command = "command" in raw
    has_uses = "uses" in raw
    if has_command == has_uses:
        raise _invalid(f"Step '{name}': declare exatamente um entre 'command' e 'uses'", step=name)

    if "depends_on" in raw and "needs" in raw:
        raise _invalid(f"Step '{name}': use 'depends_on' ou 'needs', não ambos", step=name)
    depends_on = _names(raw.get("depends_on", raw.get("needs")), step=name, field_name="depends_on")

    params = raw.get("with") or {}
    if not isinstance(params, Mapping):
        raise _invalid(f"Step '{name}': 'with' deve ser um mapeamento", step=name)

    if has_command:
        if params:
            raise _invalid(f"Step '{name}': 'with' só é aceito junto com 'uses'", step=name)
        action = StepAction.COMMAND
        command: Optional[CommandSpec] = _command(raw, step=name)
    else:
        try:
            action = StepAction(raw["uses"])
        except ValueError:
            raise _invalid(
                f"Step '{name}': ação desconhecida {raw['uses']!r}",
                step=name,
                allowed=[StepAction.PUBLISH.value, StepAction.DEPLOY.value],
            ) from None
        if action is StepAction.COMMAND:
            raise _invalid(f"Step '{name}': use 'command' para comandos externos", step=name)
        _check_action_params(action, params, step=name, depends_on=depends_on)
        command = None

    secrets = _names(raw.get("secrets"), step=name, field_name="secrets")
    variables = _names(raw.get("variables"), step=name, field_name="variables")
    both = sorted(set(secrets) & set(variables))
    if both:
        raise _invalid(f"Step '{name}': nomes declarados como secret e variable: {both}", step=name, names=both)

    return StepSpec(
        name=name,
        depends_on=frozenset(depends_on),
        action=action,
        command=command,
        params=dict(params),
        secrets=secrets,
        variables=variables,
        retry=_retry(raw, step=name, default=default_retry),
        timeout_seconds=_timeout(raw, step=name, default=default_timeout),
    )


def parse_definition(
    document: Mapping[str, Any],
    *,
    default_retry: Optional[RetryPolicy] = None,
    default_timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Valida o formato do documento e devolve seus campos normalizados.

    Returns:
        Dict[str, Any]: `{"name", "group_id", "steps": List[StepSpec]}`.

    Raises:
        PipelineValidationError: documento mal formado.
    """
    if not isinstance(document, Mapping):
        raise _invalid("Definição de pipeline deve ser um mapeamento")

    unknown = sorted(set(document) - _DOCUMENT_KEYS)
    if unknown:
        raise _invalid(f"Chaves desconhecidas na definição: {unknown}", keys=unknown)

    defaults = document.get("defaults") or {}
    if not isinstance(defaults, Mapping):
        raise _invalid("'defaults' deve ser um mapeamento")

    retry = default_retry or RetryPolicy()
    if defaults:
        retry = _retry(defaults, step="<defaults>", default=retry)
        default_timeout = _timeout(defaults, step="<defaults>", default=default_timeout)

    raw_steps = document.get("steps")
    if isinstance(raw_steps, Mapping):
        # forma compacta: {nome: {...}}
        raw_steps = [dict(spec or {}, name=name) for name, spec in raw_steps.items()]
    if not isinstance(raw_steps, list) or not raw_steps:
        raise _invalid("'steps' deve ser uma lista não vazia")

    steps = [
        parse_step(raw, index=i, default_retry=retry, default_timeout=default_timeout)
        for i, raw in enumerate(raw_steps)
    ]

    name = document.get("name", "pipeline")
    group_id = document.get("group_id")
    if not isinstance(name, str) or not name.strip():
        raise _invalid("'name' do pipeline deve ser string não vazia")
    if group_id is not None and (not isinstance(group_id, str) or not group_id.strip()):
        raise _invalid("'group_id' deve ser string não vazia")

    return {"name": name, "group_id": group_id, "steps": steps}
