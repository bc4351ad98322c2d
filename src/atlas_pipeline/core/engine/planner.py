# src/atlas_pipeline/core/engine/planner.py
"""
Planejador de execução do pipeline (DAG).

Este módulo é responsável por validar a estrutura do pipeline e produzir
o plano de execução em lotes topológicos (batches) dos Steps declarados.

O planner opera exclusivamente em nível estrutural, analisando:
    - identificadores de Steps
    - dependências declaradas
    - formação de ciclos
    - consistência do grafo

Princípios fundamentais:
    - O pipeline deve formar um DAG válido
    - A validação ocorre no carregamento, nunca durante a run
    - Nenhuma decisão silenciosa ou heurística implícita

Decisões arquiteturais:
    - Ciclos são detectados por DFS com marcação em três cores
      (WHITE/GRAY/BLACK); uma aresta de volta para um nó GRAY revela o ciclo
      e o caminho ofensor é reportado
    - Cada batch contém todos os Steps cujas dependências foram satisfeitas
      pelos batches anteriores (unidade de paralelismo do Engine)

Invariantes:
    - Todos os Steps aparecem exatamente uma vez no plano
    - Nenhuma dependência aparece no mesmo batch ou em batch posterior
    - A mesma definição produz sempre o mesmo plano

Limites explícitos:
    - Não executa Steps
    - Não interage com RunContext
    - Não decide políticas de execução
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from atlas_pipeline.core.config.hashing import compute_config_hash
from atlas_pipeline.core.config.loader import load_document
from atlas_pipeline.core.exceptions import PipelineValidationError
from atlas_pipeline.core.pipeline.definition import parse_definition
from atlas_pipeline.core.pipeline.types import RetryPolicy, StepSpec


_WHITE, _GRAY, _BLACK = 0, 1, 2


@dataclass(frozen=True)
class PipelineGraph:
    """
    Pipeline validado: Steps em ordem de declaração + índices de dependência.

    Instâncias só são produzidas por `build_graph`/`load_pipeline`, portanto
    todo PipelineGraph é acíclico e referencialmente íntegro.
    """

    name: str
    steps: Tuple[StepSpec, ...]
    group_id: Optional[str] = None
    document_hash: Optional[str] = None
    _by_name: Dict[str, StepSpec] = field(default_factory=dict, init=False, repr=False, compare=False)
    _dependents: Dict[str, Tuple[str, ...]] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_name = {s.name: s for s in self.steps}
        dependents: Dict[str, List[str]] = {s.name: [] for s in self.steps}
        for s in self.steps:
            for dep in s.depends_on:
                if dep in dependents:
                    dependents[dep].append(s.name)
        object.__setattr__(self, "_by_name", by_name)
        object.__setattr__(self, "_dependents", {k: tuple(v) for k, v in dependents.items()})

    @property
    def names(self) -> List[str]:
        return [s.name for s in self.steps]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self.steps)

    def get(self, name: str) -> StepSpec:
        return self._by_name[name]

    def dependents(self, name: str) -> Tuple[str, ...]:
        return self._dependents[name]

    def downstream(self, name: str) -> FrozenSet[str]:
        """Todos os Steps que dependem (transitivamente) de `name`."""
        seen: Set[str] = set()
        pending = list(self._dependents[name])
        while pending:
            current = pending.pop()
            if current in seen:
                continue
            seen.add(current)
            pending.extend(self._dependents[current])
        return frozenset(seen)

    def order_of(self, names: Iterable[str]) -> List[str]:
        """Ordena nomes pela ordem de declaração no pipeline."""
        wanted = set(names)
        return [n for n in self.names if n in wanted]


def _cycle_error(path: Sequence[str]) -> PipelineValidationError:
    rendered = " -> ".join(path)
    return PipelineValidationError(
        message=f"Cycle detected in step dependency graph: {rendered}",
        details={"cycle": list(path)},
        hint="Remova uma das dependências do ciclo.",
    )


def find_cycle(steps: Sequence[StepSpec]) -> Optional[List[str]]:
    """
    Procura um ciclo via DFS iterativa com marcação em três cores.

    Arestas vão do Step para suas dependências. Retorna o caminho do ciclo
    (primeiro e último nós iguais, ex.: ["a", "b", "a"]) ou None.
    """
    deps = {s.name: sorted(s.depends_on) for s in steps}
    color = {name: _WHITE for name in deps}

    for root in deps:
        if color[root] != _WHITE:
            continue
        path: List[str] = [root]
        stack = [iter(deps[root])]
        color[root] = _GRAY
        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                color[path.pop()] = _BLACK
                continue
            if child not in color:
                continue
            if color[child] == _GRAY:
                return path[path.index(child):] + [child]
            if color[child] == _WHITE:
                color[child] = _GRAY
                path.append(child)
                stack.append(iter(deps[child]))
    return None


def build_graph(
    steps: Iterable[StepSpec],
    *,
    name: str = "pipeline",
    group_id: Optional[str] = None,
    document_hash: Optional[str] = None,
) -> PipelineGraph:
    """
    Valida a estrutura dos Steps e produz um PipelineGraph.

    Raises:
        PipelineValidationError: nome inválido ou duplicado, dependência
            inexistente ou ciclo (com o caminho ofensor em `details["cycle"]`).
    """
    step_list = list(steps)
    if not step_list:
        raise PipelineValidationError(message="Pipeline sem Steps", details={})

    seen: Set[str] = set()
    for s in step_list:
        if not isinstance(s.name, str) or not s.name.strip():
            raise PipelineValidationError(message="step.name must be a non-empty string", details={})
        if s.name in seen:
            raise PipelineValidationError(
                message=f"Duplicate step name: {s.name}",
                details={"step": s.name},
            )
        seen.add(s.name)

    for s in step_list:
        for dep in sorted(s.depends_on):
            if dep not in seen:
                raise PipelineValidationError(
                    message=f"Step '{s.name}' depends on unknown step '{dep}'",
                    details={"step": s.name, "dependency": dep},
                )
            if dep == s.name:
                raise _cycle_error([s.name, s.name])

    cycle = find_cycle(step_list)
    if cycle is not None:
        raise _cycle_error(cycle)

    return PipelineGraph(name=name, steps=tuple(step_list), group_id=group_id, document_hash=document_hash)


def topological_batches(graph: PipelineGraph) -> List[FrozenSet[str]]:
    """
    Agrupa os Steps em lotes executáveis em paralelo.

    O batch `k` contém todos os Steps cujas dependências estão
    integralmente nos batches `0..k-1`.
    """
    remaining: Dict[str, Set[str]] = {s.name: set(s.depends_on) for s in graph.steps}
    done: Set[str] = set()
    batches: List[FrozenSet[str]] = []

    while remaining:
        ready = frozenset(n for n, deps in remaining.items() if deps <= done)
        if not ready:
            # inalcançável para grafos produzidos por build_graph
            raise _cycle_error(sorted(remaining))
        batches.append(ready)
        done |= ready
        for n in ready:
            del remaining[n]

    return batches


def load_pipeline(
    definition: Union[Mapping[str, Any], str, Path],
    *,
    default_retry: Optional[RetryPolicy] = None,
    default_timeout: Optional[float] = None,
) -> PipelineGraph:
    """
    Carrega uma definição declarativa e devolve o grafo validado.

    Aceita o documento já carregado (mapping) ou o caminho de um arquivo
    YAML/JSON. Toda validação acontece aqui, antes de qualquer Step rodar.

    Raises:
        PipelineValidationError: definição mal formada ou grafo inválido.
        ConfigError: arquivo inexistente ou em formato não suportado.
    """
    document = load_document(definition) if isinstance(definition, (str, Path)) else definition
    parsed = parse_definition(document, default_retry=default_retry, default_timeout=default_timeout)
    return build_graph(
        parsed["steps"],
        name=parsed["name"],
        group_id=parsed["group_id"],
        document_hash=compute_config_hash(dict(document)),
    )
