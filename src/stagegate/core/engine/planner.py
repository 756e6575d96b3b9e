# src/stagegate/core/engine/planner.py
"""
Planejador estrutural do pipeline (DAG).

Este módulo valida a estrutura de um conjunto de stages e produz:
    - uma ordem topológica determinística (`plan_stages`)
    - o mapa reverso de dependências (`build_dependents`)
    - o conjunto de descendentes de um stage (`descendants`), usado na
      propagação de SKIPPED após falha ou rejeição

Princípios fundamentais:
    - O pipeline deve formar um DAG válido
    - A ordenação é determinística para a mesma entrada
    - Validação estrutural ocorre antes de qualquer Run existir

Decisões arquiteturais:
    - Algoritmo de Kahn com desempate pela ordem de declaração
      (a mesma política usada pelo Orchestrator ao despachar stages)
    - Erros estruturais são tratados como falhas fatais (CONFIG_ERROR)

Invariantes:
    - Nenhum stage aparece antes de suas dependências
    - Todos os stages aparecem exatamente uma vez

Limites explícitos:
    - Não executa stages
    - Não interage com Run Store
"""

from __future__ import annotations

import heapq
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from stagegate.core.pipeline.errors import (
    CycleDetectedError,
    DuplicateStageIdError,
    PipelineDefinitionError,
    UnknownDependencyError,
)
from stagegate.core.pipeline.stage import Stage


def plan_stages(stages: Iterable[Stage]) -> List[Stage]:
    """
    Valida e produz a ordem topológica determinística dos stages.

    Sempre que múltiplos stages estiverem prontos, vence o declarado
    primeiro.

    Args:
        stages (Iterable[Stage]): Stages na ordem de declaração.

    Returns:
        List[Stage]: Stages em ordem topológica.

    Raises:
        PipelineDefinitionError: Se algum stage possuir `id` inválido.
        DuplicateStageIdError: Se houver `id` repetido.
        UnknownDependencyError: Se um stage declarar dependência inexistente.
        CycleDetectedError: Se houver ciclo no grafo de dependências.
    """
    stage_list = list(stages)

    by_id: Dict[str, Stage] = {}
    position: Dict[str, int] = {}
    for idx, s in enumerate(stage_list):
        sid = getattr(s, "id", None)
        if not isinstance(sid, str) or not sid.strip():
            raise PipelineDefinitionError(
                "stage.id must be a non-empty string",
                details={"position": idx},
            )
        if sid in by_id:
            raise DuplicateStageIdError(
                f"Duplicate stage id: {sid}",
                details={"stage_id": sid},
            )
        by_id[sid] = s
        position[sid] = idx

    for sid, s in by_id.items():
        for dep in s.depends_on:
            if dep not in by_id:
                raise UnknownDependencyError(
                    f"Stage '{sid}' depends on unknown stage '{dep}'",
                    details={"stage_id": sid, "dependency": dep},
                )

    incoming: Dict[str, int] = {sid: len(set(s.depends_on)) for sid, s in by_id.items()}
    dependents = build_dependents(stage_list)

    ready: List[Tuple[int, str]] = [(position[sid], sid) for sid, c in incoming.items() if c == 0]
    heapq.heapify(ready)

    order: List[str] = []
    while ready:
        _, sid = heapq.heappop(ready)
        order.append(sid)
        for child in dependents[sid]:
            incoming[child] -= 1
            if incoming[child] == 0:
                heapq.heappush(ready, (position[child], child))

    if len(order) != len(by_id):
        unresolved = sorted((sid for sid in by_id if sid not in set(order)), key=position.__getitem__)
        raise CycleDetectedError(
            "Cycle detected in stage dependency graph",
            details={"stages": unresolved},
            hint="Remova a dependência circular entre os stages listados",
        )

    return [by_id[sid] for sid in order]


def build_dependents(stages: Sequence[Stage]) -> Dict[str, Tuple[str, ...]]:
    """Mapa reverso: stage → stages que dependem diretamente dele (ordem de declaração)."""
    result: Dict[str, List[str]] = {s.id: [] for s in stages}
    for s in stages:
        for dep in dict.fromkeys(s.depends_on):
            if dep in result:
                result[dep].append(s.id)
    return {k: tuple(v) for k, v in result.items()}


def descendants(
    stage_id: str,
    dependents: Dict[str, Tuple[str, ...]],
    order: Sequence[str],
) -> List[str]:
    """
    Todos os stages que dependem transitivamente de `stage_id`.

    O resultado segue a ordem topológica `order`, de modo que a cascata de
    SKIPPED marca cada stage depois de todos os seus ancestrais afetados.
    """
    seen: Set[str] = set()
    frontier = list(dependents.get(stage_id, ()))
    while frontier:
        current = frontier.pop()
        if current in seen:
            continue
        seen.add(current)
        frontier.extend(dependents.get(current, ()))
    return [sid for sid in order if sid in seen]
