# src/stagegate/core/pipeline/pipeline.py
"""
Pipeline e eventos de trigger.

Um Pipeline é um conjunto ordenado de stages (DAG) acompanhado de um
predicado de trigger. É um objeto de configuração explícito e versionado:
a versão é o hash canônico da definição, e cada Run registra a versão
com que foi criada.

Invariantes:
    - A ordem de declaração dos stages é preservada em `stages`
    - `order` é a ordem topológica determinística (desempate por declaração)
    - A instância é imutável e compartilhada entre Runs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Any, Dict, List, Mapping, Tuple

from stagegate.core.engine.planner import build_dependents, descendants, plan_stages

from .stage import Stage


@dataclass(frozen=True)
class TriggerEvent:
    """Evento externo (ex.: push) que pode disparar uma Run."""

    repository: str
    branch: str
    commit: str
    actor: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "repository": self.repository,
            "branch": self.branch,
            "commit": self.commit,
            "actor": self.actor,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TriggerEvent":
        return cls(
            repository=str(data.get("repository", "")),
            branch=str(data.get("branch", "")),
            commit=str(data.get("commit", "")),
            actor=str(data.get("actor", "")),
        )


@dataclass(frozen=True)
class TriggerPredicate:
    """
    Predicado de trigger: padrões glob de branch e, opcionalmente, repositórios.

    Um predicado sem branches casa com qualquer branch.
    """

    branches: Tuple[str, ...] = ()
    repositories: Tuple[str, ...] = ()

    def matches(self, event: TriggerEvent) -> bool:
        if self.branches and not any(fnmatchcase(event.branch, p) for p in self.branches):
            return False
        if self.repositories and event.repository not in self.repositories:
            return False
        return True

    def to_dict(self) -> Dict[str, List[str]]:
        data: Dict[str, List[str]] = {"branches": list(self.branches)}
        if self.repositories:
            data["repositories"] = list(self.repositories)
        return data


@dataclass(frozen=True)
class Pipeline:
    name: str
    stages: Tuple[Stage, ...]
    trigger: TriggerPredicate = TriggerPredicate()
    version: str = ""
    digest: str = ""

    _by_id: Dict[str, Stage] = field(default_factory=dict, init=False, repr=False, compare=False)
    _order: Tuple[str, ...] = field(default=(), init=False, repr=False, compare=False)
    _dependents: Dict[str, Tuple[str, ...]] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        ordered = plan_stages(self.stages)
        # frozen: estruturas derivadas são calculadas uma única vez
        object.__setattr__(self, "_by_id", {s.id: s for s in self.stages})
        object.__setattr__(self, "_order", tuple(s.id for s in ordered))
        object.__setattr__(self, "_dependents", build_dependents(self.stages))

    @property
    def stage_ids(self) -> List[str]:
        return [s.id for s in self.stages]

    @property
    def order(self) -> Tuple[str, ...]:
        return self._order

    def has_stage(self, stage_id: str) -> bool:
        return stage_id in self._by_id

    def stage(self, stage_id: str) -> Stage:
        return self._by_id[stage_id]

    def dependents(self, stage_id: str) -> Tuple[str, ...]:
        return self._dependents.get(stage_id, ())

    def descendants(self, stage_id: str) -> List[str]:
        return descendants(stage_id, self._dependents, self._order)

    def matches(self, event: TriggerEvent) -> bool:
        return self.trigger.matches(event)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "trigger": self.trigger.to_dict(),
            "stages": [s.to_dict() for s in self.stages],
        }
