# src/stagegate/core/pipeline/stage.py
"""
Definições imutáveis de Stage e Gate.

Um Stage é a menor unidade executável do pipeline: uma lista ordenada de
comandos shell, dependências explícitas e um gate. Definições são
compartilhadas (somente leitura) entre todas as Runs de um pipeline; o
estado de execução vive exclusivamente na Run.

Princípios fundamentais:
    - Stages não conhecem o Orchestrator nem o Run Store
    - Dependências são explícitas e declarativas
    - Segredos são referenciados apenas por nome, nunca por valor

Invariantes:
    - `id` é não vazio e único no pipeline (garantido pelo loader)
    - `commands` possui ao menos um comando
    - Um gate MANUAL possui nome de ambiente não vazio
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from .errors import InvalidGateError
from .types import GateKind


@dataclass(frozen=True)
class Gate:
    """
    Precondição que um stage deve satisfazer antes de iniciar.

    Um gate MANUAL nunca se resolve sozinho: só transita por um evento
    explícito de aprovação ou rejeição vindo de uma identidade presente
    em `approvers`.
    """

    kind: GateKind = GateKind.AUTOMATIC
    environment: Optional[str] = None
    approvers: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        if self.kind == GateKind.MANUAL:
            if not isinstance(self.environment, str) or not self.environment.strip():
                raise InvalidGateError(
                    "Gate manual exige nome de ambiente não vazio",
                    details={"environment": self.environment},
                )

    @property
    def is_manual(self) -> bool:
        return self.kind == GateKind.MANUAL

    def is_authorized(self, identity: str) -> bool:
        return self.is_manual and identity in self.approvers

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value}
        if self.is_manual:
            data["environment"] = self.environment
            data["approvers"] = sorted(self.approvers)
        return data


@dataclass(frozen=True)
class Stage:
    id: str
    commands: Tuple[str, ...]
    depends_on: Tuple[str, ...] = ()
    gate: Gate = field(default_factory=Gate)
    env: Mapping[str, str] = field(default_factory=dict)
    secrets: Tuple[str, ...] = ()
    timeout_sec: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "commands": list(self.commands),
            "depends_on": list(self.depends_on),
            "gate": self.gate.to_dict(),
        }
        if self.env:
            data["env"] = dict(self.env)
        if self.secrets:
            data["secrets"] = list(self.secrets)
        if self.timeout_sec is not None:
            data["timeout_sec"] = self.timeout_sec
        return data
