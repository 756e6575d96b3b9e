# src/stagegate/core/pipeline/types.py
"""
Tipos canônicos do pipeline do StageGate.

Este módulo define os enums fundamentais que padronizam a comunicação
entre Loader, Orchestrator, Run Store e Status API:
    - GateKind    → tipo de precondição de um stage
    - StageStatus → ciclo de vida de um stage dentro de uma Run
    - RunStatus   → status agregado de uma Run (sempre derivado)

Princípios fundamentais:
    - Enums possuem valores textuais canônicos (serializáveis em JSON)
    - Nenhum código de saída de processo aparece nestes tipos
    - Nenhuma lógica de execução vive neste módulo
"""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet


class GateKind(str, Enum):
    """
    Tipo de gate de um stage.

    - NONE: nenhuma precondição além das dependências
    - AUTOMATIC: satisfeito quando todas as dependências terminam com sucesso
    - MANUAL: exige aprovação explícita de uma identidade autorizada,
      associada a um ambiente (ex.: production)

    NONE e AUTOMATIC são equivalentes para o scheduler; a distinção é
    preservada por ser declarada pelo autor do pipeline.
    """
    NONE = "none"
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class StageStatus(str, Enum):
    """
    Estados de um stage dentro de uma Run.

    Transições permitidas (todas via compare-and-set no Run Store):

        PENDING ──► BLOCKED ──► RUNNING ──► SUCCEEDED | FAILED
           │  └──► AWAITING_APPROVAL ──► PENDING (aprovado) | SKIPPED (rejeitado)
           └──► SKIPPED
        qualquer estado não terminal ──► CANCELLED

    BLOCKED significa "despachado, aguardando um worker livre".
    """
    PENDING = "pending"
    BLOCKED = "blocked"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    AWAITING_APPROVAL = "awaiting_approval"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STAGE_STATUSES

    @property
    def is_in_flight(self) -> bool:
        return self in (StageStatus.BLOCKED, StageStatus.RUNNING)


TERMINAL_STAGE_STATUSES: FrozenSet[StageStatus] = frozenset(
    {
        StageStatus.SUCCEEDED,
        StageStatus.FAILED,
        StageStatus.SKIPPED,
        StageStatus.CANCELLED,
    }
)

# Dependência nesses estados impede definitivamente o stage de executar.
BLOCKING_DEPENDENCY_STATUSES: FrozenSet[StageStatus] = frozenset(
    {
        StageStatus.FAILED,
        StageStatus.SKIPPED,
        StageStatus.CANCELLED,
    }
)


class RunStatus(str, Enum):
    """Status agregado de uma Run, derivado dos status dos stages."""
    PENDING = "pending"
    RUNNING = "running"
    AWAITING_APPROVAL = "awaiting_approval"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.CANCELLED)
