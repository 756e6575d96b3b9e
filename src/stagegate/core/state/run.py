# src/stagegate/core/state/run.py
"""
Run — instância de execução de um pipeline para um evento de trigger.

Este módulo define a estrutura canônica de uma Run e de seus registros
por stage. Uma Run:
    - referencia o pipeline por nome e versão (a definição é compartilhada)
    - carrega os metadados do trigger (repositório, branch, commit, ator)
    - possui exclusivamente o mapa de status por stage
    - carrega um Event Log ordenado

Decisões arquiteturais:
    - `StageRecord` é imutável; toda transição substitui o registro inteiro
      (é isso que o Run Store troca atomicamente no compare-and-set)
    - O status agregado da Run nunca é armazenado: é sempre derivado
    - A estrutura é serializável em JSON e reconstruível via round-trip

Limites explícitos:
    - Não executa stages
    - Não aplica transições (responsabilidade do Orchestrator via Run Store)
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional

from stagegate.core.pipeline.pipeline import TriggerEvent
from stagegate.core.pipeline.types import RunStatus, StageStatus


@dataclass(frozen=True)
class StageRecord:
    """
    Estado de um stage dentro de uma Run.

    Campos:
        - status: status atual (`StageStatus`)
        - started_at / finished_at: timestamps ISO 8601 UTC
        - duration_ms: duração da execução (apenas stages executados)
        - attempts: tentativas realizadas (retries de infraestrutura incluídos)
        - summary: resumo humano do resultado
        - log: cauda do log capturado (saída combinada)
        - error: payload canônico de erro (`ErrorPayload.to_dict()`)
        - approval: decisão do gate manual `{decision, by, at}`
    """

    status: StageStatus = StageStatus.PENDING
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    duration_ms: Optional[int] = None
    attempts: int = 0
    summary: str = ""
    log: str = ""
    error: Optional[Dict[str, Any]] = None
    approval: Optional[Dict[str, Any]] = None

    def evolve(self, **changes: Any) -> "StageRecord":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_ms": self.duration_ms,
            "attempts": self.attempts,
            "summary": self.summary,
            "log": self.log,
            "error": copy.deepcopy(self.error),
            "approval": dict(self.approval) if self.approval else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StageRecord":
        return cls(
            status=StageStatus(data.get("status", StageStatus.PENDING.value)),
            started_at=data.get("started_at"),
            finished_at=data.get("finished_at"),
            duration_ms=data.get("duration_ms"),
            attempts=int(data.get("attempts", 0) or 0),
            summary=str(data.get("summary", "") or ""),
            log=str(data.get("log", "") or ""),
            error=copy.deepcopy(data.get("error")),
            approval=dict(data["approval"]) if data.get("approval") else None,
        )


@dataclass
class Run:
    run_id: str
    pipeline: str
    pipeline_version: str
    trigger: TriggerEvent
    created_at: str
    stage_order: List[str]
    stages: Dict[str, StageRecord] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)
    cancelled_at: Optional[str] = None

    @classmethod
    def new(
        cls,
        *,
        run_id: str,
        pipeline: str,
        pipeline_version: str,
        trigger: TriggerEvent,
        created_at: str,
        stage_ids: Iterable[str],
    ) -> "Run":
        """Cria uma Run com todos os stages PENDING (ordem de declaração)."""
        order = list(stage_ids)
        return cls(
            run_id=run_id,
            pipeline=pipeline,
            pipeline_version=pipeline_version,
            trigger=trigger,
            created_at=created_at,
            stage_order=order,
            stages={sid: StageRecord() for sid in order},
        )

    # -----------------------------
    # Derivações
    # -----------------------------
    def stage_status(self, stage_id: str) -> StageStatus:
        return self.stages[stage_id].status

    @property
    def cancelled(self) -> bool:
        return self.cancelled_at is not None

    @property
    def rejected(self) -> bool:
        return any(
            (rec.approval or {}).get("decision") == "rejected" for rec in self.stages.values()
        )

    @property
    def status(self) -> RunStatus:
        statuses = [self.stages[sid].status for sid in self.stage_order]

        if self.cancelled:
            return RunStatus.CANCELLED
        if StageStatus.FAILED in statuses or self.rejected:
            return RunStatus.FAILED
        if all(s in (StageStatus.SUCCEEDED, StageStatus.SKIPPED) for s in statuses):
            return RunStatus.SUCCEEDED
        in_flight = any(s.is_in_flight for s in statuses)
        if StageStatus.AWAITING_APPROVAL in statuses and not in_flight:
            return RunStatus.AWAITING_APPROVAL
        if all(s == StageStatus.PENDING for s in statuses):
            return RunStatus.PENDING
        return RunStatus.RUNNING

    @property
    def is_active(self) -> bool:
        """Há stages não terminais (ainda podem transitar)."""
        return any(not rec.status.is_terminal for rec in self.stages.values())

    @property
    def finished_at(self) -> Optional[str]:
        if self.is_active:
            return None
        stamps = [rec.finished_at for rec in self.stages.values() if rec.finished_at]
        if self.cancelled_at:
            stamps.append(self.cancelled_at)
        return max(stamps) if stamps else None

    # -----------------------------
    # Serialização
    # -----------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "pipeline": self.pipeline,
            "pipeline_version": self.pipeline_version,
            "trigger": self.trigger.to_dict(),
            "created_at": self.created_at,
            "cancelled_at": self.cancelled_at,
            "finished_at": self.finished_at,
            "status": self.status.value,
            "stage_order": list(self.stage_order),
            "stages": {sid: self.stages[sid].to_dict() for sid in self.stage_order},
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Run":
        """Reconstrói uma Run; campos derivados (`status`, `finished_at`) são ignorados."""
        stages_raw = data.get("stages", {}) or {}
        order = list(data.get("stage_order") or stages_raw.keys())
        return cls(
            run_id=data["run_id"],
            pipeline=data["pipeline"],
            pipeline_version=data.get("pipeline_version", ""),
            trigger=TriggerEvent.from_dict(data.get("trigger", {}) or {}),
            created_at=data["created_at"],
            stage_order=order,
            stages={sid: StageRecord.from_dict(stages_raw.get(sid, {}) or {}) for sid in order},
            events=[dict(e) for e in (data.get("events", []) or [])],
            cancelled_at=data.get("cancelled_at"),
        )

    def snapshot(self) -> "Run":
        """Cópia independente (registros são imutáveis; containers são copiados)."""
        return Run(
            run_id=self.run_id,
            pipeline=self.pipeline,
            pipeline_version=self.pipeline_version,
            trigger=self.trigger,
            created_at=self.created_at,
            stage_order=list(self.stage_order),
            stages=dict(self.stages),
            events=list(self.events),
            cancelled_at=self.cancelled_at,
        )
