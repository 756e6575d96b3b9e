# src/stagegate/core/state/store.py
"""
Run Store — armazenamento chaveado do estado de Runs.

Este módulo define o contrato (`RunStore`) e a implementação em memória
(`InMemoryRunStore`). A implementação durável em arquivos JSON vive em
`stagegate.core.state.json_store`.

Operações:
    - create: registra uma nova Run
    - get: snapshot independente de uma Run
    - compare_and_set_stage: transição atômica do status de um único stage
    - mark_cancelled: marca a Run como cancelada (idempotente)
    - append_event: acrescenta um evento ao Event Log
    - list_runs / list_active

Decisões arquiteturais:
    - Cada par (run, stage) possui seu próprio lock: nenhuma operação
      segura um lock sobre a Run inteira durante o scheduling
    - `StageRecord` é imutável: o CAS substitui o registro inteiro
    - Snapshots nunca compartilham containers mutáveis com o store

Invariantes:
    - No máximo uma transição de status concorrente por stage
    - Um CAS cujo status esperado não confere não produz mutação
    - O evento de uma transição é anexado antes do novo registro ficar
      visível; a ordem dos eventos de um stage segue a ordem dos CAS
    - Ordem de aquisição de locks: stage, depois run
"""

from __future__ import annotations

import threading
from typing import Any, Collection, Dict, List, Optional, Protocol, Tuple, Union, runtime_checkable

from stagegate.core.exceptions import InvalidState, NotFound
from stagegate.core.pipeline.types import StageStatus
from stagegate.core.traceability.events import iso, utc_now

from .run import Run, StageRecord

Expected = Union[StageStatus, Collection[StageStatus]]


@runtime_checkable
class RunStore(Protocol):
    def create(self, run: Run) -> None:
        ...

    def get(self, run_id: str) -> Run:
        ...

    def compare_and_set_stage(
        self,
        run_id: str,
        stage_id: str,
        *,
        expected: Expected,
        new_status: StageStatus,
        event: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ) -> Optional[StageRecord]:
        """
        Retorna o novo registro, ou None se o status atual não era o esperado.

        `event`, quando informado, entra no Event Log na mesma transição:
        um snapshot que mostra o novo status sempre contém o evento.
        """
        ...

    def mark_cancelled(self, run_id: str) -> bool:
        ...

    def append_event(self, run_id: str, event: Dict[str, Any]) -> None:
        ...

    def list_runs(self) -> List[Run]:
        ...

    def list_active(self) -> List[Run]:
        ...


def _expected_set(expected: Expected) -> Tuple[StageStatus, ...]:
    if isinstance(expected, StageStatus):
        return (expected,)
    return tuple(expected)


class InMemoryRunStore:
    """Run Store em memória, seguro para uso concorrente entre threads."""

    def __init__(self) -> None:
        self._runs: Dict[str, Run] = {}
        self._order: List[str] = []
        self._stage_locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._run_locks: Dict[str, threading.Lock] = {}
        # protege apenas os dicionários acima (inserção de runs/locks)
        self._registry_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Hooks de persistência
    # ------------------------------------------------------------------
    def _persist(self, run_id: str) -> None:
        """Chamado após toda mutação; no-op em memória."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require(self, run_id: str) -> Run:
        run = self._runs.get(run_id)
        if run is None:
            raise NotFound(f"Run não encontrada: {run_id}", details={"run_id": run_id})
        return run

    def _register(self, run: Run) -> None:
        with self._registry_lock:
            if run.run_id in self._runs:
                raise InvalidState(
                    f"Run já existe: {run.run_id}",
                    details={"run_id": run.run_id},
                )
            self._runs[run.run_id] = run
            self._order.append(run.run_id)
            self._run_locks[run.run_id] = threading.Lock()
            for sid in run.stage_order:
                self._stage_locks[(run.run_id, sid)] = threading.Lock()

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------
    def create(self, run: Run) -> None:
        self._register(run.snapshot())
        self._persist(run.run_id)

    def get(self, run_id: str) -> Run:
        return self._require(run_id).snapshot()

    def compare_and_set_stage(
        self,
        run_id: str,
        stage_id: str,
        *,
        expected: Expected,
        new_status: StageStatus,
        event: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ) -> Optional[StageRecord]:
        run = self._require(run_id)
        lock = self._stage_locks.get((run_id, stage_id))
        if lock is None:
            raise NotFound(
                f"Stage não encontrado: {stage_id}",
                details={"run_id": run_id, "stage_id": stage_id},
            )

        with lock:
            current = run.stages[stage_id]
            if current.status not in _expected_set(expected):
                return None
            updated = current.evolve(status=new_status, **fields)
            if event is not None:
                # evento antes do registro: snapshot copia stages antes de events
                with self._run_locks[run_id]:
                    run.events.append(dict(event))
            run.stages[stage_id] = updated

        self._persist(run_id)
        return updated

    def mark_cancelled(self, run_id: str) -> bool:
        """Retorna False se a Run já estava cancelada."""
        run = self._require(run_id)
        with self._run_locks[run_id]:
            if run.cancelled_at is not None:
                return False
            run.cancelled_at = iso(utc_now())
        self._persist(run_id)
        return True

    def append_event(self, run_id: str, event: Dict[str, Any]) -> None:
        run = self._require(run_id)
        with self._run_locks[run_id]:
            run.events.append(dict(event))
        self._persist(run_id)

    def list_runs(self) -> List[Run]:
        with self._registry_lock:
            ids = list(self._order)
        return [self._runs[rid].snapshot() for rid in ids]

    def list_active(self) -> List[Run]:
        return [run for run in self.list_runs() if run.is_active]
