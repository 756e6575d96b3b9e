# src/stagegate/core/engine/orchestrator.py
"""
Orchestrator — scheduler de execução de Runs do StageGate.

O Orchestrator dirige cada Run do início ao fim:
    - cria a Run (todos os stages PENDING) a partir de um evento de trigger
    - despacha stages prontos para um pool de workers compartilhado
    - suspende stages com gate MANUAL em AWAITING_APPROVAL
    - aplica aprovação, rejeição e cancelamento vindos da API
    - propaga falhas (cascata de SKIPPED e fail-fast)

Decisões arquiteturais:
    - Toda transição de status é um compare-and-set no Run Store; é a
      única sincronização entre `advance` concorrentes, workers e API
    - `advance` é idempotente e reentrante: pode ser chamado por qualquer
      evento (criação, término de stage, aprovação) sem coordenação extra
    - Esperas por aprovação são orientadas a eventos: nada faz polling;
      `wait()` dorme em uma Condition notificada após cada transição; a
      Condition nunca envolve o CAS
    - O evento de cada transição de stage é gravado pelo próprio CAS do
      Run Store, sem lock compartilhado entre Runs
    - Falhas de execução nunca atravessam a fronteira da Run: são
      registradas no estado do stage com payload canônico de erro
    - Falhas de infraestrutura são retentadas com backoff exponencial
      limitado (tenacity); falha de comando e timeout não são retentados

Invariantes:
    - Um stage nunca entra em RUNNING antes de todas as dependências SUCCEEDED
    - No máximo uma transição para RUNNING por stage por Run
    - Uma Run cancelada não despacha mais nenhum stage
    - Códigos de saída de processos nunca chegam a este módulo

Limites explícitos:
    - Não executa comandos (responsabilidade do Command Executor Adapter)
    - Não autentica identidades (chega aqui já resolvida)
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from stagegate.core.config.settings import OrchestratorSettings
from stagegate.core.errors import execution_failure, infra_failure, unexpected_failure
from stagegate.core.exceptions import (
    InfraFailure,
    InvalidState,
    NotFound,
    StageGateException,
    TriggerMismatch,
    Unauthorized,
)
from stagegate.core.pipeline.pipeline import Pipeline, TriggerEvent
from stagegate.core.pipeline.registry import PipelineRegistry
from stagegate.core.pipeline.stage import Stage
from stagegate.core.pipeline.types import BLOCKING_DEPENDENCY_STATUSES, StageStatus
from stagegate.core.state.run import Run, StageRecord
from stagegate.core.state.store import RunStore
from stagegate.core.traceability import events as ev
from stagegate.executors.base import CommandExecutor, ExecutionRequest, ExecutionResult, stage_environment

logger = logging.getLogger(__name__)

APPROVED = "approved"
REJECTED = "rejected"

_NOT_STARTED = (StageStatus.PENDING, StageStatus.AWAITING_APPROVAL)


def _is_approved(record: StageRecord) -> bool:
    return (record.approval or {}).get("decision") == APPROVED


def is_settled(run: Run, pipeline: Pipeline) -> bool:
    """
    A Run não progride mais sem um evento externo.

    Verdadeiro quando nenhum stage está BLOCKED/RUNNING e todo stage PENDING
    tem alguma dependência ainda PENDING ou AWAITING_APPROVAL.
    """
    if not run.is_active:
        return True
    for sid in run.stage_order:
        status = run.stage_status(sid)
        if status.is_in_flight:
            return False
        if status != StageStatus.PENDING:
            continue
        deps = pipeline.stage(sid).depends_on
        if not any(run.stage_status(d) in _NOT_STARTED for d in deps):
            return False
    return True


class Orchestrator:
    """Scheduler canônico do StageGate (Run Store + pool de workers + executor)."""

    def __init__(
        self,
        *,
        store: RunStore,
        executor: CommandExecutor,
        registry: Optional[PipelineRegistry] = None,
        settings: Optional[OrchestratorSettings] = None,
    ) -> None:
        self.store = store
        self.executor = executor
        self.registry = registry if registry is not None else PipelineRegistry()
        self.settings = settings if settings is not None else OrchestratorSettings()
        self._pool = ThreadPoolExecutor(
            max_workers=self.settings.max_workers,
            thread_name_prefix="stagegate-worker",
        )
        self._changed = threading.Condition()
        self._pipelines: Dict[str, Pipeline] = {}
        self._cancel_events: Dict[Tuple[str, str], threading.Event] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _notify(self) -> None:
        with self._changed:
            self._changed.notify_all()

    def _record(
        self,
        run_id: str,
        event_type: str,
        *,
        stage_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.store.append_event(run_id, ev.make_event(event_type, stage_id=stage_id, payload=payload))

    def _transition(
        self,
        run_id: str,
        stage_id: str,
        *,
        expected: Iterable[StageStatus],
        new_status: StageStatus,
        event_type: str,
        payload: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ) -> Optional[StageRecord]:
        record = self.store.compare_and_set_stage(
            run_id,
            stage_id,
            expected=tuple(expected),
            new_status=new_status,
            event=ev.make_event(event_type, stage_id=stage_id, payload=payload),
            **fields,
        )
        if record is not None:
            self._notify()
        return record

    def _pipeline_for(self, run: Run) -> Pipeline:
        with self._lock:
            pipeline = self._pipelines.get(run.run_id)
        if pipeline is None:
            pipeline = self.registry.get_version(run.pipeline, run.pipeline_version)
            with self._lock:
                self._pipelines[run.run_id] = pipeline
        return pipeline

    def _stage_for(self, run_id: str, stage_id: str) -> Tuple[Run, Stage]:
        run = self.store.get(run_id)
        pipeline = self._pipeline_for(run)
        if not pipeline.has_stage(stage_id):
            raise NotFound(
                f"Stage não encontrado: {stage_id}",
                details={"run_id": run_id, "stage_id": stage_id},
            )
        return run, pipeline.stage(stage_id)

    def _cancel_event(self, run_id: str, stage_id: str) -> threading.Event:
        with self._lock:
            return self._cancel_events.setdefault((run_id, stage_id), threading.Event())

    def _release_cancel_event(self, run_id: str, stage_id: str) -> None:
        with self._lock:
            self._cancel_events.pop((run_id, stage_id), None)

    def _signal_cancel(self, run_id: str) -> None:
        with self._lock:
            targets = [e for (rid, _), e in self._cancel_events.items() if rid == run_id]
        for event in targets:
            event.set()

    @staticmethod
    def _finish_fields(record: StageRecord, finished: datetime) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"finished_at": ev.iso(finished)}
        started = ev.parse_iso(record.started_at)
        if started is not None:
            fields["duration_ms"] = ev.ms_between(started, finished)
        return fields

    # ------------------------------------------------------------------
    # Criação de Runs
    # ------------------------------------------------------------------
    def start_run(self, pipeline: Pipeline, event: TriggerEvent) -> Run:
        """
        Cria uma Run para `pipeline` e inicia sua execução em background.

        Retorna imediatamente com o snapshot da Run recém-criada; stages sem
        dependências já aparecem despachados (BLOCKED) ou aguardando aprovação.

        Raises:
            TriggerMismatch: Se o evento não satisfaz o predicado do pipeline.
        """
        if not pipeline.matches(event):
            raise TriggerMismatch(
                f"Evento não satisfaz o trigger do pipeline {pipeline.name}",
                details={"pipeline": pipeline.name, "trigger": pipeline.trigger.to_dict(), "event": event.to_dict()},
                hint="Verifique as branches/repositórios declarados no trigger do pipeline",
            )

        run = Run.new(
            run_id=uuid.uuid4().hex,
            pipeline=pipeline.name,
            pipeline_version=pipeline.version,
            trigger=event,
            created_at=ev.iso(ev.utc_now()),
            stage_ids=pipeline.stage_ids,
        )
        with self._lock:
            self._pipelines[run.run_id] = pipeline
        self.store.create(run)
        self._record(
            run.run_id,
            ev.RUN_CREATED,
            payload={"pipeline": pipeline.name, "version": pipeline.version, "trigger": event.to_dict()},
        )
        logger.info(
            "run %s created for pipeline %s@%s (%s@%s)",
            run.run_id,
            pipeline.name,
            pipeline.version,
            event.branch,
            event.commit,
        )

        self.advance(run.run_id)
        return self.store.get(run.run_id)

    def trigger(self, event: TriggerEvent) -> List[Run]:
        """Inicia uma Run para cada pipeline ativo cujo trigger casa com o evento."""
        return [self.start_run(pipeline, event) for pipeline in self.registry.match(event)]

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def advance(self, run_id: str) -> None:
        """
        Avalia os stages PENDING da Run em ordem de declaração.

        Para cada stage PENDING:
            - dependência FAILED/SKIPPED/CANCELLED → SKIPPED (com cascata)
            - todas as dependências SUCCEEDED e gate satisfeito → BLOCKED + despacho
            - gate MANUAL ainda não aprovado → AWAITING_APPROVAL

        Seguro para chamadas concorrentes: cada transição é um CAS.
        """
        progressed = True
        while progressed:
            progressed = False
            run = self.store.get(run_id)
            if run.cancelled:
                return
            pipeline = self._pipeline_for(run)

            for sid in run.stage_order:
                record = run.stages[sid]
                if record.status != StageStatus.PENDING:
                    continue
                stage = pipeline.stage(sid)
                deps = {d: run.stage_status(d) for d in stage.depends_on}

                blocking = [d for d, s in deps.items() if s in BLOCKING_DEPENDENCY_STATUSES]
                if blocking:
                    if self._skip(run_id, sid, f"skipped: dependency {blocking[0]} is {deps[blocking[0]].value}"):
                        progressed = True
                    continue

                if not all(s == StageStatus.SUCCEEDED for s in deps.values()):
                    continue

                if stage.gate.is_manual and not _is_approved(record):
                    self._await_approval(run_id, stage)
                    continue

                self._dispatch(run_id, pipeline, stage)

    def _skip(self, run_id: str, stage_id: str, summary: str, *, expected: Iterable[StageStatus] = _NOT_STARTED) -> bool:
        record = self._transition(
            run_id,
            stage_id,
            expected=expected,
            new_status=StageStatus.SKIPPED,
            event_type=ev.STAGE_SKIPPED,
            payload={"reason": summary},
            summary=summary,
            finished_at=ev.iso(ev.utc_now()),
        )
        return record is not None

    def _await_approval(self, run_id: str, stage: Stage) -> None:
        record = self._transition(
            run_id,
            stage.id,
            expected=(StageStatus.PENDING,),
            new_status=StageStatus.AWAITING_APPROVAL,
            event_type=ev.STAGE_AWAITING_APPROVAL,
            payload={"environment": stage.gate.environment},
            summary=f"awaiting approval for {stage.gate.environment}",
        )
        if record is not None:
            logger.info("run %s stage %s awaiting approval (%s)", run_id, stage.id, stage.gate.environment)

    def _dispatch(self, run_id: str, pipeline: Pipeline, stage: Stage) -> None:
        # o evento precisa existir antes do CAS: um cancelamento concorrente
        # deve sempre encontrá-lo
        self._cancel_event(run_id, stage.id)
        record = self._transition(
            run_id,
            stage.id,
            expected=(StageStatus.PENDING,),
            new_status=StageStatus.BLOCKED,
            event_type=ev.STAGE_DISPATCHED,
        )
        if record is None:
            return

        try:
            self._pool.submit(self._execute_stage, run_id, pipeline, stage)
        except RuntimeError as e:
            # pool encerrado (shutdown)
            self._release_cancel_event(run_id, stage.id)
            self._transition(
                run_id,
                stage.id,
                expected=(StageStatus.BLOCKED,),
                new_status=StageStatus.FAILED,
                event_type=ev.STAGE_FAILED,
                summary="orchestrator is shutting down",
                error=unexpected_failure(stage_id=stage.id, exc=e).to_dict(),
                finished_at=ev.iso(ev.utc_now()),
            )

    # ------------------------------------------------------------------
    # Execução (worker)
    # ------------------------------------------------------------------
    def _request_for(self, run: Run, stage: Stage, cancel_event: threading.Event) -> ExecutionRequest:
        env = dict(stage.env)
        env.update(stage_environment(run_id=run.run_id, stage_id=stage.id, trigger=run.trigger))
        return ExecutionRequest(
            run_id=run.run_id,
            stage_id=stage.id,
            commands=tuple(stage.commands),
            workdir=self.settings.workdir,
            timeout_sec=stage.timeout_sec if stage.timeout_sec is not None else self.settings.stage_timeout_sec,
            env=env,
            secrets=tuple(stage.secrets),
            cancel_event=cancel_event,
        )

    def _execute_with_retry(self, request: ExecutionRequest) -> Tuple[ExecutionResult, int]:
        policy = self.settings.infra_retry
        attempts = 0

        def _before_sleep(retry_state) -> None:
            exc = retry_state.outcome.exception()
            logger.warning(
                "run %s stage %s: infra failure on attempt %d/%d: %s",
                request.run_id,
                request.stage_id,
                retry_state.attempt_number,
                policy.max_attempts,
                exc,
            )
            self._transition(
                request.run_id,
                request.stage_id,
                expected=(StageStatus.RUNNING,),
                new_status=StageStatus.RUNNING,
                event_type=ev.STAGE_RETRY,
                payload={"attempt": retry_state.attempt_number, "error": str(exc)},
                attempts=retry_state.attempt_number + 1,
            )

        retrying = Retrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_exponential(multiplier=policy.backoff_base_sec, max=policy.backoff_max_sec),
            retry=retry_if_exception_type(InfraFailure),
            before_sleep=_before_sleep,
            sleep=request.cancel_event.wait,
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                attempts = attempt.retry_state.attempt_number
                if request.cancel_event.is_set():
                    return ExecutionResult(status=StageStatus.FAILED, summary="cancelled", cancelled=True), attempts
                result = self.executor.execute(request)
            return result, attempts
        raise AssertionError("unreachable")  # pragma: no cover

    def _execute_stage(self, run_id: str, pipeline: Pipeline, stage: Stage) -> None:
        cancel_event = self._cancel_event(run_id, stage.id)
        started = ev.utc_now()
        record = self._transition(
            run_id,
            stage.id,
            expected=(StageStatus.BLOCKED,),
            new_status=StageStatus.RUNNING,
            event_type=ev.STAGE_STARTED,
            started_at=ev.iso(started),
            attempts=1,
        )
        if record is None:
            # cancelado ou pulado por fail-fast antes de um worker assumir
            self._release_cancel_event(run_id, stage.id)
            return

        run = self.store.get(run_id)
        request = self._request_for(run, stage, cancel_event)
        logger.info("run %s stage %s started", run_id, stage.id)

        status = StageStatus.FAILED
        fields: Dict[str, Any] = {}
        try:
            result, attempts = self._execute_with_retry(request)
            fields.update(attempts=attempts, log=result.log, summary=result.summary)
            if result.cancelled:
                status = StageStatus.CANCELLED
            elif result.succeeded:
                status = StageStatus.SUCCEEDED
            else:
                message = (
                    f"Stage {stage.id} excedeu o timeout de {request.timeout_sec:g}s"
                    if result.timed_out
                    else f"Stage {stage.id} falhou: {result.summary}"
                )
                fields["error"] = execution_failure(
                    stage_id=stage.id,
                    message=message,
                    timed_out=result.timed_out,
                    failed_command=result.failed_command,
                ).to_dict()
        except InfraFailure as e:
            attempts = self.settings.infra_retry.max_attempts
            fields.update(
                attempts=attempts,
                summary=f"infra failure after {attempts} attempt(s): {e.message}",
                error=infra_failure(stage_id=stage.id, message=e.message, attempts=attempts).to_dict(),
            )
        except StageGateException as e:
            payload = e.to_payload()
            payload.details.setdefault("stage_id", stage.id)
            fields.update(summary=e.message, error=payload.to_dict())
        except Exception as e:
            logger.exception("run %s stage %s: unexpected error", run_id, stage.id)
            fields.update(summary=str(e) or e.__class__.__name__, error=unexpected_failure(stage_id=stage.id, exc=e).to_dict())
        finally:
            self._release_cancel_event(run_id, stage.id)

        self._complete(run_id, pipeline, stage, status, started, fields)

    def _complete(
        self,
        run_id: str,
        pipeline: Pipeline,
        stage: Stage,
        status: StageStatus,
        started: datetime,
        fields: Dict[str, Any],
    ) -> None:
        finished = ev.utc_now()
        fields.update(finished_at=ev.iso(finished), duration_ms=ev.ms_between(started, finished))
        if self.store.get(run_id).cancelled:
            status = StageStatus.CANCELLED
        elif status == StageStatus.CANCELLED:
            # interrompido por shutdown, não por cancelamento da Run
            status = StageStatus.FAILED
            fields.setdefault(
                "error",
                infra_failure(
                    stage_id=stage.id,
                    message="Execução interrompida pelo encerramento do orquestrador",
                    attempts=fields.get("attempts", 1),
                ).to_dict(),
            )

        event_type = {
            StageStatus.SUCCEEDED: ev.STAGE_SUCCEEDED,
            StageStatus.FAILED: ev.STAGE_FAILED,
            StageStatus.CANCELLED: ev.STAGE_CANCELLED,
        }[status]
        record = self._transition(
            run_id,
            stage.id,
            expected=(StageStatus.RUNNING,),
            new_status=status,
            event_type=event_type,
            payload={"summary": fields.get("summary", "")},
            **fields,
        )
        if record is None:
            # o cancelamento chegou primeiro e já registrou o estado final
            return

        logger.info("run %s stage %s %s (%s)", run_id, stage.id, status.value, record.summary)
        if status == StageStatus.FAILED:
            self._propagate_failure(run_id, pipeline, stage.id)
        self.advance(run_id)

    def _propagate_failure(self, run_id: str, pipeline: Pipeline, stage_id: str) -> None:
        """Cascata de SKIPPED sobre os descendentes e, com fail-fast, sobre o resto."""
        for sid in pipeline.descendants(stage_id):
            self._skip(run_id, sid, f"skipped: upstream stage {stage_id} did not succeed")

        if not self.settings.fail_fast:
            return
        for sid in pipeline.order:
            if sid == stage_id:
                continue
            self._skip(
                run_id,
                sid,
                f"skipped: fail-fast after {stage_id} did not succeed",
                expected=_NOT_STARTED + (StageStatus.BLOCKED,),
            )

    # ------------------------------------------------------------------
    # Gates manuais
    # ------------------------------------------------------------------
    def _check_gate(self, run: Run, stage: Stage, approver: str) -> None:
        if not stage.gate.is_manual:
            raise InvalidState(
                f"Stage {stage.id} não possui gate manual",
                details={"run_id": run.run_id, "stage_id": stage.id, "gate": stage.gate.kind.value},
            )
        if not approver or not stage.gate.is_authorized(approver):
            raise Unauthorized(
                f"Identidade não autorizada a decidir o gate de {stage.id}",
                details={
                    "run_id": run.run_id,
                    "stage_id": stage.id,
                    "environment": stage.gate.environment,
                    "approver": approver,
                },
                hint="Adicione a identidade aos approvers do ambiente no pipeline",
            )
        status = run.stage_status(stage.id)
        if status != StageStatus.AWAITING_APPROVAL:
            raise InvalidState(
                f"Stage {stage.id} não está aguardando aprovação",
                details={"run_id": run.run_id, "stage_id": stage.id, "status": status.value},
            )

    def _decide(self, run_id: str, stage_id: str, approver: str, decision: str) -> Tuple[Run, Stage, Optional[StageRecord]]:
        run, stage = self._stage_for(run_id, stage_id)
        self._check_gate(run, stage, approver)

        approval = {"decision": decision, "by": approver, "at": ev.iso(ev.utc_now())}
        if decision == APPROVED:
            record = self._transition(
                run_id,
                stage_id,
                expected=(StageStatus.AWAITING_APPROVAL,),
                new_status=StageStatus.PENDING,
                event_type=ev.GATE_APPROVED,
                payload={"by": approver, "environment": stage.gate.environment},
                approval=approval,
                summary=f"approved by {approver}",
            )
        else:
            record = self._transition(
                run_id,
                stage_id,
                expected=(StageStatus.AWAITING_APPROVAL,),
                new_status=StageStatus.SKIPPED,
                event_type=ev.GATE_REJECTED,
                payload={"by": approver, "environment": stage.gate.environment},
                approval=approval,
                summary=f"rejected by {approver}",
                finished_at=approval["at"],
            )
        if record is None:
            # outra decisão (ou cancelamento) venceu a corrida
            current = self.store.get(run_id).stage_status(stage_id)
            raise InvalidState(
                f"Stage {stage_id} não está aguardando aprovação",
                details={"run_id": run_id, "stage_id": stage_id, "status": current.value},
            )
        logger.info("run %s stage %s gate %s by %s", run_id, stage_id, decision, approver)
        return run, stage, record

    def approve(self, run_id: str, stage_id: str, approver: str) -> Run:
        """
        Aprova o gate manual de um stage e retoma o scheduling.

        Raises:
            NotFound: Run ou stage inexistente.
            InvalidState: Stage sem gate manual ou fora de AWAITING_APPROVAL.
            Unauthorized: `approver` fora do conjunto de aprovadores do gate.
        """
        self._decide(run_id, stage_id, approver, APPROVED)
        self.advance(run_id)
        return self.store.get(run_id)

    def reject(self, run_id: str, stage_id: str, approver: str) -> Run:
        """Rejeita o gate: o stage e seus descendentes terminam SKIPPED e a Run FAILED."""
        run, _, _ = self._decide(run_id, stage_id, approver, REJECTED)
        self._propagate_failure(run_id, self._pipeline_for(run), stage_id)
        self.advance(run_id)
        return self.store.get(run_id)

    # ------------------------------------------------------------------
    # Cancelamento
    # ------------------------------------------------------------------
    def cancel(self, run_id: str) -> Run:
        """
        Cancela uma Run ativa.

        Todo stage não terminal vira CANCELLED (stages já terminados mantêm
        seu resultado) e execuções em andamento são encerradas.

        Raises:
            InvalidState: Se a Run já terminou ou já foi cancelada.
        """
        run = self.store.get(run_id)
        if not run.is_active or not self.store.mark_cancelled(run_id):
            raise InvalidState(
                f"Run {run_id} já está em estado terminal",
                details={"run_id": run_id, "status": run.status.value},
            )

        for sid in run.stage_order:
            while True:
                current = self.store.get(run_id).stages[sid]
                if current.status.is_terminal:
                    break
                record = self._transition(
                    run_id,
                    sid,
                    expected=(current.status,),
                    new_status=StageStatus.CANCELLED,
                    event_type=ev.STAGE_CANCELLED,
                    summary="cancelled",
                    **self._finish_fields(current, ev.utc_now()),
                )
                if record is not None:
                    break

        self._signal_cancel(run_id)
        self._record(run_id, ev.RUN_CANCELLED)
        self._notify()
        logger.info("run %s cancelled", run_id)
        return self.store.get(run_id)

    # ------------------------------------------------------------------
    # Consulta
    # ------------------------------------------------------------------
    def get_run(self, run_id: str) -> Run:
        return self.store.get(run_id)

    def list_runs(self, *, active_only: bool = False) -> List[Run]:
        return self.store.list_active() if active_only else self.store.list_runs()

    def wait(self, run_id: str, timeout: Optional[float] = None) -> Run:
        """
        Bloqueia até a Run não poder progredir sem um evento externo.

        Retorna o snapshot corrente quando a Run termina, quando fica
        suspensa em gates manuais ou quando `timeout` expira.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._changed:
            while True:
                run = self.store.get(run_id)
                if is_settled(run, self._pipeline_for(run)):
                    return run
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return run
                self._changed.wait(remaining)

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------
    def resume_active(self) -> int:
        """Retoma o scheduling de Runs ativas recarregadas do store (após restart)."""
        resumed = 0
        for run in self.store.list_active():
            if run.cancelled:
                continue
            try:
                self._pipeline_for(run)
            except NotFound:
                logger.warning(
                    "run %s references unknown pipeline %s@%s; not resumed",
                    run.run_id,
                    run.pipeline,
                    run.pipeline_version,
                )
                continue
            self.advance(run.run_id)
            resumed += 1
        return resumed

    def shutdown(self, *, cancel_running: bool = False) -> None:
        if cancel_running:
            with self._lock:
                targets = list(self._cancel_events.values())
            for event in targets:
                event.set()
        self._pool.shutdown(wait=True)
