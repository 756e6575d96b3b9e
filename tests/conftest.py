# tests/conftest.py
"""
Fixtures compartilhados para testes do StageGate.

Este módulo define fixtures reutilizáveis que fornecem:
- definições de pipeline mínimas e determinísticas (dicts já carregados)
- eventos de trigger canônicos
- um executor roteirizado (sem processos reais) para testes do Orchestrator
- uma fábrica de Orchestrator com encerramento garantido ao fim do teste

Decisões arquiteturais:
    - Definições são dicts, exercitando o mesmo caminho do loader real
    - O executor roteirizado usa duck typing em vez de herança
    - Imports do core são realizados de forma lazy para
      melhorar a clareza de erros durante falhas

Invariantes:
    - Nenhuma fixture executa comandos shell
    - Todo Orchestrator criado é encerrado no teardown

Limites explícitos:
    - Não substituir testes do ShellCommandExecutor (tests/executors)
    - Não conter lógica de scheduling
"""

import threading
import time

import pytest


WAIT_TIMEOUT = 10.0


# =====================================================
# Definições de pipeline
# =====================================================

@pytest.fixture
def linear_definition() -> dict:
    """
    Pipeline linear lint → build → push, sem gates manuais.

    Returns:
        dict: Definição declarativa (formato do loader).
    """
    return {
        "name": "site-image",
        "trigger": {"branches": ["main"]},
        "stages": [
            {"id": "lint", "commands": ["htmlhint index.html"]},
            {"id": "build", "depends_on": ["lint"], "commands": ["docker build -t site ."]},
            {"id": "push", "depends_on": ["build"], "commands": ["docker push site"]},
        ],
    }


@pytest.fixture
def gated_definition(linear_definition) -> dict:
    """Mesmo pipeline, com gate manual de produção antes de `push`."""
    definition = dict(linear_definition)
    definition["name"] = "site-image-gated"
    definition["environments"] = {"production": {"approvers": ["alice"]}}
    definition["stages"] = [dict(s) for s in linear_definition["stages"]]
    definition["stages"][2]["gate"] = "manual:production"
    return definition


@pytest.fixture
def push_event():
    from stagegate.core.pipeline.pipeline import TriggerEvent

    return TriggerEvent(repository="acme/site", branch="main", commit="abc123", actor="carol")


# =====================================================
# Executor roteirizado
# =====================================================

@pytest.fixture
def ScriptedExecutor():
    """
    Fixture factory que fornece um executor duck-typed com comportamento por stage.

    Ações suportadas em `script[stage_id]`:
        - "ok" (default): SUCCEEDED
        - "fail": FAILED (comando com saída não zero)
        - "timeout": FAILED com `timed_out`
        - "infra": levanta InfraFailure sempre
        - "infra:N": levanta InfraFailure nas N primeiras tentativas
        - "block": aguarda `release` ou o cancelamento da requisição
        - "secret": levanta SecretNotFound
        - "crash": levanta RuntimeError (erro inesperado)

    Returns:
        type: Classe _ScriptedExecutor instanciável pelos testes.
    """
    from stagegate.core.exceptions import InfraFailure, SecretNotFound
    from stagegate.core.pipeline.types import StageStatus
    from stagegate.executors.base import ExecutionResult

    class _ScriptedExecutor:
        def __init__(self, script=None):
            self.script = dict(script or {})
            self.calls = []
            self.requests = []
            self.release = threading.Event()
            self.running = 0
            self.max_running = 0
            self._started = {}
            self._attempts = {}
            self._lock = threading.Lock()

        def started(self, stage_id):
            with self._lock:
                return self._started.setdefault(stage_id, threading.Event())

        def attempts(self, stage_id):
            with self._lock:
                return self._attempts.get(stage_id, 0)

        def execute(self, request):
            sid = request.stage_id
            with self._lock:
                self.calls.append(sid)
                self.requests.append(request)
                self._attempts[sid] = self._attempts.get(sid, 0) + 1
                attempt = self._attempts[sid]
                self.running += 1
                self.max_running = max(self.max_running, self.running)
            self.started(sid).set()
            try:
                action = self.script.get(sid, "ok")
                if action == "infra" or (action.startswith("infra:") and attempt <= int(action.split(":")[1])):
                    raise InfraFailure("executor unreachable", details={"stage_id": sid})
                if action == "secret":
                    raise SecretNotFound("Segredo não encontrado: TOKEN", details={"secret": "TOKEN"})
                if action == "crash":
                    raise RuntimeError("boom")
                if action == "fail":
                    return ExecutionResult(
                        status=StageStatus.FAILED,
                        log=f"{sid}: boom",
                        summary="command 1/1 failed",
                        failed_command=0,
                    )
                if action == "timeout":
                    return ExecutionResult(status=StageStatus.FAILED, summary="timed out", timed_out=True, failed_command=0)
                if action == "block":
                    while not (self.release.is_set() or request.cancel_event.is_set()):
                        request.cancel_event.wait(0.01)
                    if request.cancel_event.is_set():
                        return ExecutionResult(status=StageStatus.FAILED, summary="cancelled", cancelled=True)
                return ExecutionResult(status=StageStatus.SUCCEEDED, log=f"{sid}: ok", summary="1 command(s) succeeded")
            finally:
                with self._lock:
                    self.running -= 1

    return _ScriptedExecutor


# =====================================================
# Orchestrator
# =====================================================

@pytest.fixture
def make_orchestrator():
    """
    Fábrica de Orchestrator em memória.

    Uso:
        orch = make_orchestrator(executor, fail_fast=False, max_workers=2)

    Todos os Orchestrators criados são encerrados no teardown, cancelando
    execuções ainda bloqueadas.
    """
    from stagegate.core.config.settings import OrchestratorSettings, RetryPolicy
    from stagegate.core.engine.orchestrator import Orchestrator
    from stagegate.core.state.store import InMemoryRunStore

    created = []

    def _make(executor, *, store=None, registry=None, **overrides):
        params = {
            "max_workers": 4,
            "stage_timeout_sec": 30.0,
            "infra_retry": RetryPolicy(max_attempts=3, backoff_base_sec=0.0, backoff_max_sec=0.0),
        }
        params.update(overrides)
        orch = Orchestrator(
            store=store if store is not None else InMemoryRunStore(),
            executor=executor,
            registry=registry,
            settings=OrchestratorSettings(**params),
        )
        created.append(orch)
        return orch

    yield _make

    for orch in created:
        orch.shutdown(cancel_running=True)


@pytest.fixture
def statuses():
    """Mapa stage_id → valor textual do status, para asserts legíveis."""

    def _statuses(run):
        return {sid: run.stages[sid].status.value for sid in run.stage_order}

    return _statuses


@pytest.fixture
def make_pipeline():
    """
    Constrói um Pipeline validado a partir de especificações compactas.

    Uso:
        make_pipeline(("lint", []), ("build", ["lint"]), name="site-image")

    Cada especificação é `(id, depends_on)` ou `(id, depends_on, extra)`,
    onde `extra` é mesclado na definição do stage (ex.: gate, secrets).
    """
    from stagegate.core.pipeline.loader import parse_pipeline

    def _make(*specs, name="site-image", environments=None):
        stages = []
        for spec in specs:
            sid, deps = spec[0], spec[1]
            stage = {"id": sid, "depends_on": list(deps), "commands": [f"echo {sid}"]}
            if len(spec) > 2:
                stage.update(spec[2])
            stages.append(stage)
        definition = {"name": name, "trigger": {"branches": ["main"]}, "stages": stages}
        if environments is not None:
            definition["environments"] = environments
        return parse_pipeline(definition)

    return _make


@pytest.fixture
def wait_until():
    """Espera ativa limitada por uma condição observável (apenas em testes)."""

    def _wait(predicate, timeout=WAIT_TIMEOUT, interval=0.01):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return
            time.sleep(interval)
        pytest.fail("condition not reached within timeout")

    return _wait
