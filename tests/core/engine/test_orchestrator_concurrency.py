# tests/core/engine/test_orchestrator_concurrency.py
"""
Testes de concorrência do Orchestrator.

Cobre:
- chamadas concorrentes de `advance` nunca despacham um stage duas vezes
- nenhum stage inicia antes de todas as dependências SUCCEEDED
- `max_workers` limita execuções simultâneas (excedentes ficam BLOCKED)
- Runs simultâneas compartilham o pool sem interferência
"""

import threading

import pytest

WAIT_TIMEOUT = 10.0

try:
    from stagegate.core.pipeline.types import RunStatus
    from stagegate.core.traceability import events as ev
except Exception as e:  # pragma: no cover
    RunStatus = None
    ev = None
    _IMPORT_ERR = e


def _require_imports():
    if RunStatus is None:
        pytest.fail(f"Falha ao importar stagegate core: {_IMPORT_ERR}")


def _hammer(fn, *, threads=16):
    barrier = threading.Barrier(threads)

    def _worker():
        barrier.wait()
        fn()

    pool = [threading.Thread(target=_worker) for _ in range(threads)]
    for t in pool:
        t.start()
    for t in pool:
        t.join(WAIT_TIMEOUT)


def test_concurrent_advance_never_double_dispatches(
    ScriptedExecutor, make_orchestrator, make_pipeline, push_event, wait_until
):
    _require_imports()
    executor = ScriptedExecutor({"lint": "block"})
    orch = make_orchestrator(executor)
    pipeline = make_pipeline(("lint", []), ("unit", ["lint"]), ("build", ["lint"]), ("push", ["unit", "build"]))

    run = orch.start_run(pipeline, push_event)
    wait_until(lambda: executor.started("lint").is_set())

    _hammer(lambda: orch.advance(run.run_id))
    executor.release.set()
    _hammer(lambda: orch.advance(run.run_id))
    final = orch.wait(run.run_id, timeout=WAIT_TIMEOUT)

    assert final.status == RunStatus.SUCCEEDED
    assert sorted(executor.calls) == ["build", "lint", "push", "unit"]
    for sid in final.stage_order:
        dispatched = [e for e in final.events if e["event_type"] == ev.STAGE_DISPATCHED and e.get("stage_id") == sid]
        started = [e for e in final.events if e["event_type"] == ev.STAGE_STARTED and e.get("stage_id") == sid]
        assert len(dispatched) == 1
        assert len(started) == 1


def test_stage_never_starts_before_dependencies_succeed(
    ScriptedExecutor, make_orchestrator, make_pipeline, push_event
):
    _require_imports()
    executor = ScriptedExecutor()
    orch = make_orchestrator(executor, max_workers=8)
    pipeline = make_pipeline(
        ("lint", []),
        ("docs", []),
        ("unit", ["lint"]),
        ("build", ["lint"]),
        ("image", ["build", "docs"]),
        ("push", ["unit", "image"]),
    )

    final = orch.wait(orch.start_run(pipeline, push_event).run_id, timeout=WAIT_TIMEOUT)
    assert final.status == RunStatus.SUCCEEDED

    for sid in final.stage_order:
        started = ev.parse_iso(final.stages[sid].started_at)
        for dep in pipeline.stage(sid).depends_on:
            assert final.stages[dep].status.value == "succeeded"
            assert ev.parse_iso(final.stages[dep].finished_at) <= started


def test_max_workers_bounds_running_stages(
    ScriptedExecutor, make_orchestrator, make_pipeline, push_event, statuses, wait_until
):
    _require_imports()
    stage_ids = ["a", "b", "c", "d", "e", "f"]
    executor = ScriptedExecutor({sid: "block" for sid in stage_ids})
    orch = make_orchestrator(executor, max_workers=2)
    pipeline = make_pipeline(*[(sid, []) for sid in stage_ids])

    run = orch.start_run(pipeline, push_event)
    wait_until(lambda: sum(1 for s in statuses(orch.get_run(run.run_id)).values() if s == "running") == 2)

    snapshot = statuses(orch.get_run(run.run_id))
    assert sorted(snapshot.values()) == ["blocked"] * 4 + ["running"] * 2

    executor.release.set()
    final = orch.wait(run.run_id, timeout=WAIT_TIMEOUT)

    assert final.status == RunStatus.SUCCEEDED
    assert executor.max_running == 2


def test_simultaneous_runs_are_isolated(ScriptedExecutor, make_orchestrator, linear_definition, push_event, statuses):
    _require_imports()
    from stagegate.core.pipeline.loader import parse_pipeline

    executor = ScriptedExecutor()
    orch = make_orchestrator(executor, max_workers=3)
    pipeline = parse_pipeline(linear_definition)

    runs = []
    lock = threading.Lock()

    def _start():
        run = orch.start_run(pipeline, push_event)
        with lock:
            runs.append(run.run_id)

    _hammer(_start, threads=5)

    assert len(set(runs)) == 5
    for run_id in runs:
        final = orch.wait(run_id, timeout=WAIT_TIMEOUT)
        assert statuses(final) == {"lint": "succeeded", "build": "succeeded", "push": "succeeded"}
    assert len(executor.calls) == 15


def test_slow_transition_on_one_run_does_not_block_another(
    ScriptedExecutor, make_orchestrator, make_pipeline, push_event, statuses, wait_until
):
    _require_imports()
    from stagegate.core.pipeline.types import StageStatus
    from stagegate.core.state.store import InMemoryRunStore

    class _SlowStore(InMemoryRunStore):
        """Segura o BLOCKED -> RUNNING das Runs do pipeline `slow` até `release`."""

        def __init__(self):
            super().__init__()
            self.entered = threading.Event()
            self.release = threading.Event()
            self.gave_up = False

        def compare_and_set_stage(self, run_id, stage_id, *, expected, new_status, event=None, **fields):
            expected_set = (expected,) if isinstance(expected, StageStatus) else tuple(expected)
            slow = (
                self.get(run_id).pipeline == "slow"
                and new_status == StageStatus.RUNNING
                and StageStatus.BLOCKED in expected_set
            )
            if slow:
                self.entered.set()
                if not self.release.wait(WAIT_TIMEOUT):
                    self.gave_up = True
            return super().compare_and_set_stage(
                run_id, stage_id, expected=expected, new_status=new_status, event=event, **fields
            )

    store = _SlowStore()
    orch = make_orchestrator(ScriptedExecutor(), store=store, max_workers=2)
    slow_run = orch.start_run(make_pipeline(("lint", []), name="slow"), push_event)
    wait_until(lambda: store.entered.is_set())

    fast_run = orch.start_run(make_pipeline(("lint", []), ("build", ["lint"]), name="fast"), push_event)
    fast_final = orch.wait(fast_run.run_id, timeout=WAIT_TIMEOUT)

    assert fast_final.status == RunStatus.SUCCEEDED
    assert statuses(orch.get_run(slow_run.run_id)) == {"lint": "blocked"}
    assert not store.gave_up

    store.release.set()
    slow_final = orch.wait(slow_run.run_id, timeout=WAIT_TIMEOUT)

    assert slow_final.status == RunStatus.SUCCEEDED
    assert not store.gave_up
