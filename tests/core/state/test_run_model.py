# tests/core/state/test_run_model.py
"""
Testes da estrutura canônica da Run.

Os testes asseguram que:
- uma Run nasce com todos os stages PENDING
- o status agregado é sempre derivado dos status dos stages
- a serialização é reconstruível via round-trip

Decisões arquiteturais:
    - O status da Run nunca é armazenado
    - `status` e `finished_at` aparecem em `to_dict` apenas para consumo
"""

import pytest

from stagegate.core.pipeline.pipeline import TriggerEvent
from stagegate.core.pipeline.types import RunStatus, StageStatus
from stagegate.core.state.run import Run, StageRecord


def _run(**statuses):
    run = Run.new(
        run_id="run-001",
        pipeline="site-image",
        pipeline_version="abc123abc123",
        trigger=TriggerEvent(repository="acme/site", branch="main", commit="abc123", actor="carol"),
        created_at="2026-01-16T00:00:00+00:00",
        stage_ids=["lint", "build", "push"],
    )
    for sid, status in statuses.items():
        run.stages[sid] = run.stages[sid].evolve(status=status)
    return run


def test_new_run_is_all_pending():
    run = _run()
    assert all(rec.status == StageStatus.PENDING for rec in run.stages.values())
    assert run.status == RunStatus.PENDING
    assert run.is_active
    assert run.finished_at is None


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ({"lint": StageStatus.RUNNING}, RunStatus.RUNNING),
        ({"lint": StageStatus.SUCCEEDED}, RunStatus.RUNNING),
        (
            {"lint": StageStatus.SUCCEEDED, "build": StageStatus.SUCCEEDED, "push": StageStatus.AWAITING_APPROVAL},
            RunStatus.AWAITING_APPROVAL,
        ),
        (
            {"lint": StageStatus.SUCCEEDED, "build": StageStatus.RUNNING, "push": StageStatus.AWAITING_APPROVAL},
            RunStatus.RUNNING,
        ),
        (
            {"lint": StageStatus.SUCCEEDED, "build": StageStatus.FAILED, "push": StageStatus.SKIPPED},
            RunStatus.FAILED,
        ),
        (
            {"lint": StageStatus.SUCCEEDED, "build": StageStatus.SUCCEEDED, "push": StageStatus.SKIPPED},
            RunStatus.SUCCEEDED,
        ),
    ],
)
def test_status_is_derived(statuses, expected):
    assert _run(**statuses).status == expected


def test_rejected_gate_makes_run_failed():
    run = _run(lint=StageStatus.SUCCEEDED, build=StageStatus.SUCCEEDED)
    run.stages["push"] = StageRecord(
        status=StageStatus.SKIPPED,
        approval={"decision": "rejected", "by": "alice", "at": "2026-01-16T00:05:00+00:00"},
    )
    assert run.status == RunStatus.FAILED


def test_cancelled_overrides_everything():
    run = _run(lint=StageStatus.SUCCEEDED, build=StageStatus.CANCELLED, push=StageStatus.CANCELLED)
    run.cancelled_at = "2026-01-16T00:01:00+00:00"
    assert run.status == RunStatus.CANCELLED
    assert not run.is_active
    assert run.finished_at == "2026-01-16T00:01:00+00:00"


def test_round_trip_preserves_records_and_events():
    run = _run(lint=StageStatus.SUCCEEDED)
    run.stages["lint"] = run.stages["lint"].evolve(
        started_at="2026-01-16T00:00:01+00:00",
        finished_at="2026-01-16T00:00:03+00:00",
        duration_ms=2000,
        attempts=1,
        summary="1 command(s) succeeded",
        log="ok",
    )
    run.events.append({"event_type": "run_created", "timestamp": "2026-01-16T00:00:00+00:00"})

    data = run.to_dict()
    restored = Run.from_dict(data)

    assert data["status"] == "running"
    assert restored.to_dict() == data
    assert restored.stages["lint"].duration_ms == 2000


def test_snapshot_is_independent():
    run = _run()
    snap = run.snapshot()
    snap.stages["lint"] = snap.stages["lint"].evolve(status=StageStatus.RUNNING)
    snap.events.append({"event_type": "x"})

    assert run.stages["lint"].status == StageStatus.PENDING
    assert run.events == []
