# src/stagegate/core/traceability/events.py
"""
Event Log da Run.

Cada Run carrega um Event Log ordenado de eventos explícitos
(ex.: `stage_started`, `gate_approved`). Eventos nunca são emitidos
implicitamente: o Orchestrator chama `make_event` e entrega o resultado
ao Run Store (`append_event`), que preserva a ordem de chegada.

Formato de um evento (v1):

    {
      "event_type": "stage_failed",
      "timestamp": "2026-01-16T00:00:00+00:00",
      "stage_id": "build",            # opcional
      "payload": {...}                # opcional
    }

Todos os timestamps são ISO 8601 em UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

RUN_CREATED = "run_created"
RUN_CANCELLED = "run_cancelled"
STAGE_DISPATCHED = "stage_dispatched"
STAGE_STARTED = "stage_started"
STAGE_SUCCEEDED = "stage_succeeded"
STAGE_FAILED = "stage_failed"
STAGE_SKIPPED = "stage_skipped"
STAGE_CANCELLED = "stage_cancelled"
STAGE_RETRY = "stage_retry"
STAGE_AWAITING_APPROVAL = "stage_awaiting_approval"
GATE_APPROVED = "gate_approved"
GATE_REJECTED = "gate_rejected"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Timestamps timezone-naive são assumidos como UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso(dt: datetime) -> str:
    return ensure_utc(dt).isoformat()


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))


def ms_between(start: datetime, end: datetime) -> int:
    """Duração em milissegundos, nunca negativa."""
    s = ensure_utc(start)
    e = ensure_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))


def make_event(
    event_type: str,
    *,
    ts: Optional[datetime] = None,
    stage_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": iso(ts or utc_now())}
    if stage_id is not None:
        ev["stage_id"] = stage_id
    if payload is not None:
        ev["payload"] = payload
    return ev
