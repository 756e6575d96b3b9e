# src/stagegate/api/routes.py
"""
Endpoints da API do StageGate – camada fina sobre o Orchestrator.

Erros síncronos do core (`StageGateException`) são convertidos em
`HTTPException` com o payload canônico de erro em `detail`:

    CONFIG_ERROR     → 400
    UNAUTHORIZED     → 403 (401 quando nenhuma identidade foi informada)
    NOT_FOUND        → 404
    INVALID_STATE    → 409
    TRIGGER_MISMATCH → 422
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from stagegate.core.engine.orchestrator import Orchestrator
from stagegate.core.errors import (
    CONFIG_ERROR,
    INVALID_STATE,
    NOT_FOUND,
    TRIGGER_MISMATCH,
    UNAUTHORIZED,
    ErrorPayload,
)
from stagegate.core.exceptions import StageGateException

from .schemas import TriggerEventBody

router = APIRouter(tags=["stagegate"])
logger = logging.getLogger(__name__)

STATUS_BY_ERROR_TYPE = {
    CONFIG_ERROR: 400,
    UNAUTHORIZED: 403,
    NOT_FOUND: 404,
    INVALID_STATE: 409,
    TRIGGER_MISMATCH: 422,
}


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def get_identity(x_actor: Optional[str] = Header(default=None)) -> str:
    """
    Identidade do chamador.

    O StageGate não autentica: a identidade chega resolvida por um
    colaborador externo (proxy/gateway) no header `X-Actor`. Substitua
    esta dependência para integrar outro mecanismo.
    """
    identity = (x_actor or "").strip()
    if not identity:
        raise HTTPException(
            status_code=401,
            detail=ErrorPayload(
                type=UNAUTHORIZED,
                message="Identidade não informada",
                details={"header": "X-Actor"},
                hint="Envie a identidade do aprovador no header X-Actor",
            ).to_dict(),
        )
    return identity


def _http_error(exc: StageGateException) -> HTTPException:
    status = STATUS_BY_ERROR_TYPE.get(exc.error_type, 500)
    if status >= 500:
        logger.error("unmapped error %s: %s", exc.error_type, exc.message)
    return HTTPException(status_code=status, detail=exc.to_payload().to_dict())


# ---------------------------------------------------------------------
# Trigger
# ---------------------------------------------------------------------

@router.post("/events", status_code=201)
def receive_event(body: TriggerEventBody, orchestrator: Orchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    """Inicia uma Run para cada pipeline ativo cujo trigger casa com o evento."""
    try:
        runs = orchestrator.trigger(body.to_event())
    except StageGateException as e:
        raise _http_error(e)
    logger.info("event %s@%s matched %d pipeline(s)", body.branch, body.commit, len(runs))
    return {"runs": [run.to_dict() for run in runs]}


@router.post("/pipelines/{name}/runs", status_code=201)
def start_run(
    name: str,
    body: TriggerEventBody,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        pipeline = orchestrator.registry.get(name)
        run = orchestrator.start_run(pipeline, body.to_event())
    except StageGateException as e:
        raise _http_error(e)
    return run.to_dict()


# ---------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------

@router.get("/pipelines")
def list_pipelines(orchestrator: Orchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    return {"pipelines": [p.to_dict() for p in orchestrator.registry.list()]}


@router.get("/runs")
def list_runs(active: bool = False, orchestrator: Orchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    return {"runs": [run.to_dict() for run in orchestrator.list_runs(active_only=active)]}


@router.get("/runs/{run_id}")
def get_run(run_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    try:
        return orchestrator.get_run(run_id).to_dict()
    except StageGateException as e:
        raise _http_error(e)


# ---------------------------------------------------------------------
# Gates manuais & cancelamento
# ---------------------------------------------------------------------

@router.post("/runs/{run_id}/stages/{stage_id}/approve")
def approve_stage(
    run_id: str,
    stage_id: str,
    identity: str = Depends(get_identity),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        return orchestrator.approve(run_id, stage_id, identity).to_dict()
    except StageGateException as e:
        raise _http_error(e)


@router.post("/runs/{run_id}/stages/{stage_id}/reject")
def reject_stage(
    run_id: str,
    stage_id: str,
    identity: str = Depends(get_identity),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        return orchestrator.reject(run_id, stage_id, identity).to_dict()
    except StageGateException as e:
        raise _http_error(e)


@router.post("/runs/{run_id}/cancel")
def cancel_run(run_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    try:
        return orchestrator.cancel(run_id).to_dict()
    except StageGateException as e:
        raise _http_error(e)
