# src/stagegate/api/app.py
"""Fábrica da aplicação FastAPI."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

import stagegate
from stagegate.core.engine.orchestrator import Orchestrator

from .routes import router

logger = logging.getLogger(__name__)


def create_app(orchestrator: Orchestrator) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("shutting down orchestrator")
        orchestrator.shutdown(cancel_running=True)

    app = FastAPI(title="StageGate", version=stagegate.__version__, lifespan=lifespan)
    app.state.orchestrator = orchestrator
    app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "ok", "pipelines": len(orchestrator.registry.list())}

    return app
