# src/stagegate/bootstrap.py
"""
Composição do StageGate a partir dos settings.

Monta Run Store, registro de pipelines, executor e Orchestrator, e expõe
uma fábrica de aplicação para servidores ASGI:

    uvicorn --factory stagegate.bootstrap:create_app_from_env

Decisões arquiteturais:
    - Settings são a única fonte de parametrização (nenhum global mutável)
    - Pipelines são carregados do diretório configurado na inicialização;
      qualquer definição inválida impede a subida (CONFIG_ERROR)
    - Runs ativas recarregadas do store durável são retomadas
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

from fastapi import FastAPI

from stagegate.api.app import create_app
from stagegate.core.config.settings import OrchestratorSettings, load_settings
from stagegate.core.engine.orchestrator import Orchestrator
from stagegate.core.pipeline.loader import load_pipelines
from stagegate.core.pipeline.registry import PipelineRegistry
from stagegate.core.state.json_store import JsonRunStore
from stagegate.core.state.store import InMemoryRunStore, RunStore
from stagegate.executors.secrets import EnvSecretResolver
from stagegate.executors.shell import ShellCommandExecutor

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "STAGEGATE_CONFIG"


def build_store(settings: OrchestratorSettings) -> RunStore:
    if settings.store_backend == "json":
        return JsonRunStore(settings.store_path)
    return InMemoryRunStore()


def build_registry(settings: OrchestratorSettings) -> PipelineRegistry:
    registry = PipelineRegistry()
    if not settings.pipelines_path.is_dir():
        logger.warning("pipelines directory %s not found; starting with no pipelines", settings.pipelines_path)
        return registry
    for pipeline in load_pipelines(settings.pipelines_path):
        registry.activate(pipeline)
        logger.info("pipeline %s@%s activated (%d stages)", pipeline.name, pipeline.version, len(pipeline.stages))
    return registry


def build_orchestrator(settings: OrchestratorSettings) -> Orchestrator:
    executor = ShellCommandExecutor(
        shell=settings.shell,
        secrets=EnvSecretResolver(prefix=settings.secrets_env_prefix),
        log_tail_lines=settings.log_tail_lines,
    )
    orchestrator = Orchestrator(
        store=build_store(settings),
        executor=executor,
        registry=build_registry(settings),
        settings=settings,
    )
    resumed = orchestrator.resume_active()
    if resumed:
        logger.info("resumed %d active run(s)", resumed)
    return orchestrator


def create_app_from_config(local_path: Optional[Union[str, Path]] = None) -> FastAPI:
    settings = load_settings(local_path=local_path)
    logger.info("settings loaded (config hash %s)", settings.config_hash)
    return create_app(build_orchestrator(settings))


def create_app_from_env() -> FastAPI:
    """Lê o arquivo de override local de `STAGEGATE_CONFIG`, se definido."""
    return create_app_from_config(os.environ.get(CONFIG_ENV_VAR))
