# src/stagegate/executors/base.py
"""
Contrato do Command Executor Adapter.

O adapter é a fronteira com colaboradores externos: checkout, build de
imagem e push para registry acontecem dentro dos comandos que ele executa.
O Orchestrator só enxerga o resultado normalizado:

    - status: SUCCEEDED ou FAILED (nunca um código de saída bruto)
    - log: cauda da saída combinada (stdout + stderr)
    - summary: resumo humano
    - timed_out / cancelled: motivo de terminação forçada

Falhas para *iniciar* a execução (executor inacessível, diretório de
trabalho ausente, shell inexistente) são sinalizadas com `InfraFailure`
e tratadas pelo Orchestrator com retry limitado.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol, Tuple, runtime_checkable

from stagegate.core.pipeline.pipeline import TriggerEvent
from stagegate.core.pipeline.types import StageStatus

ENV_PREFIX = "STAGEGATE_"


def stage_environment(*, run_id: str, stage_id: str, trigger: TriggerEvent) -> Dict[str, str]:
    """Variáveis exportadas para todo comando de um stage."""
    return {
        f"{ENV_PREFIX}RUN_ID": run_id,
        f"{ENV_PREFIX}STAGE_ID": stage_id,
        f"{ENV_PREFIX}REPOSITORY": trigger.repository,
        f"{ENV_PREFIX}BRANCH": trigger.branch,
        f"{ENV_PREFIX}COMMIT": trigger.commit,
        f"{ENV_PREFIX}ACTOR": trigger.actor,
    }


@dataclass(frozen=True)
class ExecutionRequest:
    run_id: str
    stage_id: str
    commands: Tuple[str, ...]
    workdir: Path
    timeout_sec: float
    env: Mapping[str, str] = field(default_factory=dict)
    secrets: Tuple[str, ...] = ()
    cancel_event: threading.Event = field(default_factory=threading.Event, compare=False)


@dataclass(frozen=True)
class ExecutionResult:
    status: StageStatus
    log: str = ""
    summary: str = ""
    timed_out: bool = False
    cancelled: bool = False
    failed_command: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == StageStatus.SUCCEEDED


@runtime_checkable
class CommandExecutor(Protocol):
    def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Executa os comandos em ordem, parando no primeiro com falha."""
        ...
