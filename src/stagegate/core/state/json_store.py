# src/stagegate/core/state/json_store.py
"""
Run Store durável baseado em arquivos JSON.

Cada Run é persistida em `<directory>/<run_id>.json` após toda mutação,
com escrita atômica (arquivo temporário + rename). Na inicialização, as
Runs já existentes no diretório são recarregadas, permitindo consultar
status e aprovar gates pendentes após um restart do orquestrador.

Decisões arquiteturais:
    - Serialização determinística (`sort_keys=True`, indentação legível)
    - O snapshot é tirado dentro do lock de I/O da Run: a última escrita
      sempre reflete o estado mais recente no momento da escrita
    - A semântica de concorrência (CAS por stage) é herdada do store em memória

Limites explícitos:
    - Arquivos ilegíveis ou corrompidos são ignorados na carga (com log)
    - Não migra schemas entre versões
    - Não compacta nem expira Runs antigas
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Union

from stagegate.core.errors import infra_failure
from stagegate.core.pipeline.types import StageStatus

from .run import Run
from .store import InMemoryRunStore

logger = logging.getLogger(__name__)


class JsonRunStore(InMemoryRunStore):
    def __init__(self, directory: Union[str, Path]) -> None:
        super().__init__()
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._io_locks: Dict[str, threading.Lock] = {}
        self._load_existing()

    def path_for(self, run_id: str) -> Path:
        return self.directory / f"{run_id}.json"

    def _load_existing(self) -> None:
        for path in sorted(self.directory.glob("*.json")):
            try:
                run = Run.from_dict(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.warning("skipping unreadable run file %s: %s", path, e)
                continue
            self._io_locks[run.run_id] = threading.Lock()
            self._register(run)
            in_flight = [sid for sid, rec in run.stages.items() if rec.status.is_in_flight]
            if in_flight:
                # execuções interrompidas por restart não têm como ser retomadas
                logger.warning(
                    "run %s reloaded with in-flight stages %s; marking them failed",
                    run.run_id,
                    in_flight,
                )
                for sid in in_flight:
                    self.compare_and_set_stage(
                        run.run_id,
                        sid,
                        expected=(StageStatus.BLOCKED, StageStatus.RUNNING),
                        new_status=StageStatus.FAILED,
                        summary="interrupted by orchestrator restart",
                        error=infra_failure(
                            stage_id=sid,
                            message="Execução interrompida por restart do orquestrador",
                            attempts=run.stages[sid].attempts,
                        ).to_dict(),
                    )

    def create(self, run: Run) -> None:
        self._io_locks.setdefault(run.run_id, threading.Lock())
        super().create(run)

    def _persist(self, run_id: str) -> None:
        lock = self._io_locks.setdefault(run_id, threading.Lock())
        with lock:
            data = self._require(run_id).snapshot().to_dict()
            target = self.path_for(run_id)
            fd, tmp = tempfile.mkstemp(dir=str(self.directory), prefix=f".{run_id}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False, indent=2, sort_keys=True)
                os.replace(tmp, target)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
