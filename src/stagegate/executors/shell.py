# src/stagegate/executors/shell.py
"""
Executor de comandos via shell local.

Cada comando do stage roda em um processo filho (`<shell> -c <command>`)
dentro de uma sessão própria, com stdout e stderr combinados em um único
arquivo temporário. Os comandos rodam em ordem; o primeiro com código de
saída diferente de zero encerra o stage como FAILED.

Decisões arquiteturais:
    - O timeout vale para o stage inteiro (soma de todos os comandos)
    - Timeout e cancelamento matam o grupo de processos inteiro (SIGKILL)
    - A espera bloqueia em `Popen.wait` por fatias curtas; entre fatias o
      `cancel_event` e o deadline são conferidos
    - Falha ao iniciar o primeiro comando é InfraFailure (retentável); a
      partir do segundo o stage já produziu efeitos e termina FAILED
    - O resumo nunca carrega o código de saída bruto
    - Segredos são resolvidos imediatamente antes da execução, exportados
      como variáveis de ambiente e mascarados no log capturado

Limites explícitos:
    - Apenas POSIX (grupos de processo via `os.killpg`)
    - Não faz streaming do log: apenas a cauda final é devolvida
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from stagegate.core.exceptions import InfraFailure
from stagegate.core.pipeline.types import StageStatus

from .base import ExecutionRequest, ExecutionResult
from .secrets import EnvSecretResolver, SecretResolver, mask_secrets, resolve_all

logger = logging.getLogger(__name__)

_CANCELLED = "cancelled"
_TIMED_OUT = "timed_out"
_NOT_STARTED = "not_started"


def tail_lines(text: str, limit: int) -> str:
    lines = text.splitlines()
    if limit > 0 and len(lines) > limit:
        lines = lines[-limit:]
    return "\n".join(lines)


def _kill_group(proc: subprocess.Popen) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    proc.wait()


class ShellCommandExecutor:
    def __init__(
        self,
        *,
        shell: str = "/bin/sh",
        secrets: Optional[SecretResolver] = None,
        log_tail_lines: int = 200,
        wait_slice_sec: float = 0.1,
        base_env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.shell = shell
        self.secrets = secrets if secrets is not None else EnvSecretResolver()
        self.log_tail_lines = log_tail_lines
        self.wait_slice_sec = wait_slice_sec
        self._base_env = dict(base_env) if base_env is not None else None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _environment(self, request: ExecutionRequest, secret_values: Mapping[str, str]) -> Dict[str, str]:
        env = dict(self._base_env if self._base_env is not None else os.environ)
        env.update(request.env)
        env.update(secret_values)
        return env

    def _spawn(self, command: str, *, workdir: Path, env: Mapping[str, str], out) -> subprocess.Popen:
        try:
            return subprocess.Popen(
                [self.shell, "-c", command],
                cwd=str(workdir),
                env=dict(env),
                stdin=subprocess.DEVNULL,
                stdout=out,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as e:
            raise InfraFailure(
                f"Não foi possível iniciar o comando: {e}",
                details={"shell": self.shell, "workdir": str(workdir)},
            ) from e

    def _wait(self, proc: subprocess.Popen, request: ExecutionRequest, deadline: float) -> Tuple[Optional[int], Optional[str]]:
        while True:
            if request.cancel_event.is_set():
                _kill_group(proc)
                return None, _CANCELLED
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                _kill_group(proc)
                return None, _TIMED_OUT
            try:
                return proc.wait(timeout=min(self.wait_slice_sec, remaining)), None
            except subprocess.TimeoutExpired:
                continue

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------
    def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """
        Executa os comandos do stage.

        Raises:
            InfraFailure: diretório de trabalho inexistente ou primeiro comando
                que não inicia. Depois que algum comando rodou, falhas para
                iniciar os seguintes viram resultado FAILED.
            SecretNotFound: segredo referenciado não existe (nunca é retentado).
        """
        workdir = Path(request.workdir)
        if not workdir.is_dir():
            raise InfraFailure(
                f"Diretório de trabalho inexistente: {workdir}",
                details={"workdir": str(workdir)},
            )

        secret_values = resolve_all(self.secrets, request.secrets)
        env = self._environment(request, secret_values)
        deadline = time.monotonic() + request.timeout_sec
        total = len(request.commands)

        outcome: Optional[str] = None
        failed: Optional[int] = None
        with tempfile.TemporaryFile() as out:
            for index, command in enumerate(request.commands):
                logger.debug("run %s stage %s: command %d/%d", request.run_id, request.stage_id, index + 1, total)
                out.write(f"$ {command}\n".encode("utf-8"))
                out.flush()
                try:
                    proc = self._spawn(command, workdir=workdir, env=env, out=out)
                except InfraFailure as e:
                    if index == 0:
                        raise
                    logger.warning(
                        "run %s stage %s: command %d/%d did not start: %s",
                        request.run_id,
                        request.stage_id,
                        index + 1,
                        total,
                        e.message,
                    )
                    out.write(f"{e.message}\n".encode("utf-8"))
                    failed, outcome = index, _NOT_STARTED
                    break
                code, outcome = self._wait(proc, request, deadline)
                if outcome is not None:
                    failed = index
                    break
                if code != 0:
                    logger.debug("run %s stage %s: command %d exited with %s", request.run_id, request.stage_id, index + 1, code)
                    failed = index
                    break
            out.seek(0)
            raw = out.read().decode("utf-8", errors="replace")

        log = mask_secrets(tail_lines(raw, self.log_tail_lines), secret_values.values())

        if outcome == _CANCELLED:
            return ExecutionResult(
                status=StageStatus.FAILED,
                log=log,
                summary="cancelled",
                cancelled=True,
                failed_command=failed,
            )
        if outcome == _TIMED_OUT:
            return ExecutionResult(
                status=StageStatus.FAILED,
                log=log,
                summary=f"timed out after {request.timeout_sec:g}s",
                timed_out=True,
                failed_command=failed,
            )
        if outcome == _NOT_STARTED:
            return ExecutionResult(
                status=StageStatus.FAILED,
                log=log,
                summary=f"command {failed + 1}/{total} could not be started",
                failed_command=failed,
            )
        if failed is not None:
            return ExecutionResult(
                status=StageStatus.FAILED,
                log=log,
                summary=f"command {failed + 1}/{total} failed",
                failed_command=failed,
            )
        return ExecutionResult(
            status=StageStatus.SUCCEEDED,
            log=log,
            summary=f"{total} command(s) succeeded",
        )

