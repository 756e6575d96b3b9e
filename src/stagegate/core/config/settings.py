# src/stagegate/core/config/settings.py
"""
Settings tipados do orquestrador.

Este módulo converte a configuração efetiva (dict resolvido por
`load_config`) em estruturas imutáveis e validadas consumidas pelo
Orchestrator, pelo Run Store e pelo Executor Adapter.

Schema (v1):

    orchestrator:
      max_workers: 4            # execuções simultâneas (todas as runs)
      stage_timeout_sec: 3600   # timeout default por stage
      fail_fast: true           # falha pula todos os stages não iniciados
      log_tail_lines: 200       # linhas de log capturadas por stage
      infra_retry:
        max_attempts: 3
        backoff_base_sec: 1.0
        backoff_max_sec: 30.0
    store:
      backend: memory           # memory | json
      path: .stagegate/runs
    executor:
      workdir: .
      shell: /bin/sh
    secrets:
      env_prefix: ""
    pipelines:
      path: pipelines

Os valores default são pontos de partida conservadores; ajuste-os por
ambiente via override local.

Invariantes:
    - Settings são imutáveis após construídos
    - Qualquer valor fora do domínio levanta `InvalidSettingError`
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .errors import InvalidSettingError
from .hashing import compute_config_hash
from .loader import load_config

DEFAULT_CONFIG: Dict[str, Any] = {
    "orchestrator": {
        "max_workers": 4,
        "stage_timeout_sec": 3600.0,
        "fail_fast": True,
        "log_tail_lines": 200,
        "infra_retry": {
            "max_attempts": 3,
            "backoff_base_sec": 1.0,
            "backoff_max_sec": 30.0,
        },
    },
    "store": {"backend": "memory", "path": ".stagegate/runs"},
    "executor": {"workdir": ".", "shell": "/bin/sh"},
    "secrets": {"env_prefix": ""},
    "pipelines": {"path": "pipelines"},
}

STORE_BACKENDS = ("memory", "json")


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = config.get(name, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidSettingError(
            f"Seção '{name}' deve ser um mapa",
            details={"key": name, "received": type(value).__name__},
        )
    return value


def _positive_int(section: Dict[str, Any], key: str, default: int, *, path: str, minimum: int = 1) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise InvalidSettingError(
            f"'{path}.{key}' deve ser inteiro >= {minimum}",
            details={"key": f"{path}.{key}", "value": value},
        )
    return value


def _positive_float(section: Dict[str, Any], key: str, default: float, *, path: str, allow_zero: bool = False) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidSettingError(
            f"'{path}.{key}' deve ser numérico",
            details={"key": f"{path}.{key}", "value": value},
        )
    if value < 0 or (value == 0 and not allow_zero):
        raise InvalidSettingError(
            f"'{path}.{key}' fora da faixa permitida",
            details={"key": f"{path}.{key}", "value": value},
        )
    return float(value)


def _string(section: Dict[str, Any], key: str, default: str, *, path: str, allow_empty: bool = False) -> str:
    value = section.get(key, default)
    if not isinstance(value, str) or (not allow_empty and not value.strip()):
        raise InvalidSettingError(
            f"'{path}.{key}' deve ser string não vazia",
            details={"key": f"{path}.{key}", "value": value},
        )
    return value


@dataclass(frozen=True)
class RetryPolicy:
    """Retry com backoff exponencial para falhas de infraestrutura."""

    max_attempts: int = 3
    backoff_base_sec: float = 1.0
    backoff_max_sec: float = 30.0


@dataclass(frozen=True)
class OrchestratorSettings:
    max_workers: int = 4
    stage_timeout_sec: float = 3600.0
    fail_fast: bool = True
    log_tail_lines: int = 200
    infra_retry: RetryPolicy = RetryPolicy()
    store_backend: str = "memory"
    store_path: Path = Path(".stagegate/runs")
    workdir: Path = Path(".")
    shell: str = "/bin/sh"
    secrets_env_prefix: str = ""
    pipelines_path: Path = Path("pipelines")
    config_hash: Optional[str] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "OrchestratorSettings":
        """
        Valida a configuração efetiva e constrói settings imutáveis.

        Raises:
            InvalidSettingError: Se algum valor estiver fora do domínio.
        """
        orch = _section(config, "orchestrator")
        retry = _section(orch, "infra_retry")
        store = _section(config, "store")
        executor = _section(config, "executor")
        secrets = _section(config, "secrets")
        pipelines = _section(config, "pipelines")

        fail_fast = orch.get("fail_fast", True)
        if not isinstance(fail_fast, bool):
            raise InvalidSettingError(
                "'orchestrator.fail_fast' deve ser booleano",
                details={"key": "orchestrator.fail_fast", "value": fail_fast},
            )

        backend = _string(store, "backend", "memory", path="store")
        if backend not in STORE_BACKENDS:
            raise InvalidSettingError(
                f"Backend de store desconhecido: {backend}",
                details={"key": "store.backend", "value": backend, "supported": list(STORE_BACKENDS)},
            )

        policy = RetryPolicy(
            max_attempts=_positive_int(retry, "max_attempts", 3, path="orchestrator.infra_retry"),
            backoff_base_sec=_positive_float(
                retry, "backoff_base_sec", 1.0, path="orchestrator.infra_retry", allow_zero=True
            ),
            backoff_max_sec=_positive_float(
                retry, "backoff_max_sec", 30.0, path="orchestrator.infra_retry", allow_zero=True
            ),
        )

        return cls(
            max_workers=_positive_int(orch, "max_workers", 4, path="orchestrator"),
            stage_timeout_sec=_positive_float(orch, "stage_timeout_sec", 3600.0, path="orchestrator"),
            fail_fast=fail_fast,
            log_tail_lines=_positive_int(orch, "log_tail_lines", 200, path="orchestrator"),
            infra_retry=policy,
            store_backend=backend,
            store_path=Path(_string(store, "path", ".stagegate/runs", path="store")),
            workdir=Path(_string(executor, "workdir", ".", path="executor")),
            shell=_string(executor, "shell", "/bin/sh", path="executor"),
            secrets_env_prefix=_string(secrets, "env_prefix", "", path="secrets", allow_empty=True),
            pipelines_path=Path(_string(pipelines, "path", "pipelines", path="pipelines")),
            config_hash=compute_config_hash(config),
        )


def load_settings(
    *,
    local_path: Optional[Union[str, Path]] = None,
    defaults_path: Optional[Union[str, Path]] = None,
) -> OrchestratorSettings:
    """Carrega defaults (embutidos ou arquivo) + override local e valida."""
    if defaults_path is not None:
        config = load_config(defaults_path=defaults_path, local_path=local_path)
    else:
        config = load_config(defaults=DEFAULT_CONFIG, local_path=local_path)
    return OrchestratorSettings.from_config(config)
