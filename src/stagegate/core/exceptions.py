"""
StageGate — Canonical Exceptions (v1)

Este módulo define exceções tipadas internas do StageGate.

Objetivo:
- Permitir que Loader/Orchestrator/Executor levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para ErrorPayload (e para HTTP)
- Evitar ValueError/RuntimeError genéricos em guardrails críticos

Erros de configuração (CONFIG_ERROR) vivem em `stagegate.core.config.errors`
e também herdam de `StageGateException`.

Regras:
- Cada exceção declara seu código estável em `error_type`.
- Exceções devem carregar apenas dados estruturados (serializáveis).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional

from stagegate.core.errors import (
    ErrorPayload,
    INFRA_FAILURE,
    INVALID_STATE,
    NOT_FOUND,
    SECRET_NOT_FOUND,
    TRIGGER_MISMATCH,
    UNAUTHORIZED,
)


@dataclass(frozen=True)
class StageGateException(Exception):
    """Base class para exceções internas do StageGate.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    error_type: ClassVar[str] = "STAGEGATE_ERROR"

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover
        return self.message

    def to_payload(self) -> ErrorPayload:
        return ErrorPayload(
            type=self.error_type,
            message=self.message,
            details=dict(self.details),
            hint=self.hint,
        )


# ---------------------------------------------------------------------------
# API síncrona
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Unauthorized(StageGateException):
    """Identidade não pertence ao conjunto de aprovadores do gate."""

    error_type: ClassVar[str] = UNAUTHORIZED


@dataclass(frozen=True)
class InvalidState(StageGateException):
    """Operação sobre stage/run fora do status esperado (sem mutação)."""

    error_type: ClassVar[str] = INVALID_STATE


@dataclass(frozen=True)
class NotFound(StageGateException):
    """Run, stage ou pipeline inexistente."""

    error_type: ClassVar[str] = NOT_FOUND


@dataclass(frozen=True)
class TriggerMismatch(StageGateException):
    """Evento de trigger não satisfaz o predicado do pipeline."""

    error_type: ClassVar[str] = TRIGGER_MISMATCH


# ---------------------------------------------------------------------------
# Execução (fronteira do Executor Adapter)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InfraFailure(StageGateException):
    """Executor inacessível ou incapaz de iniciar o comando (elegível a retry)."""

    error_type: ClassVar[str] = INFRA_FAILURE


@dataclass(frozen=True)
class SecretNotFound(StageGateException):
    """Segredo referenciado por nome não existe no secret store."""

    error_type: ClassVar[str] = SECRET_NOT_FOUND
