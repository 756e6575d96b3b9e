"""
StageGate — Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do StageGate.

Erros são considerados artefatos de domínio e fazem parte do contrato operacional
do orquestrador, devendo ser:
- explícitos
- serializáveis
- rastreáveis
- acionáveis

Erros síncronos (configuração, autorização, estado inválido) são devolvidos ao
chamador da API. Erros de execução (falha de comando, falha de infraestrutura)
nunca atravessam a fronteira da Run: são registrados no estado da Run e
consultáveis pela Status API.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ErrorPayload:
    """
    Payload canônico de erro do StageGate.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorPayload":
        return cls(
            type=str(data.get("type", "")),
            message=str(data.get("message", "")),
            details=dict(data.get("details", {}) or {}),
            hint=data.get("hint"),
        )


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Síncronos (chamador da API)
CONFIG_ERROR = "CONFIG_ERROR"
UNAUTHORIZED = "UNAUTHORIZED"
INVALID_STATE = "INVALID_STATE"
NOT_FOUND = "NOT_FOUND"
TRIGGER_MISMATCH = "TRIGGER_MISMATCH"

# Registrados no estado da Run
EXECUTION_FAILURE = "EXECUTION_FAILURE"
INFRA_FAILURE = "INFRA_FAILURE"
SECRET_NOT_FOUND = "SECRET_NOT_FOUND"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def execution_failure(
    *,
    stage_id: str,
    message: str,
    timed_out: bool = False,
    failed_command: Optional[int] = None,
    hint: str = "Inspecione o log capturado do stage e corrija o comando que falhou.",
) -> ErrorPayload:
    details: Dict[str, Any] = {"stage_id": stage_id, "timed_out": timed_out}
    if failed_command is not None:
        details["failed_command"] = failed_command
    return ErrorPayload(
        type=EXECUTION_FAILURE,
        message=message,
        details=details,
        hint=hint,
    )


def infra_failure(
    *,
    stage_id: str,
    message: str,
    attempts: int,
    hint: str = "Verifique se o executor está acessível e se o diretório de trabalho existe.",
) -> ErrorPayload:
    return ErrorPayload(
        type=INFRA_FAILURE,
        message=message,
        details={"stage_id": stage_id, "attempts": attempts},
        hint=hint,
    )


def unexpected_failure(*, stage_id: str, exc: Exception) -> ErrorPayload:
    """Encapsula exceções inesperadas sem expor stack trace."""
    return ErrorPayload(
        type=EXECUTION_FAILURE,
        message=str(exc) or "Erro inesperado durante execução",
        details={"stage_id": stage_id, "exception_class": exc.__class__.__name__},
        hint="Verifique o log técnico do orquestrador e a definição do pipeline",
    )
