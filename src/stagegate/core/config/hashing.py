# src/stagegate/core/config/hashing.py
"""
Hashing canônico de documentos declarativos do StageGate.

O hash representa a identidade estrutural de um documento (settings
efetivos ou definição de pipeline) e é utilizado para:
    - versionar definições de pipeline (cada Run referencia a versão usada)
    - auditoria de qual configuração estava ativa em uma execução

Política (v1): JSON canônico (chaves ordenadas, separadores compactos,
UTF-8) + SHA-256. Documentos equivalentes produzem o mesmo hash,
independentemente da ordem original das chaves.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera o hash SHA-256 hexadecimal (64 caracteres) de um documento.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """
    if not isinstance(config, dict):
        raise TypeError(
            f"Documento para hashing deve ser dict, recebido: {type(config).__name__}"
        )

    canonical_json = json.dumps(
        config,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def short_version(digest: str, length: int = 12) -> str:
    """Prefixo estável do hash usado como versão legível do pipeline."""
    return digest[:length]
