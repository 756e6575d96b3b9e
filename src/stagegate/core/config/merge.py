# src/stagegate/core/config/merge.py
"""
Deep-merge canônico de configuração.

Política de merge (v1):
    - dict → merge recursivo por chave
    - list → sobrescrita total (ex.: `branches`, `approvers`)
    - escalar → sobrescrita direta
    - conflito de tipos → erro estrutural explícito

Nenhum input é mutado; a mesma entrada sempre produz a mesma saída.
"""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, List

from .errors import ConfigTypeConflictError


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Combina `base` com `override` produzindo um novo dicionário.

    Inteiros são aceitos onde a base declara float (ex.: `backoff_base_sec: 1`
    sobre `1.0`), já que YAML não distingue a intenção do operador.

    Args:
        base (Dict[str, Any]): Configuração base (defaults).
        override (Dict[str, Any]): Overrides explícitos.

    Returns:
        Dict[str, Any]: Nova configuração resultante.

    Raises:
        ConfigTypeConflictError: Se a mesma chave tiver tipos incompatíveis.
    """
    if not isinstance(base, dict) or not isinstance(override, dict):
        raise ConfigTypeConflictError(
            f"Deep-merge requer dicts no nível raiz, recebido: "
            f"{type(base).__name__} vs {type(override).__name__}"
        )
    return _merge(base, override, path=[])


def _merge(base: Dict[str, Any], override: Dict[str, Any], *, path: List[str]) -> Dict[str, Any]:
    result: Dict[str, Any] = deepcopy(base)

    for key, override_value in override.items():
        if key not in result or result[key] is None or override_value is None:
            result[key] = deepcopy(override_value)
            continue

        base_value = result[key]
        key_path = ".".join(path + [str(key)])

        if isinstance(base_value, dict) and isinstance(override_value, dict):
            result[key] = _merge(base_value, override_value, path=path + [str(key)])
            continue

        if isinstance(base_value, list) and isinstance(override_value, list):
            result[key] = deepcopy(override_value)
            continue

        if isinstance(base_value, float) and type(override_value) is int:
            result[key] = float(override_value)
            continue

        if type(base_value) is not type(override_value):
            raise ConfigTypeConflictError(
                f"Conflito de tipo na chave '{key_path}': "
                f"{type(base_value).__name__} vs {type(override_value).__name__}",
                details={"key": key_path},
            )

        result[key] = deepcopy(override_value)

    return result
