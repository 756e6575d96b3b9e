# src/stagegate/core/config/loader.py
"""
Carregamento de documentos de configuração (YAML/JSON).

Este módulo concentra a leitura de arquivos declarativos do StageGate:
    - settings do orquestrador (defaults + override local)
    - definições de pipeline (consumidas por `core.pipeline.loader`)

Decisões arquiteturais:
    - Formatos suportados: YAML (.yaml, .yml) e JSON (.json)
    - O conteúdo raiz deve ser sempre um dicionário
    - Arquivos vazios são interpretados como dicionários vazios
    - A resolução defaults + local usa `deep_merge` determinístico

Limites explícitos:
    - Não valida semântica (ver `settings` e `pipeline.loader`)
    - Não mantém estado global
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml  # PyYAML

from .errors import (
    ConfigFileNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .merge import deep_merge

SUPPORTED_SUFFIXES = (".yaml", ".yml", ".json")


def load_document(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Carrega um arquivo declarativo e valida sua estrutura básica.

    Args:
        path (Union[str, Path]): Caminho para o arquivo.

    Returns:
        Dict[str, Any]: Conteúdo do arquivo carregado como dicionário.

    Raises:
        ConfigFileNotFoundError: Se o arquivo não existir.
        UnsupportedConfigFormatError: Se a extensão não for suportada ou o
            conteúdo não puder ser decodificado.
        InvalidConfigRootTypeError: Se o conteúdo raiz não for um dicionário.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigFileNotFoundError(
            f"Arquivo de configuração não encontrado: {path}",
            details={"path": str(path)},
        )

    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise UnsupportedConfigFormatError(
            f"Formato não suportado: {path.suffix}",
            details={"path": str(path), "supported": list(SUPPORTED_SUFFIXES)},
        )

    try:
        with path.open("r", encoding="utf-8") as f:
            if suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (yaml.YAMLError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise UnsupportedConfigFormatError(
            f"Conteúdo inválido em {path.name}: {e}",
            details={"path": str(path)},
        ) from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(
            f"Config root deve ser dict, recebido: {type(data).__name__}",
            details={"path": str(path)},
        )

    return data


def load_config(
    *,
    defaults_path: Optional[Union[str, Path]] = None,
    local_path: Optional[Union[str, Path]] = None,
    defaults: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Resolve a configuração efetiva: defaults + override local opcional.

    Política de resolução:
        - Defaults vêm de `defaults_path` ou do dicionário `defaults`
          (um dos dois é obrigatório)
        - O arquivo local é opcional e ignorado se não existir
        - Quando presente, o local sempre tem prioridade sobre defaults

    Raises:
        ValueError: Se nenhuma fonte de defaults for informada.
        ConfigError: Em qualquer falha estrutural de leitura ou merge.
    """
    if defaults_path is not None:
        effective = load_document(defaults_path)
    elif defaults is not None:
        effective = dict(defaults)
    else:
        raise ValueError("load_config requires defaults_path or defaults")

    if local_path is not None:
        local_file = Path(local_path)
        if local_file.exists():
            effective = deep_merge(effective, load_document(local_file))

    return effective
