# src/stagegate/core/config/errors.py
"""
Exceções canônicas da camada de configuração do StageGate.

Este módulo define a hierarquia oficial de exceções utilizadas durante
o carregamento de settings do orquestrador e de definições de pipeline.

Todas as exceções aqui definidas carregam o código estável `CONFIG_ERROR`:
uma configuração inválida é rejeitada no carregamento e nenhuma Run é
criada a partir dela.

Princípios fundamentais:
    - Exceções são tipadas e semânticas
    - Erros estruturais são tratados como falhas fatais
    - Mensagens de erro são claras e direcionadas ao operador

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - `ConfigError` herda de `StageGateException` (payload serializável)

Limites explícitos:
    - Não executa pipeline
    - Não realiza fallback ou recovery
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from stagegate.core.errors import CONFIG_ERROR
from stagegate.core.exceptions import StageGateException


@dataclass(frozen=True)
class ConfigError(StageGateException):
    """
    Exceção base para erros de configuração do StageGate.

    Permite captura genérica de falhas estruturais (settings ou definição
    de pipeline), sempre distinguíveis de falhas de execução de stages.
    """

    error_type: ClassVar[str] = CONFIG_ERROR


@dataclass(frozen=True)
class ConfigFileNotFoundError(ConfigError):
    """Arquivo de configuração obrigatório não encontrado no caminho informado."""


@dataclass(frozen=True)
class UnsupportedConfigFormatError(ConfigError):
    """
    Formato do arquivo não suportado.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


@dataclass(frozen=True)
class InvalidConfigRootTypeError(ConfigError):
    """Conteúdo raiz do arquivo não é um mapa chave-valor."""


@dataclass(frozen=True)
class ConfigTypeConflictError(ConfigError):
    """
    Conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"orchestrator": {"fail_fast": true}}
        - override: {"orchestrator": "off"}
    """


@dataclass(frozen=True)
class InvalidSettingError(ConfigError):
    """Valor de setting fora do domínio aceito (tipo ou faixa)."""
