# src/stagegate/core/pipeline/errors.py
"""
Erros estruturais de definição de pipeline.

Todas as exceções deste módulo carregam o código `CONFIG_ERROR`: uma
definição inválida é rejeitada no carregamento e nenhuma Run é criada.
"""

from __future__ import annotations

from dataclasses import dataclass

from stagegate.core.config.errors import ConfigError


@dataclass(frozen=True)
class PipelineDefinitionError(ConfigError):
    """Definição de pipeline estruturalmente inválida."""


@dataclass(frozen=True)
class DuplicateStageIdError(PipelineDefinitionError):
    """
    Dois ou mais stages declaram o mesmo `id`.

    Identificadores de stage devem ser únicos no pipeline; o loader não
    tenta renomear stages automaticamente.
    """


@dataclass(frozen=True)
class UnknownDependencyError(PipelineDefinitionError):
    """Um stage declara em `depends_on` um id que não existe no pipeline."""


@dataclass(frozen=True)
class CycleDetectedError(PipelineDefinitionError):
    """
    O grafo de dependências contém um ciclo.

    Nenhuma ordem topológica válida pode ser produzida; o ciclo não é
    quebrado automaticamente. `details["stages"]` lista os stages que
    permaneceram sem ordem (participantes ou dependentes do ciclo).
    """


@dataclass(frozen=True)
class InvalidGateError(PipelineDefinitionError):
    """Gate mal declarado (ex.: gate MANUAL sem nome de ambiente)."""
