# src/stagegate/core/config/__init__.py
"""
Camada de configuração do StageGate.

Responsabilidades do pacote:
    - Carregamento de arquivos declarativos (YAML/JSON)
    - Resolução defaults + override local via deep-merge determinístico
    - Hash canônico (versionamento de definições e auditoria de settings)
    - Validação dos settings do orquestrador

Princípios fundamentais:
    - Configuração não contém lógica de execução
    - Nenhuma heurística implícita durante merge
    - A mesma entrada sempre produz a mesma configuração final

Limites explícitos:
    - Não executa pipeline
    - Não interage com Orchestrator diretamente
"""

from .errors import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigTypeConflictError,
    InvalidConfigRootTypeError,
    InvalidSettingError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash
from .loader import load_config, load_document
from .merge import deep_merge
from .settings import DEFAULT_CONFIG, OrchestratorSettings, RetryPolicy, load_settings

__all__ = [
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigTypeConflictError",
    "InvalidConfigRootTypeError",
    "InvalidSettingError",
    "UnsupportedConfigFormatError",
    "compute_config_hash",
    "load_config",
    "load_document",
    "deep_merge",
    "DEFAULT_CONFIG",
    "OrchestratorSettings",
    "RetryPolicy",
    "load_settings",
]
