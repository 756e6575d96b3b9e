# src/stagegate/executors/secrets.py
"""
Resolução de segredos referenciados por nome.

O core nunca armazena valores de segredos: stages declaram apenas nomes,
e o Executor Adapter resolve os valores no momento da execução a partir de
um secret store externo. Valores resolvidos não são persistidos e são
mascarados no log capturado.
"""

from __future__ import annotations

import os
from typing import Dict, Iterable, Mapping, Optional, Protocol, runtime_checkable

from stagegate.core.exceptions import SecretNotFound

MASK = "***"


@runtime_checkable
class SecretResolver(Protocol):
    def resolve(self, name: str) -> str:
        ...


class EnvSecretResolver:
    """Resolve `<prefix><name>` a partir das variáveis de ambiente do orquestrador."""

    def __init__(self, prefix: str = "", environ: Optional[Mapping[str, str]] = None) -> None:
        self.prefix = prefix
        self._environ = environ

    def resolve(self, name: str) -> str:
        environ = self._environ if self._environ is not None else os.environ
        key = f"{self.prefix}{name}"
        if key not in environ:
            raise SecretNotFound(
                f"Segredo não encontrado: {name}",
                details={"secret": name},
                hint=f"Defina a variável de ambiente {key} no host do orquestrador",
            )
        return environ[key]


class MappingSecretResolver:
    def __init__(self, values: Mapping[str, str]) -> None:
        self._values = dict(values)

    def resolve(self, name: str) -> str:
        try:
            return self._values[name]
        except KeyError:
            raise SecretNotFound(f"Segredo não encontrado: {name}", details={"secret": name}) from None


def resolve_all(resolver: SecretResolver, names: Iterable[str]) -> Dict[str, str]:
    return {name: resolver.resolve(name) for name in names}


def mask_secrets(text: str, values: Iterable[str]) -> str:
    # valores mais longos primeiro: um segredo pode conter outro
    for value in sorted((v for v in values if v), key=len, reverse=True):
        text = text.replace(value, MASK)
    return text
