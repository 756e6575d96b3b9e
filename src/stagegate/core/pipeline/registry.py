# src/stagegate/core/pipeline/registry.py
"""
Registro de pipelines ativos.

Este módulo define o `PipelineRegistry`, que mantém exatamente uma
definição ativa por nome de pipeline (configuração de trigger).
Ativar uma nova versão de um nome substitui a anterior; Runs já criadas
continuam referenciando a versão com que nasceram.

Decisões arquiteturais:
    - A ordem de primeira ativação é preservada (listagem e matching)
    - Versões anteriores permanecem consultáveis por (nome, versão) para
      que Runs antigas possam receber aprovações após uma reativação
    - Acesso concorrente protegido por lock (ativação é rara, leitura frequente)

Limites explícitos:
    - Não executa pipelines
    - Não valida definições (responsabilidade do loader)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from stagegate.core.exceptions import NotFound

from .pipeline import Pipeline, TriggerEvent


@dataclass
class PipelineRegistry:
    _active: Dict[str, Pipeline] = field(default_factory=dict, init=False, repr=False)
    _order: List[str] = field(default_factory=list, init=False, repr=False)
    _versions: Dict[Tuple[str, str], Pipeline] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def activate(self, pipeline: Pipeline) -> Optional[Pipeline]:
        """
        Torna `pipeline` a definição ativa para seu nome.

        Returns:
            Optional[Pipeline]: A definição substituída, se havia uma.
        """
        if not isinstance(pipeline.name, str) or not pipeline.name.strip():
            raise ValueError("pipeline.name must be a non-empty string")

        with self._lock:
            previous = self._active.get(pipeline.name)
            if previous is None:
                self._order.append(pipeline.name)
            self._active[pipeline.name] = pipeline
            self._versions[(pipeline.name, pipeline.version)] = pipeline
            return previous

    def deactivate(self, name: str) -> Pipeline:
        with self._lock:
            if name not in self._active:
                raise NotFound(f"Pipeline não encontrado: {name}", details={"pipeline": name})
            self._order.remove(name)
            return self._active.pop(name)

    def get(self, name: str) -> Pipeline:
        with self._lock:
            pipeline = self._active.get(name)
        if pipeline is None:
            raise NotFound(f"Pipeline não encontrado: {name}", details={"pipeline": name})
        return pipeline

    def get_version(self, name: str, version: str) -> Pipeline:
        with self._lock:
            pipeline = self._versions.get((name, version))
        if pipeline is None:
            raise NotFound(
                f"Versão de pipeline não encontrada: {name}@{version}",
                details={"pipeline": name, "version": version},
            )
        return pipeline

    def list(self) -> List[Pipeline]:
        with self._lock:
            return [self._active[name] for name in self._order]

    def match(self, event: TriggerEvent) -> List[Pipeline]:
        return [p for p in self.list() if p.matches(event)]
