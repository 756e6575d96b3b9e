# src/stagegate/core/pipeline/loader.py
"""
Pipeline Definition Loader.

Este módulo converte uma definição declarativa (YAML/JSON ou dict já
carregado) em um `Pipeline` validado e imutável. É uma operação pura:
parse + validação, sem efeitos colaterais.

Formato (v1):

    name: site-image
    trigger:
      branches: [main]
    environments:
      production:
        approvers: [alice]
    stages:
      - id: lint
        commands: ["htmlhint index.html"]
      - id: build
        depends_on: [lint]            # `needs` é aceito como alias
        commands: ["docker build -t site ."]
      - id: push
        depends_on: [build]
        gate: manual:production       # ou {kind: manual, environment: ..., approvers: [...]}
        secrets: [DOCKERHUB_TOKEN]
        commands: ["docker push site"]

Validações:
    - `name` não vazio e ao menos um stage
    - ids únicos e não vazios; comandos como strings não vazias
    - dependências existentes e grafo acíclico (via planner)
    - gate MANUAL com ambiente não vazio; aprovadores do gate e de
      `environments.<nome>.approvers` são unidos e não podem ser vazios

Qualquer violação levanta uma subclasse de `PipelineDefinitionError`
(código CONFIG_ERROR). Nenhuma Run é criada a partir de definição inválida.
"""

from __future__ import annotations

from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from stagegate.core.config.hashing import compute_config_hash, short_version
from stagegate.core.config.loader import SUPPORTED_SUFFIXES, load_document

from .errors import InvalidGateError, PipelineDefinitionError
from .pipeline import Pipeline, TriggerPredicate
from .stage import Gate, Stage
from .types import GateKind


def _string_list(
    value: Any,
    *,
    field_name: str,
    stage_id: Optional[str] = None,
    unique: bool = True,
) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) and v.strip() for v in value):
        details: Dict[str, Any] = {"field": field_name}
        if stage_id is not None:
            details["stage_id"] = stage_id
        raise PipelineDefinitionError(
            f"'{field_name}' deve ser uma lista de strings não vazias",
            details=details,
        )
    return tuple(dict.fromkeys(value)) if unique else tuple(value)


def _parse_environments(raw: Any) -> Dict[str, FrozenSet[str]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise PipelineDefinitionError("'environments' deve ser um mapa", details={"field": "environments"})

    result: Dict[str, FrozenSet[str]] = {}
    for env_name, env_cfg in raw.items():
        env_cfg = env_cfg or {}
        if not isinstance(env_cfg, dict):
            raise PipelineDefinitionError(
                f"Ambiente '{env_name}' deve ser um mapa",
                details={"environment": env_name},
            )
        approvers = _string_list(env_cfg.get("approvers"), field_name=f"environments.{env_name}.approvers")
        result[str(env_name)] = frozenset(approvers)
    return result


def _parse_gate(raw: Any, *, stage_id: str, environments: Mapping[str, FrozenSet[str]]) -> Gate:
    if raw is None:
        return Gate(kind=GateKind.AUTOMATIC)

    environment: Optional[str] = None
    approvers: Tuple[str, ...] = ()

    if isinstance(raw, str):
        kind_text, _, environment = raw.partition(":")
        environment = environment.strip() or None
    elif isinstance(raw, dict):
        kind_text = str(raw.get("kind", ""))
        environment = raw.get("environment")
        approvers = _string_list(raw.get("approvers"), field_name="gate.approvers", stage_id=stage_id)
    else:
        raise InvalidGateError(
            f"Gate inválido no stage '{stage_id}'",
            details={"stage_id": stage_id},
        )

    try:
        kind = GateKind(kind_text.strip().lower())
    except ValueError:
        raise InvalidGateError(
            f"Tipo de gate desconhecido no stage '{stage_id}': {kind_text!r}",
            details={"stage_id": stage_id, "kind": kind_text},
            hint="Use none, automatic ou manual:<ambiente>",
        ) from None

    if kind != GateKind.MANUAL:
        return Gate(kind=kind)

    if not isinstance(environment, str) or not environment.strip():
        raise InvalidGateError(
            f"Gate manual do stage '{stage_id}' exige nome de ambiente",
            details={"stage_id": stage_id},
            hint="Declare o gate como manual:<ambiente>",
        )

    merged = frozenset(approvers) | environments.get(environment, frozenset())
    if not merged:
        # sem aprovadores o stage ficaria suspenso para sempre
        raise InvalidGateError(
            f"Gate manual do stage '{stage_id}' não possui aprovadores",
            details={"stage_id": stage_id, "environment": environment},
            hint=f"Declare approvers no gate ou em environments.{environment}.approvers",
        )
    return Gate(kind=GateKind.MANUAL, environment=environment, approvers=merged)


def _parse_env(raw: Any, *, stage_id: str) -> Mapping[str, str]:
    if raw is None:
        return MappingProxyType({})
    if not isinstance(raw, dict):
        raise PipelineDefinitionError(
            f"'env' do stage '{stage_id}' deve ser um mapa",
            details={"stage_id": stage_id},
        )
    return MappingProxyType({str(k): str(v) for k, v in raw.items()})


def _parse_timeout(raw: Any, *, stage_id: str) -> Optional[float]:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw <= 0:
        raise PipelineDefinitionError(
            f"'timeout_sec' do stage '{stage_id}' deve ser positivo",
            details={"stage_id": stage_id, "value": raw},
        )
    return float(raw)


def _parse_stage(raw: Any, *, index: int, environments: Mapping[str, FrozenSet[str]]) -> Stage:
    if not isinstance(raw, dict):
        raise PipelineDefinitionError(
            f"Stage na posição {index} deve ser um mapa",
            details={"position": index},
        )

    stage_id = raw.get("id")
    if not isinstance(stage_id, str) or not stage_id.strip():
        raise PipelineDefinitionError(
            f"Stage na posição {index} sem 'id' válido",
            details={"position": index},
        )

    commands = _string_list(raw.get("commands"), field_name="commands", stage_id=stage_id, unique=False)
    if not commands:
        raise PipelineDefinitionError(
            f"Stage '{stage_id}' não declara comandos",
            details={"stage_id": stage_id},
        )
    deps_raw = raw.get("depends_on", raw.get("needs"))

    return Stage(
        id=stage_id,
        commands=commands,
        depends_on=_string_list(deps_raw, field_name="depends_on", stage_id=stage_id),
        gate=_parse_gate(raw.get("gate"), stage_id=stage_id, environments=environments),
        env=_parse_env(raw.get("env"), stage_id=stage_id),
        secrets=_string_list(raw.get("secrets"), field_name="secrets", stage_id=stage_id),
        timeout_sec=_parse_timeout(raw.get("timeout_sec"), stage_id=stage_id),
    )


def parse_pipeline(definition: Mapping[str, Any]) -> Pipeline:
    """
    Valida uma definição já carregada e produz um `Pipeline` imutável.

    A versão do pipeline é derivada do hash canônico da definição
    completa: definições equivalentes compartilham a mesma versão.

    Raises:
        PipelineDefinitionError: Em qualquer violação estrutural.
    """
    if not isinstance(definition, Mapping):
        raise PipelineDefinitionError(
            f"Definição de pipeline deve ser um mapa, recebido: {type(definition).__name__}"
        )

    name = definition.get("name")
    if not isinstance(name, str) or not name.strip():
        raise PipelineDefinitionError("Pipeline sem 'name' válido", details={"field": "name"})

    trigger_raw = definition.get("trigger") or {}
    if not isinstance(trigger_raw, dict):
        raise PipelineDefinitionError("'trigger' deve ser um mapa", details={"pipeline": name})
    trigger = TriggerPredicate(
        branches=_string_list(trigger_raw.get("branches"), field_name="trigger.branches"),
        repositories=_string_list(trigger_raw.get("repositories"), field_name="trigger.repositories"),
    )

    environments = _parse_environments(definition.get("environments"))

    stages_raw = definition.get("stages")
    if not isinstance(stages_raw, list) or not stages_raw:
        raise PipelineDefinitionError(
            f"Pipeline '{name}' deve declarar ao menos um stage",
            details={"pipeline": name},
        )

    stages = tuple(
        _parse_stage(raw, index=i, environments=environments) for i, raw in enumerate(stages_raw)
    )

    digest = compute_config_hash(dict(definition))
    # Pipeline.__post_init__ executa o planner (duplicidade, dependências, ciclos)
    return Pipeline(
        name=name,
        stages=stages,
        trigger=trigger,
        version=short_version(digest),
        digest=digest,
    )


def load_pipeline(path: Union[str, Path]) -> Pipeline:
    """Carrega e valida uma definição de pipeline a partir de arquivo YAML/JSON."""
    return parse_pipeline(load_document(path))


def load_pipelines(directory: Union[str, Path]) -> List[Pipeline]:
    """
    Carrega todas as definições de um diretório (ordem lexicográfica de arquivo).

    Raises:
        PipelineDefinitionError: Se o diretório não existir ou alguma
            definição for inválida (nenhum pipeline parcial é retornado).
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise PipelineDefinitionError(
            f"Diretório de pipelines não encontrado: {directory}",
            details={"path": str(directory)},
        )
    files = sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES)
    return [load_pipeline(p) for p in files]
