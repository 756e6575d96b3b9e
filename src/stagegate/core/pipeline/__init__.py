# src/stagegate/core/pipeline/__init__.py
"""
# Pipeline Core — StageGate

Este pacote define os **contratos canônicos** e as **estruturas fundamentais**
que compõem um pipeline de entrega contínua no StageGate.

Um pipeline é modelado como um **DAG explícito de Stages**, onde:
- cada Stage declara identidade, comandos, dependências e gate
- a execução é coordenada exclusivamente pelo Orchestrator
- o estado de execução vive exclusivamente na Run

## Componentes

- **types**: `GateKind`, `StageStatus`, `RunStatus`
- **stage**: `Gate`, `Stage` (definições imutáveis)
- **pipeline**: `Pipeline`, `TriggerEvent`, `TriggerPredicate`
- **loader**: parse + validação de definições declarativas
- **registry**: `PipelineRegistry` (uma definição ativa por nome)
- **errors**: erros estruturais de definição (CONFIG_ERROR)

Os módulos são importados explicitamente (ex.: `stagegate.core.pipeline.loader`);
este pacote não reexporta nomes para manter o grafo de imports acíclico.

## Invariantes

- Cada Stage possui um `id` único
- O grafo de dependências é acíclico
- Definições são somente leitura e compartilhadas entre Runs
"""
