# src/stagegate/core/engine/__init__.py
"""
Engine do StageGate.

Contém o Planner (ordenação topológica e validação do DAG) e o
Orchestrator (scheduling, gates, cancelamento e execução de stages).
Os módulos são importados explicitamente (`stagegate.core.engine.planner`,
`stagegate.core.engine.orchestrator`).
"""
