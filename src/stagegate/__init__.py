# src/stagegate/__init__.py
"""
StageGate — orquestrador de pipelines de entrega contínua.

Pipelines são DAGs de stages declarados em YAML/JSON, disparados por
eventos de repositório, com gates de aprovação manual por ambiente.
"""

__version__ = "0.1.0"
