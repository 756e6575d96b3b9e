# src/stagegate/core/__init__.py
"""
Core do StageGate: configuração, definição de pipelines, engine de
orquestração, estado de Runs e rastreabilidade.
"""
