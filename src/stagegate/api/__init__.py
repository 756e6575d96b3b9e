# src/stagegate/api/__init__.py
"""
HTTP API do StageGate (FastAPI).

Camada fina sobre o Orchestrator: trigger, status, aprovação, rejeição e
cancelamento de Runs. Nenhuma regra de scheduling vive aqui.
"""
