# src/stagegate/executors/__init__.py
"""
Command Executor Adapters.

Fronteira entre o Orchestrator e colaboradores externos (shell, build de
imagens, registry, secret store). O core depende apenas do contrato em
`stagegate.executors.base`.
"""
