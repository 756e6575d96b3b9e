# src/stagegate/core/traceability/__init__.py
"""
Rastreabilidade do StageGate.

Este pacote define o Event Log canônico associado a cada Run: a trilha
ordenada de transições de stages, decisões de gate, retries e
cancelamentos. O Event Log é persistido junto com a Run pelo Run Store
e exposto pela Status API.

Limites explícitos:
    - Não decide políticas de execução
    - Não persiste dados por conta própria
"""
