# src/stagegate/core/state/__init__.py
"""
Estado de execução do StageGate.

Este pacote contém a estrutura canônica da Run (`run`) e o Run Store
(`store`, `json_store`): armazenamento chaveado com compare-and-set atômico
por stage, a única via pela qual o estado de uma Run é mutado.

Invariantes:
    - Uma Run possui exclusivamente seu mapa de status por stage
    - Toda transição de status passa pelo compare-and-set do store
"""
