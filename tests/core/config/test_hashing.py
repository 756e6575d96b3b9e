# tests/core/config/test_hashing.py
"""
Testes do hash canônico de documentos de configuração.

O hash é usado para auditar a configuração efetiva do orquestrador e
para versionar definições de pipeline. Os testes asseguram que:
- o hash é determinístico e independe da ordem das chaves
- o valor corresponde ao SHA-256 do JSON canônico
- qualquer alteração de conteúdo produz um hash diferente
"""

import hashlib
import json

import pytest

try:
    from stagegate.core.config.hashing import compute_config_hash, short_version
except Exception as e:  # noqa: BLE001
    compute_config_hash = None
    short_version = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _canonical_json_bytes(obj) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing hashing module. Implement src/stagegate/core/config/hashing.py\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_hash_is_deterministic():
    _require_imports()
    h1 = compute_config_hash({"b": 2, "a": 1})
    h2 = compute_config_hash({"a": 1, "b": 2})
    assert h1 == h2
    assert isinstance(h1, str)
    assert len(h1) == 64


def test_hash_matches_sha256_of_canonical_json():
    """
    Verifica que o hash corresponde exatamente ao SHA-256 do JSON canônico.

    Invariantes:
        - Chaves ordenadas, separadores compactos, UTF-8
        - O cálculo não depende da ordem original das chaves
    """
    _require_imports()
    cfg = {"orchestrator": {"fail_fast": True, "max_workers": 4}, "store": {"backend": "memória"}}
    expected = hashlib.sha256(_canonical_json_bytes(cfg)).hexdigest()
    assert compute_config_hash(cfg) == expected


def test_hash_changes_on_override():
    _require_imports()
    base = {"orchestrator": {"max_workers": 4}}
    changed = {"orchestrator": {"max_workers": 5}}
    assert compute_config_hash(base) != compute_config_hash(changed)


def test_hash_rejects_non_dict():
    _require_imports()
    with pytest.raises(TypeError):
        compute_config_hash(["not", "a", "dict"])


def test_short_version_is_prefix_of_digest():
    _require_imports()
    digest = compute_config_hash({"name": "site-image"})
    assert short_version(digest) == digest[:12]
    assert short_version(digest, length=8) == digest[:8]
