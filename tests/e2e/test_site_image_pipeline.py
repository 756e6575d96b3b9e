# tests/e2e/test_site_image_pipeline.py
"""
Teste E2E — site estático empacotado em imagem.

Objetivo:
    Validar o caminho completo configuração → registro de pipelines →
    Orchestrator → ShellCommandExecutor → API, com comandos /bin/sh reais
    executados em um checkout temporário.

Cenários:
    - pipeline linear lint → build → push termina SUCCEEDED sem suspensão
    - pipeline com gate manual suspende em push até a aprovação
    - falha de lint pula build/push e a Run termina FAILED
    - segredos chegam ao comando e não aparecem no log capturado
    - a Run persistida sobrevive ao restart (store json)
"""

import textwrap

import pytest

WAIT_TIMEOUT = 20.0

try:
    from fastapi.testclient import TestClient

    from stagegate.bootstrap import create_app_from_config
except Exception as e:  # pragma: no cover
    TestClient = None
    create_app_from_config = None
    _IMPORT_ERR = e


def _require_imports():
    if create_app_from_config is None:
        pytest.fail(f"Falha ao importar stagegate: {_IMPORT_ERR}")


EVENT = {"repository": "acme/site", "branch": "main", "commit": "abc123", "actor": "carol"}

STAGES = """
  - id: lint
    commands:
      - test -f index.html
      - grep -q "<html" index.html
  - id: build
    depends_on: [lint]
    commands:
      - mkdir -p dist
      - cp index.html "dist/site-$STAGEGATE_COMMIT.html"
  - id: push
    depends_on: [build]
    {gate}
    secrets: [REGISTRY_TOKEN]
    commands:
      - echo "login with $REGISTRY_TOKEN"
      - test "$REGISTRY_TOKEN" = "hunter2"
      - cp "dist/site-$STAGEGATE_COMMIT.html" pushed.html
"""


def _write_pipeline(directory, name, *, gate=""):
    body = f"name: {name}\ntrigger:\n  branches: [main]\n"
    if gate:
        body += "environments:\n  production:\n    approvers: [alice]\n"
    body += "stages:" + STAGES.replace("{gate}", gate)
    (directory / f"{name}.yaml").write_text(body, encoding="utf-8")


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    _require_imports()
    checkout = tmp_path / "checkout"
    checkout.mkdir()
    (checkout / "index.html").write_text("<html><body>acme</body></html>\n", encoding="utf-8")

    pipelines = tmp_path / "pipelines"
    pipelines.mkdir()

    config = tmp_path / "stagegate.local.yaml"
    config.write_text(
        textwrap.dedent(
            f"""
            orchestrator:
              max_workers: 2
              stage_timeout_sec: 30
              infra_retry:
                max_attempts: 2
                backoff_base_sec: 0
                backoff_max_sec: 0
            store:
              backend: json
              path: {tmp_path / "runs"}
            executor:
              workdir: {checkout}
            secrets:
              env_prefix: E2E_SECRET_
            pipelines:
              path: {pipelines}
            """
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("E2E_SECRET_REGISTRY_TOKEN", "hunter2")
    return tmp_path, checkout, pipelines, config


def _client(config):
    return TestClient(create_app_from_config(config))


def _wait(client, run_id):
    return client.app.state.orchestrator.wait(run_id, timeout=WAIT_TIMEOUT)


def test_linear_pipeline_runs_without_suspension(workspace):
    _, checkout, pipelines, config = workspace
    _write_pipeline(pipelines, "site-image")

    with _client(config) as client:
        resp = client.post("/events", json=EVENT)
        assert resp.status_code == 201
        (run,) = resp.json()["runs"]
        _wait(client, run["run_id"])
        body = client.get(f"/runs/{run['run_id']}").json()

    assert body["status"] == "succeeded"
    assert [body["stages"][sid]["status"] for sid in ("lint", "build", "push")] == ["succeeded"] * 3
    assert (checkout / "dist" / "site-abc123.html").is_file()
    assert (checkout / "pushed.html").is_file()

    push_log = body["stages"]["push"]["log"]
    assert "hunter2" not in push_log
    assert "login with ***" in push_log


def test_gated_pipeline_waits_for_approval(workspace):
    _, checkout, pipelines, config = workspace
    _write_pipeline(pipelines, "site-image-gated", gate="gate: manual:production")

    with _client(config) as client:
        run_id = client.post("/pipelines/site-image-gated/runs", json=EVENT).json()["run_id"]
        _wait(client, run_id)

        suspended = client.get(f"/runs/{run_id}").json()
        assert suspended["status"] == "awaiting_approval"
        assert suspended["stages"]["push"]["status"] == "awaiting_approval"
        assert not (checkout / "pushed.html").exists()

        denied = client.post(f"/runs/{run_id}/stages/push/approve", headers={"X-Actor": "carol"})
        assert denied.status_code == 403

        approved = client.post(f"/runs/{run_id}/stages/push/approve", headers={"X-Actor": "alice"})
        assert approved.status_code == 200
        _wait(client, run_id)
        final = client.get(f"/runs/{run_id}").json()

    assert final["status"] == "succeeded"
    assert final["stages"]["push"]["approval"]["by"] == "alice"
    assert (checkout / "pushed.html").is_file()


def test_lint_failure_skips_downstream(workspace):
    _, checkout, pipelines, config = workspace
    (checkout / "index.html").write_text("plain text\n", encoding="utf-8")
    _write_pipeline(pipelines, "site-image")

    with _client(config) as client:
        (run,) = client.post("/events", json=EVENT).json()["runs"]
        _wait(client, run["run_id"])
        body = client.get(f"/runs/{run['run_id']}").json()

    assert body["status"] == "failed"
    lint = body["stages"]["lint"]
    assert lint["status"] == "failed"
    assert lint["error"]["type"] == "EXECUTION_FAILURE"
    assert lint["error"]["details"]["failed_command"] == 1
    assert lint["summary"] == "command 2/2 failed"
    assert "status" not in lint["error"]["message"]
    assert body["stages"]["build"]["status"] == "skipped"
    assert body["stages"]["push"]["status"] == "skipped"
    assert not (checkout / "dist").exists()


def test_missing_secret_fails_push(workspace, monkeypatch):
    _, _, pipelines, config = workspace
    monkeypatch.delenv("E2E_SECRET_REGISTRY_TOKEN")
    _write_pipeline(pipelines, "site-image")

    with _client(config) as client:
        (run,) = client.post("/events", json=EVENT).json()["runs"]
        _wait(client, run["run_id"])
        body = client.get(f"/runs/{run['run_id']}").json()

    push = body["stages"]["push"]
    assert body["status"] == "failed"
    assert push["status"] == "failed"
    assert push["error"]["type"] == "SECRET_NOT_FOUND"
    assert push["error"]["details"]["secret"] == "REGISTRY_TOKEN"


def test_awaiting_run_survives_restart(workspace):
    _, checkout, pipelines, config = workspace
    _write_pipeline(pipelines, "site-image-gated", gate="gate: manual:production")

    with _client(config) as client:
        run_id = client.post("/pipelines/site-image-gated/runs", json=EVENT).json()["run_id"]
        _wait(client, run_id)

    with _client(config) as client:
        reloaded = client.get(f"/runs/{run_id}").json()
        assert reloaded["status"] == "awaiting_approval"

        client.post(f"/runs/{run_id}/stages/push/approve", headers={"X-Actor": "alice"})
        _wait(client, run_id)
        final = client.get(f"/runs/{run_id}").json()

    assert final["status"] == "succeeded"
    assert (checkout / "pushed.html").is_file()
