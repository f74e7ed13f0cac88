from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from offchain_node.runtime.errors import ResyncRequired
from offchain_node.runtime.node_boot import boot_node
from offchain_node.runtime.node_config import default_node_config


def _cfg(tmp_path: Path, **overrides: str):
    return dataclasses.replace(
        default_node_config(),
        mode="dev",
        db_path=str(tmp_path / "node.db"),
        lock_path=str(tmp_path / "node.lock"),
        **overrides,
    )


def test_create_app_boot_runtime_false_does_not_attach_node() -> None:
    from offchain_node.api.app import create_app

    app = create_app(boot_runtime=False)
    assert getattr(app.state, "node", None) is None

    with TestClient(app) as client:
        r = client.get("/v1/health")
        assert r.status_code == 200
        assert r.json() == {"ok": True, "booted": False}

        r = client.get("/v1/offchain")
        assert r.status_code == 503
        assert r.json()["error"]["code"] == "not_booted"


def test_offchain_status_reports_resolved_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    from offchain_node.api import app as api_app

    monkeypatch.setattr(api_app, "boot_node", lambda: boot_node(_cfg(tmp_path, role="authority")))

    app = api_app.create_app(boot_runtime=True)
    with TestClient(app) as client:
        assert client.get("/v1/health").json()["booted"] is True

        j = client.get("/v1/offchain").json()
        assert j == {
            "ok": True,
            "node_id": "local-node",
            "role": "authority",
            "offchain_worker_enabled": True,
            "offchain_indexing": "Enabled",
            "history_incomplete": False,
        }

    # lifespan shutdown released the single-writer lock
    boot_node(_cfg(tmp_path)).close()


def test_resync_required_aborts_app_startup(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    from offchain_node.api import app as api_app

    boot_node(_cfg(tmp_path, role="authority")).close()
    monkeypatch.setattr(api_app, "boot_node", lambda: boot_node(_cfg(tmp_path, offchain_indexing="Disable")))

    app = api_app.create_app(boot_runtime=True)
    with pytest.raises(ResyncRequired):
        with TestClient(app):
            pass

    assert app.state.node is None
    # the failed boot released the single-writer lock
    boot_node(_cfg(tmp_path)).close()


def test_create_app_defers_boot_until_startup(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    from offchain_node.api import app as api_app

    calls = []

    def _boot():
        calls.append(1)
        return boot_node(_cfg(tmp_path))

    monkeypatch.setattr(api_app, "boot_node", _boot)

    app = api_app.create_app(boot_runtime=True)
    assert calls == []
    assert app.state.node is None
    # an app that never starts holds neither the lock nor the database
    assert not (tmp_path / "node.db").exists()
    boot_node(_cfg(tmp_path)).close()

    with TestClient(app) as client:
        assert calls == [1]
        assert client.get("/v1/health").json()["booted"] is True
    assert app.state.node is None


def test_docs_disabled_in_prod(monkeypatch: pytest.MonkeyPatch) -> None:
    from offchain_node.api.app import create_app

    monkeypatch.setenv("OCN_MODE", "prod")
    with TestClient(create_app(boot_runtime=False)) as client:
        assert client.get("/openapi.json").status_code == 404
