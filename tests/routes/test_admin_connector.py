"""Admin connector endpoint and health probe."""
from __future__ import annotations

import pytest  # type: ignore[import-not-found]

from cartbridge.routes import admin_connector
from cartbridge.services import store_key_service
from cartbridge.startup import create_app

PATH = "/admin/a2c-connector"


@pytest.fixture
def client(wp_db, bridge_dirs, monkeypatch):
    monkeypatch.setenv("BRIDGE_ADMIN_TOKEN", "admin-secret")
    return create_app({"TESTING": True}).test_client()


def test_requires_admin_token(client):
    resp = client.post(PATH, json={"connector_action": "updateToken"})
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "permission_denied"


def test_disabled_without_configured_token(wp_db, bridge_dirs, monkeypatch):
    monkeypatch.delenv("BRIDGE_ADMIN_TOKEN", raising=False)
    resp = create_app({"TESTING": True}).test_client().post(
        PATH, json={"connector_action": "updateToken"}, headers={"X-Admin-Token": ""}
    )
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "admin_disabled"


def test_update_token(client):
    resp = client.post(PATH, json={"connector_action": "updateToken"}, headers={"X-Admin-Token": "admin-secret"})
    assert resp.status_code == 200
    key = resp.get_json()["data"]["storeKey"]
    assert len(key) == 32
    assert store_key_service.read_mirror_key() == key


def test_install_dispatches_to_installer(client, monkeypatch):
    monkeypatch.setattr(admin_connector.installer_service, "install_bridge", lambda: {"status": {"success": True}})
    resp = client.post(PATH, json={"connector_action": "installBridge"}, headers={"X-Admin-Token": "admin-secret"})
    assert resp.get_json() == {"status": {"success": True}}


def test_unknown_connector_action(client):
    resp = client.post(PATH, json={"connector_action": "format"}, headers={"X-Admin-Token": "admin-secret"})
    assert resp.status_code == 400


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "db": True}
