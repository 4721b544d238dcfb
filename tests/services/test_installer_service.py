"""Install / remove / rotate flows behind the admin connector."""
from __future__ import annotations

from conftest import FakeResponse, FakeSession

from cartbridge.services import installer_service, store_key_service
from cartbridge.services.authenticator import verify_signature


def test_install_self_checks_with_a_signed_request(wp_db, bridge_dirs, monkeypatch):
    monkeypatch.setenv("BRIDGE_PUBLIC_URL", "https://shop.test/wp-json/a2c/v1/bridge-action")
    session = FakeSession(FakeResponse(200, b'"BRIDGE_OK"'))
    result = installer_service.install_bridge(http_session=lambda: session)

    assert result["status"]["success"] is True
    key = result["data"]["storeKey"]
    assert result["data"]["bridgeUrl"] == "https://shop.test/wp-json/a2c/v1/bridge-action"
    assert store_key_service.read_mirror_key() == key
    assert store_key_service.is_installed() is True

    call = session.calls[0]
    assert call["data"]["action"] == "checkbridge"
    assert verify_signature(call["data"], key)
    assert call["params"]["disable_checks"] == 1
    assert call["timeout"] == 30


def test_forbidden_self_check_is_a_warning(wp_db, bridge_dirs, monkeypatch):
    monkeypatch.setenv("BRIDGE_PUBLIC_URL", "https://shop.test/bridge")
    session = FakeSession(FakeResponse(403, b"blocked"))
    result = installer_service.install_bridge(http_session=lambda: session)
    assert result["status"]["success"] is False
    assert result["warning"] is True
    assert "Status code:403" in result["status"]["message"]
    assert store_key_service.is_installed() is True


def test_remove_bridge(wp_db):
    store_key_service.mark_installed()
    result = installer_service.remove_bridge()
    assert result["status"] == {"success": True, "message": "Bridge deleted"}
    assert store_key_service.is_installed() is False


def test_update_token_rotates_and_mirrors(wp_db, bridge_dirs):
    before = store_key_service.get_store_key()
    result = installer_service.update_token()
    assert result["status"]["success"] is True
    assert result["data"]["storeKey"] != before
    assert store_key_service.read_mirror_key() == result["data"]["storeKey"]
