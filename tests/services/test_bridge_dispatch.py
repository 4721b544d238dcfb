"""Dispatcher special cases, registry resolution and link lifecycle."""
from __future__ import annotations

import json

import pytest  # type: ignore[import-not-found]
from conftest import FakeAdapter, FakeLink

from cartbridge.db.link import QueryResult
from cartbridge.services.actions import ACTION_REGISTRY, build_registry
from cartbridge.services.actions.getconfig import GetConfigAction
from cartbridge.services.bridge import Bridge, sanitize_action
from cartbridge.services.context import BridgeServices
from cartbridge.services.envelope import ObfuscationEnvelope

ENV = ObfuscationEnvelope()


def _services():
    return BridgeServices(envelope_factory=ObfuscationEnvelope)


def _run(params, adapter=None):
    return Bridge(adapter or FakeAdapter(), params, services=_services()).run()


def test_health_check(monkeypatch):
    monkeypatch.delenv("BRIDGE_ENABLE_ENCRYPTION", raising=False)
    assert _run({"action": "checkbridge"}) == "BRIDGE_OK"


def test_health_check_with_encryption_reports_key_id(monkeypatch):
    monkeypatch.setenv("BRIDGE_ENABLE_ENCRYPTION", "yes")
    monkeypatch.setenv("BRIDGE_PUBLIC_KEY_ID", "key-7")
    assert _run({"action": "checkbridge"}) == {"message": "BRIDGE_OK", "key_id": "key-7", "bridge_version": "167"}


def test_unknown_action():
    assert _run({"action": "dropeverything"}) == "ACTION_DOES_NOT_EXIST"


def test_token_field_short_circuits():
    assert _run({"action": "query", "token": ""}) == "ERROR: Field token is not correct"


def test_empty_post_reports_installed_bridge():
    result = Bridge(FakeAdapter(), {"action": "getconfig"}, {}, services=_services()).run()
    assert result == "BRIDGE INSTALLED.<br /> Version: 167"


def test_action_names_are_sanitized_and_case_insensitive(bridge_dirs):
    assert sanitize_action(" <b>get.config</b> ") == "getconfig"
    wire = _run({"action": "GetConfig"})
    config = ENV.decode(wire)
    assert config["bridgeVersion"] == "167"
    assert config["databaseName"] == "shop"
    assert config["time_zone"] == "Europe/Riga"


def test_registry_rejects_duplicates():
    with pytest.raises(ValueError):
        build_registry([GetConfigAction(), GetConfigAction()])
    assert "createrefund" in ACTION_REGISTRY


def test_cart_bound_action_needs_detected_cart():
    assert _run({"action": "platform_action", "platform_action": "getPlugins", "data": ""}, FakeAdapter(cart_id="")) == (
        "CART_PLUGIN_IS_NOT_DETECTED"
    )


def test_query_link_is_released_after_the_action():
    link = FakeLink([(QueryResult(result=[{"n": 1}]), 0)])
    adapter = FakeAdapter(link=link)
    wire = _run({"action": "query", "query": ENV.encode_bytes(b"SELECT 1 AS n"), "fetchMode": "1"}, adapter)
    assert ENV.decode(wire)["res"] == [{"n": 1}]
    assert adapter.connect_calls == 1
    assert link.released is True


def test_savefile_never_opens_a_link(bridge_dirs):
    adapter = FakeAdapter()
    result = _run({"action": "savefile", "src": "aGVsbG8=", "dst": "notes/hello.txt"}, adapter)
    assert result == "OK"
    assert adapter.connect_calls == 0
    assert (bridge_dirs["store"] / "notes" / "hello.txt").read_bytes() == b"hello"


def test_json_wire_actions_are_plain_json(bridge_dirs):
    params = {"action": "batchsavefile", "files": {"0": {"id": "9", "source": "aGk=", "target": "x.exe"}}}
    assert json.loads(_run(params)) == {"9": "ERROR_INVALID_FILE_EXTENSION"}


def test_update_preflight_checks_bridge_directory(monkeypatch, tmp_path):
    monkeypatch.setenv("BRIDGE_DIR", str(tmp_path / "missing"))
    assert _run({"action": "update"}) == "ERROR_BRIDGE_DIR_IS_NOT_WRITABLE"


def test_update_preflight_checks_key_file(monkeypatch, tmp_path):
    monkeypatch.setenv("BRIDGE_DIR", str(tmp_path))
    assert _run({"action": "update"}) == "ERROR_BRIDGE_IS_NOT_WRITABLE"
    (tmp_path / "bridge_config.py").write_text("BRIDGE_TOKEN = 'x'\n")
    assert _run({"action": "update"}) == "ACTION_DOES_NOT_EXIST"
