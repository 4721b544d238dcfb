"""Bridge HTTP endpoint: auth status mapping, params and wire bodies."""
from __future__ import annotations

import pytest  # type: ignore[import-not-found]
from conftest import STORE_KEY, FakeAdapter

from cartbridge.services.authenticator import RequestAuthenticator, sign_params
from cartbridge.services.context import BridgeServices
from cartbridge.services.envelope import ObfuscationEnvelope
from cartbridge.errors import ConnectivityError
from cartbridge.startup import create_app
from cartbridge.utils.params import build_query

PATH = "/wp-json/a2c/v1/bridge-action"
ENV = ObfuscationEnvelope()


@pytest.fixture
def flask_app(wp_db, bridge_dirs):
    app = create_app({
        "TESTING": True,
        "BRIDGE_AUTHENTICATOR": RequestAuthenticator(is_installed=lambda: True, secret_loader=lambda: STORE_KEY),
        "BRIDGE_ADAPTER_FACTORY": lambda params: FakeAdapter(),
        "BRIDGE_SERVICES": BridgeServices(envelope_factory=ObfuscationEnvelope),
    })
    return app


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


def _post(client, params, query=""):
    return client.post(
        PATH + query,
        data=build_query(params),
        content_type="application/x-www-form-urlencoded",
    )


def test_health_check_needs_no_signature(client):
    resp = _post(client, {"action": "checkbridge"})
    assert resp.status_code == 200
    assert resp.get_json() == "BRIDGE_OK"


def test_missing_signature_is_a_200_error(client):
    resp = _post(client, {"action": "getconfig"})
    assert resp.status_code == 200
    assert resp.get_json()["code"] == "signature_is_not_correct"


def test_bad_signature_is_401(client):
    params = sign_params({"action": "getconfig"}, STORE_KEY)
    params["a2c_sign"] = "0" * 64
    resp = _post(client, params)
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "ERROR: Signature is not correct"


def test_token_in_query_string_is_refused(client):
    resp = _post(client, sign_params({"action": "getconfig"}, STORE_KEY), "?token=1")
    assert resp.get_json()["code"] == "token_is_not_correct"


def test_signed_getconfig(client):
    resp = _post(client, sign_params({"action": "getconfig"}, STORE_KEY))
    assert resp.status_code == 200
    assert ENV.decode(resp.get_json())["bridgeVersion"] == "167"


def test_bracketed_files_are_parsed_and_signed(client, bridge_dirs):
    params = sign_params({
        "action": "batchsavefile",
        "files": {"0": {"id": "5", "source": "aGk=", "target": "up/a b.txt"}},
    }, STORE_KEY)
    resp = _post(client, params)
    assert resp.status_code == 200
    assert resp.get_json() == '{"5":"OK"}'
    assert (bridge_dirs["store"] / "up" / "a b.txt").read_bytes() == b"hi"


def test_unknown_action(client):
    resp = _post(client, sign_params({"action": "nope"}, STORE_KEY))
    assert resp.get_json() == "ACTION_DOES_NOT_EXIST"


def test_false_result_is_empty_body(client):
    resp = _post(client, sign_params({"action": "query"}, STORE_KEY))
    assert resp.status_code == 200
    assert resp.get_json() == ""


def test_adapter_failure_is_500(flask_app):
    def broken(params):
        raise ConnectivityError("Can not connect to DB")

    flask_app.config["BRIDGE_ADAPTER_FACTORY"] = broken
    resp = _post(flask_app.test_client(), sign_params({"action": "getconfig"}, STORE_KEY))
    assert resp.status_code == 500
    assert resp.get_json() == "Can not connect to DB"


def test_action_exception_becomes_body(flask_app, monkeypatch):
    from cartbridge.services.actions.getconfig import GetConfigAction

    def explode(self, ctx):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(GetConfigAction, "execute", explode)
    resp = _post(flask_app.test_client(), sign_params({"action": "getconfig"}, STORE_KEY))
    assert resp.status_code == 200
    assert resp.get_json() == "disk on fire"


def test_registration_is_idempotent(flask_app):
    from cartbridge.routes import register_all

    register_all(flask_app)
    assert "bridge.bridge_action" in flask_app.view_functions
