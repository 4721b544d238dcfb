"""WooCommerce REST collaborator: routing, auth and error mapping."""
from __future__ import annotations

import json

import pytest  # type: ignore[import-not-found]
from conftest import FakeResponse

from cartbridge.services.commerce.platform import PlatformApiError
from cartbridge.services.commerce.woocommerce_rest import WooCommerceRestPlatform, build_platform


class RecordingSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self.responses.pop(0)


def _json(status, body):
    return FakeResponse(status, json.dumps(body).encode(), json_body=body)


def _platform(*responses):
    session = RecordingSession(*responses)
    return WooCommerceRestPlatform("https://shop.test/wp-json/", "ck", "cs", session=session), session


def test_variation_writes_go_through_the_parent_route():
    platform, session = _platform(
        _json(200, {"id": 12, "type": "variation", "parent_id": 3}),
        _json(200, {"id": 12}),
    )
    assert platform.get_product(12)["parent_id"] == 3
    platform.update_product(12, {"regular_price": "4"})
    method, url, kwargs = session.calls[1]
    assert (method, url) == ("PUT", "https://shop.test/wp-json/wc/v3/products/3/variations/12")
    assert kwargs["auth"] == ("ck", "cs")
    assert kwargs["json"] == {"regular_price": "4"}


def test_missing_entity_is_none():
    platform, _ = _platform(_json(404, {"code": "woocommerce_rest_invalid_id", "message": "Invalid ID."}))
    assert platform.get_order(99) is None


def test_rejections_carry_code_and_status():
    platform, _ = _platform(_json(400, {"code": "term_exists", "message": "A term with the name provided already exists."}))
    with pytest.raises(PlatformApiError) as exc:
        platform.create_category({"name": "Books"})
    assert exc.value.error_code == "term_exists"
    assert exc.value.status == 400


def test_offline_gateways_never_refund():
    platform, session = _platform()
    assert platform.gateway_supports_refunds("cod") is False
    assert session.calls == []


def test_unknown_email_class():
    platform, _ = _platform()
    assert platform.trigger_email("WC_Email_Unheard_Of", [1]) is False


def test_build_platform_requires_api_url(monkeypatch):
    for name in ("WC_API_URL", "WP_HOME", "WP_SITEURL"):
        monkeypatch.delenv(name, raising=False)
    with pytest.raises(PlatformApiError):
        build_platform()
