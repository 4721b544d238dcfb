"""Shared fixtures: in-memory host database, bridge directories, fakes."""
from __future__ import annotations

import itertools
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pytest  # type: ignore[import-not-found]
from sqlalchemy import text

from cartbridge.db.engine import app_connection, init_engine_once, reset_for_tests
from cartbridge.db.link import QueryResult
from cartbridge.services.commerce.platform import CommercePlatform, PlatformApiError
from cartbridge.services.config_adapter import BridgeConfig
from cartbridge.utils.constants import CART_WOOCOMMERCE

STORE_KEY = "0123456789abcdef0123456789abcdef"


@pytest.fixture
def bridge_dirs(monkeypatch, tmp_path):
    store = tmp_path / "store"
    bridge = tmp_path / "bridge2cart"
    store.mkdir()
    bridge.mkdir()
    monkeypatch.setenv("BRIDGE_STORE_BASE_DIR", str(store))
    monkeypatch.setenv("BRIDGE_DIR", str(bridge))
    return {"store": store, "bridge": bridge}


@pytest.fixture
def wp_db(monkeypatch):
    """Host database with an empty ``wp_options`` table."""
    reset_for_tests()
    monkeypatch.setenv("BRIDGE_DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.delenv("WP_MULTISITE", raising=False)
    monkeypatch.delenv("WP_TABLE_PREFIX", raising=False)
    init_engine_once()
    with app_connection() as conn:
        conn.execute(text(
            "CREATE TABLE wp_options ("
            "option_id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "option_name VARCHAR(191) UNIQUE, option_value TEXT, autoload VARCHAR(20))"
        ))
    yield
    reset_for_tests()


# ---------------- database link fake ---------------

class FakeLink:
    """Records statements; answers from a queue of ``(QueryResult, insert_id)``."""

    def __init__(self, outcomes: Optional[Iterable[Any]] = None) -> None:
        self.outcomes = list(outcomes or [])
        self.statements: List[str] = []
        self.last_insert_id: Any = 0
        self.affected_rows = 0
        self.released = False

    def query(self, sql: str, fetch_mode: int = 1, options: Optional[Mapping[str, Any]] = None) -> QueryResult:
        self.statements.append(sql)
        if not self.outcomes:
            return QueryResult(result=True)
        outcome, insert_id = self.outcomes.pop(0)
        self.last_insert_id = insert_id
        return outcome

    def release(self) -> None:
        self.released = True


class FakeAdapter:
    def __init__(self, cart_id: str = CART_WOOCOMMERCE, link: Optional[FakeLink] = None) -> None:
        self.config = BridgeConfig(cart_id=cart_id, dbname="shop", time_zone="Europe/Riga")
        self.multilingual_active = False
        self.link = link or FakeLink()
        self.connect_calls = 0

    def connect(self) -> FakeLink:
        self.connect_calls += 1
        return self.link

    def release(self) -> None:
        pass

    def get_active_modules(self, data: Any = None) -> Dict[str, Any]:
        return {"error": "Action is not supported", "data": False}


# ---------------- outbound HTTP fake ---------------

class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", json_body: Any = None) -> None:
        self.status_code = status_code
        self.content = content
        self.text = content.decode("utf-8", errors="replace")
        self._json = json_body

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("no json")
        return self._json

    def iter_content(self, chunk_size: int = 1024):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None


class FakeSession:
    """Stands in for ``requests.Session``; records every call."""

    def __init__(self, response: Optional[FakeResponse] = None, error: Optional[BaseException] = None) -> None:
        self.response = response or FakeResponse()
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def _answer(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._answer("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._answer("POST", url, **kwargs)


# ---------------- commerce platform fake ---------------

class FakePlatform(CommercePlatform):
    """In-memory store speaking the REST entity shapes."""

    def __init__(self) -> None:
        self._ids = itertools.count(100)
        self.products: Dict[int, Dict[str, Any]] = {}
        self.orders: Dict[int, Dict[str, Any]] = {}
        self.categories: Dict[int, Dict[str, Any]] = {}
        self.media: Dict[int, Dict[str, Any]] = {}
        self.notes: List[Dict[str, Any]] = []
        self.terms: List[Any] = []
        self.deleted: List[int] = []
        self.deleted_refunds: List[Any] = []
        self.emails: List[Any] = []
        self.cache_cleared: List[int] = []
        self.refund_gateways = {"stripe"}
        self.repay_result: Optional[int] = None
        self.fail_terms = False

    def _next(self) -> int:
        return next(self._ids)

    # products
    def get_product(self, product_id: int) -> Optional[Dict[str, Any]]:
        product = self.products.get(int(product_id))
        return dict(product) if product else None

    def create_product(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        product = {"id": self._next(), "meta_data": [], "images": [], **payload}
        self.products[product["id"]] = product
        return dict(product)

    def update_product(self, product_id: int, payload: Mapping[str, Any]) -> Dict[str, Any]:
        product = self.products[int(product_id)]
        product.update(payload)
        return dict(product)

    def delete_product(self, product_id: int) -> None:
        self.deleted.append(int(product_id))
        self.products.pop(int(product_id), None)

    def set_product_terms(self, product_id: int, taxonomy: str, names: List[Any], append: bool) -> None:
        if self.fail_terms:
            raise PlatformApiError("term assignment failed")
        self.terms.append((product_id, taxonomy, list(names), append))

    def clear_product_cache(self, product_id: int) -> None:
        self.cache_cleared.append(int(product_id))

    # orders
    def get_order(self, order_id: int) -> Optional[Dict[str, Any]]:
        order = self.orders.get(int(order_id))
        return dict(order) if order else None

    def update_order(self, order_id: int, payload: Mapping[str, Any]) -> Dict[str, Any]:
        self.orders[int(order_id)].update(payload)
        return dict(self.orders[int(order_id)])

    def add_order_note(self, order_id: int, note: str, *, customer_note: bool = False, added_by_user: bool = False) -> int:
        self.notes.append({"order_id": order_id, "note": note, "customer_note": customer_note, "by_user": added_by_user})
        return len(self.notes)

    # refunds
    def gateway_supports_refunds(self, gateway_id: str) -> bool:
        return gateway_id in self.refund_gateways

    def create_refund(self, order_id: int, *, amount: float, reason: str = "", line_items=None,
                      restock_items: bool = False, refund_payment: bool = False) -> Dict[str, Any]:
        refund = {"id": self._next(), "amount": amount, "reason": reason, "restock": restock_items}
        self.orders[int(order_id)].setdefault("refunds", []).append({"id": refund["id"], "total": -amount})
        return refund

    def refund_payment(self, order_id: int, refund: Mapping[str, Any]) -> Optional[int]:
        return self.repay_result

    def delete_refund(self, order_id: int, refund_id: int) -> None:
        self.deleted_refunds.append((order_id, refund_id))

    # meta
    def get_entity(self, entity: str, entity_id: int) -> Optional[Dict[str, Any]]:
        if entity in ("product", "variant"):
            return self.get_product(entity_id)
        if entity == "order":
            return self.get_order(entity_id)
        return None

    def update_entity_meta(self, entity: str, entity_id: int, add: Mapping[str, Any], remove: Iterable[str]) -> Dict[str, Any]:
        target = self.products.get(int(entity_id)) or self.orders[int(entity_id)]
        rows = [row for row in target.get("meta_data", []) if row["key"] not in set(remove) | set(add)]
        for key, value in add.items():
            rows.append({"id": self._next(), "key": key, "value": value})
        target["meta_data"] = rows
        return dict(target)

    # categories
    def create_category(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        if payload.get("name") == "bad":
            raise PlatformApiError("A term with the name provided already exists.", "term_exists")
        category = {"id": self._next(), **payload}
        self.categories[category["id"]] = category
        return category

    def update_category(self, category_id: int, payload: Mapping[str, Any]) -> Dict[str, Any]:
        self.categories[int(category_id)].update(payload)
        return self.categories[int(category_id)]

    def delete_category(self, category_id: int) -> None:
        self.categories.pop(int(category_id))

    # media
    def upload_media(self, filename: str, content: bytes, *, alt: str = "", parent_id: Optional[int] = None) -> Dict[str, Any]:
        media_id = self._next()
        self.media[media_id] = {"id": media_id, "source_url": f"https://shop.test/wp-content/uploads/{filename}",
                                "content": content, "parent": parent_id}
        return self.media[media_id]

    def media_url(self, media_id: int) -> Optional[str]:
        media = self.media.get(int(media_id))
        return media["source_url"] if media else None

    def home_url(self) -> str:
        return "https://shop.test"

    # misc
    def list_plugins(self) -> List[Dict[str, Any]]:
        return [{"plugin": "woocommerce/woocommerce", "status": "active"}]

    def trigger_email(self, email_class: str, args: Any) -> bool:
        self.emails.append((email_class, args))
        return email_class.startswith("WC_Email")


@pytest.fixture
def platform():
    return FakePlatform()
