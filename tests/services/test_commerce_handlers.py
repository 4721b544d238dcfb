"""Commerce handlers over the in-memory platform."""
from __future__ import annotations

import base64

from cartbridge.services.commerce.handlers import VARIATION_GALLERY_META, CommerceHandlers
from cartbridge.services.commerce.translation import WpmlTranslationSync


def test_category_batch_isolates_failures(platform):
    handlers = CommerceHandlers(platform)
    result = handlers.category_add_batch({"data": [{"name": "Books"}, {"name": "bad"}, {"name": "Music"}]})
    assert result["error_code"] == 0
    items = result["result"]
    assert items[0]["id"] and items[2]["id"]
    assert items[1]["id"] is None
    assert items[1]["errors"] == [{
        "message": "Can't create category! Error: A term with the name provided already exists.",
        "error_code": "term_exists",
    }]
    assert {c["name"] for c in platform.categories.values()} == {"Books", "Music"}


def test_category_add_returns_term_id(platform):
    result = CommerceHandlers(platform).category_add({"meta_data": {"tag-name": "Toys", "parent": "0"}})
    assert platform.categories[result["term_id"]]["name"] == "Toys"


def test_set_meta_data_entity_not_found(platform):
    result = CommerceHandlers(platform).set_meta_data({"entity": "product", "entity_id": 5, "meta": {"a": 1}})
    assert result["error_code"] == 1
    assert result["error"] == "product"


def test_set_meta_data_adds_and_removes(platform):
    product = platform.create_product({"type": "simple", "meta_data": [{"id": 1, "key": "old", "value": "x"}]})
    result = CommerceHandlers(platform).set_meta_data(
        {"entity": "product", "entity_id": product["id"], "meta": {"color": "red"}, "unset_meta": ["old"]}
    )
    assert result["error_code"] == 0
    assert [row["meta_key"] for row in result["result"]["meta"]] == ["color"]
    assert result["result"]["removed_meta"] == {"old": True}


def test_order_status_notes(platform):
    platform.orders[10] = {"id": 10, "status": "pending"}
    handlers = CommerceHandlers(platform)
    handlers.set_order_notes({"order_id": 10, "to": "wc-completed"})
    handlers.set_order_notes({"order_id": 10, "from": "pending", "to": "processing", "added_by_user": True})
    assert platform.notes[0]["note"] == "Order status set to Completed."
    assert platform.notes[1]["note"] == "Order status changed from Pending payment to Processing."
    assert platform.notes[1]["by_user"] is True


def test_order_update(platform):
    platform.orders[11] = {"id": 11, "status": "pending"}
    result = CommerceHandlers(platform).order_update({"order": {
        "id": 11,
        "status": {"id": "completed", "transition_note": "shipped"},
        "admin_comment": {"text": "thanks"},
    }})
    assert result["result"] is True
    assert platform.orders[11]["status"] == "completed"
    assert [n["note"] for n in platform.notes] == ["shipped", "thanks"]
    assert platform.notes[1]["customer_note"] is True


def test_product_add_rejects_unknown_type(platform):
    result = CommerceHandlers(platform).product_add_action({"product_data": {"type": "bogus", "data": {"name": "x"}}})
    assert result["error_code"] == 2
    assert result["error"] == "[BRIDGE ERROR]: Class WC_Product_Bogus not exist!"


def test_product_add_sets_properties_meta_and_terms(platform):
    result = CommerceHandlers(platform).product_add_action({"product_data": {
        "type": "simple",
        "data": {"name": "Lamp", "regular_price": "9.99", "width": 3, "unknown_prop": 1},
        "meta_data": {"_custom": "yes"},
        "terms_data": {"product_tag": [{"name": "home", "append": True}, {"name": "home"}]},
    }})
    product = platform.products[result["result"]["product_id"]]
    assert product["name"] == "Lamp"
    assert product["dimensions"] == {"width": "3"}
    assert "unknown_prop" not in product
    assert product["meta_data"] == [{"key": "_custom", "value": "yes"}]
    assert platform.terms == [(product["id"], "product_tag", ["home"], True)]
    assert product["id"] in platform.cache_cleared


def test_batch_add_rolls_back_partially_created_product(platform):
    platform.fail_terms = True
    result = CommerceHandlers(platform).product_add_batch_action({"data": {"p1": {"product_data": {
        "type": "simple",
        "data": {"name": "Chair"},
        "terms_data": {"product_cat": [{"name": "Furniture"}]},
    }}}})
    entry = result["result"]["p1"]
    assert entry["id"] is None
    assert entry["errors"][0]["message"] == "term assignment failed"
    assert platform.products == {}
    assert len(platform.deleted) == 1


def test_delete_variable_product_deletes_children_first(platform):
    child = platform.create_product({"type": "variation"})
    parent = platform.create_product({"type": "variable", "variations": [child["id"]]})
    result = CommerceHandlers(platform).product_delete_action({"data": [{"id": parent["id"]}]})
    assert result["result"][0] == {"id": parent["id"]}
    assert platform.deleted == [child["id"], parent["id"]]


def test_image_add_sets_thumbnail_and_variant_gallery(platform):
    product = platform.create_product({"type": "simple"})
    variant = platform.create_product({"type": "variation"})
    content = "data:image/jpeg;base64," + base64.b64encode(b"\xff\xd8fakejpeg").decode()
    result = CommerceHandlers(platform).image_add({
        "name": "cover.jpg",
        "content": content,
        "product_ids": [product["id"]],
        "variant_ids": [variant["id"]],
        "is_thumbnail": True,
        "is_gallery": True,
    })
    assert result["error_code"] == 0
    image_id = result["result"]["image_id"]
    assert result["result"]["src"] == "/wp-content/uploads/cover.jpg"
    assert platform.products[product["id"]]["images"][0] == {"id": image_id}
    gallery_meta = platform.products[variant["id"]]["meta_data"]
    assert gallery_meta == [{"key": VARIATION_GALLERY_META, "value": [image_id]}]


def test_translation_sync_updates_duplicates(platform):
    original = platform.create_product({"type": "simple", "name": "Cup"})
    duplicate = platform.create_product({"type": "simple", "name": "Tasse"})
    platform.product_translations = lambda product_id: {"en": original["id"], "de": duplicate["id"]}
    handlers = CommerceHandlers(platform, WpmlTranslationSync())
    handlers.product_update_action({"product_data": {
        "id": original["id"],
        "type": "simple",
        "data": {"regular_price": "5", "name": "Mug"},
    }})
    assert platform.products[duplicate["id"]]["regular_price"] == "5"
    assert platform.products[duplicate["id"]]["name"] == "Tasse"


def test_send_email_notifications(platform):
    handlers = CommerceHandlers(platform)
    ok = handlers.send_email_notifications({"notifications": [{"wc_class": "WC_Email_New_Order", "data": {"id": 1}}]})
    assert ok is True
    assert platform.emails == [("WC_Email_New_Order", {"id": 1})]
