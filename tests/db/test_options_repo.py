"""Host settings table helpers."""
from __future__ import annotations

import phpserialize

from cartbridge.db.repositories import options_repo


def test_maybe_unserialize():
    raw = phpserialize.dumps({0: "woocommerce/woocommerce.php"}).decode()
    assert options_repo.maybe_unserialize(raw) == {0: "woocommerce/woocommerce.php"}
    assert options_repo.maybe_unserialize("plain text") == "plain text"
    assert options_repo.maybe_unserialize("a:broken") == "a:broken"


def test_option_round_trip(wp_db):
    assert options_repo.get_option("missing", default="d") == "d"
    options_repo.update_option("flag", True)
    assert options_repo.get_option("flag") == "1"
    options_repo.update_option("flag", "2")
    assert options_repo.get_option("flag") == "2"
    options_repo.delete_option("flag")
    assert options_repo.get_option("flag") is None
