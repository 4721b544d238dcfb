"""Database Link: bounded connect retries and statement outcomes."""
from __future__ import annotations

import pytest  # type: ignore[import-not-found]
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from cartbridge.db import link as link_mod
from cartbridge.db.link import FETCH_NUM, FETCH_OBJECT, DatabaseLink
from cartbridge.errors import ConnectivityError


class _DeadEngine:
    def __init__(self):
        self.attempts = 0

    def connect(self):
        self.attempts += 1
        raise OperationalError("connect", {}, Exception("Connection refused"))


def test_connect_gives_up_after_five_attempts(monkeypatch):
    sleeps = []
    monkeypatch.setattr(link_mod.time, "sleep", lambda seconds: sleeps.append(seconds))
    engine = _DeadEngine()
    with pytest.raises(ConnectivityError) as exc:
        DatabaseLink(lambda: engine).connect()
    assert str(exc.value) == "Can not connect to DB"
    assert engine.attempts == 5
    assert sleeps == [2, 2, 2, 2]


@pytest.fixture
def sqlite_link():
    engine = create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    link = DatabaseLink(lambda: engine)
    link.query("CREATE TABLE items (id INTEGER PRIMARY KEY AUTOINCREMENT, sku TEXT)")
    yield link
    link.release()
    engine.dispose()


def test_insert_reports_last_insert_id(sqlite_link):
    sqlite_link.query("INSERT INTO items (sku) VALUES ('A')")
    outcome = sqlite_link.query("INSERT INTO items (sku) VALUES ('B')")
    assert outcome.result is True
    assert sqlite_link.last_insert_id == 2
    assert sqlite_link.affected_rows == 1


def test_fetch_modes(sqlite_link):
    sqlite_link.query("INSERT INTO items (sku) VALUES ('A')")
    assert sqlite_link.query("SELECT id, sku FROM items").result == [{"id": 1, "sku": "A"}]
    assert sqlite_link.query("SELECT id, sku FROM items", FETCH_NUM).result == [[1, "A"]]
    assert sqlite_link.query("SELECT sku FROM items", FETCH_OBJECT).result[0].sku == "A"


def test_fetch_fields_are_described(sqlite_link):
    sqlite_link.query("INSERT INTO items (sku) VALUES ('A')")
    outcome = sqlite_link.query("SELECT sku FROM items", options={"fetch_fields": True})
    assert [field["name"] for field in outcome.fetched_fields] == ["sku"]


def test_query_error_keeps_the_connection(sqlite_link):
    outcome = sqlite_link.query("SELEKT 1")
    assert not outcome.ok
    assert outcome.message.startswith("[DatabaseLink] MySQL Query Error:")
    assert sqlite_link.connected
    assert sqlite_link.query("SELECT 1 AS one").result == [{"one": 1}]


def test_statements_keep_literal_percent_signs(sqlite_link):
    sqlite_link.query("INSERT INTO items (sku) VALUES ('100%')")
    assert sqlite_link.query("SELECT sku FROM items WHERE sku LIKE '%\\%%' ESCAPE '\\'").result == [{"sku": "100%"}]
