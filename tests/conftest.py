"""Shared fixtures for the Deco Tools helper test suite."""

import sys
import threading
from pathlib import Path

import pytest
import requests

# Ensure src/ is importable
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from deco_builder import BuildLease, DecorationBuilder
from deco_store import DecorationStore
from gw2_catalog import CatalogRecord


# ── Fake HTTP layer ──────────────────────────────────────

class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self._payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        if self.text is not None:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; routes (url, ids-param) to responses."""

    def __init__(self, routes=None):
        self.headers = {}
        self.routes = routes or {}
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers})
        handler = self.routes.get(url)
        if handler is None:
            raise requests.ConnectionError(f"no route for {url}")
        if callable(handler):
            return handler(params or {})
        return handler


# ── Fake catalog client ──────────────────────────────────

class FakeCatalogClient:
    """In-memory CatalogClient with call counters."""

    def __init__(self, guild=None, homestead=None):
        # catalog key → list[CatalogRecord]
        self.records = {
            "guild": list(guild or []),
            "homestead": list(homestead or []),
        }
        self.id_calls = 0
        self.record_calls = 0
        self.fail_ids = None       # exception to raise from fetch_ids
        self.fail_records = None   # exception to raise from fetch_records
        self.ids_gate = None       # threading.Event fetch_ids waits on
        self.ids_entered = threading.Event()

    def fetch_ids(self, catalog):
        self.id_calls += 1
        self.ids_entered.set()
        if self.ids_gate is not None:
            self.ids_gate.wait(5)
        if self.fail_ids:
            raise self.fail_ids
        return {r.id for r in self.records[catalog.key]}

    def fetch_records(self, catalog, ids, cancel=None):
        self.record_calls += 1
        if self.fail_records:
            raise self.fail_records
        wanted = set(ids)
        return [r for r in self.records[catalog.key] if r.id in wanted]


# ── Fixtures ─────────────────────────────────────────────

@pytest.fixture
def store(tmp_path):
    return DecorationStore(tmp_path / "decorations.db.json")


@pytest.fixture
def catalog_client():
    return FakeCatalogClient(
        guild=[
            CatalogRecord(10, "Chair", "Decoration"),
            CatalogRecord(11, "Lantern", "Decoration"),
        ],
        homestead=[
            CatalogRecord(20, "chair"),
            CatalogRecord(21, "Bookshelf"),
        ],
    )


@pytest.fixture
def builder(catalog_client, store):
    """Builder with its own lease so tests never contend with each other."""
    return DecorationBuilder(client=catalog_client, store=store, lease=BuildLease())
