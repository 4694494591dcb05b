"""Tests for app.py wiring (no server, no real tray)."""

import threading

import app
from deco_builder import BuildLease, DecorationBuilder


class FakeTray:
    def __init__(self):
        self.tooltips = []

    def update_tooltip(self, text):
        self.tooltips.append(text)


def _join_builder_threads():
    for t in threading.enumerate():
        if t.name == "deco-builder":
            t.join(5)


def test_rebuild_updates_tray_tooltip(monkeypatch, catalog_client, store):
    builder = DecorationBuilder(client=catalog_client, store=store, lease=BuildLease())
    monkeypatch.setattr(app, "get_builder", lambda: builder)

    helper = app.HelperApp(port=5555, use_tray=False)
    helper._tray = FakeTray()

    helper.rebuild()
    _join_builder_threads()

    assert store.load() is not None
    assert helper._tray.tooltips == [f"{app.APP_NAME}: decorations rebuilt (3 entries)"]


def test_rebuild_without_tray(monkeypatch, catalog_client, store):
    builder = DecorationBuilder(client=catalog_client, store=store, lease=BuildLease())
    monkeypatch.setattr(app, "get_builder", lambda: builder)

    helper = app.HelperApp(use_tray=False)
    helper.rebuild()
    _join_builder_threads()

    assert builder.last_result.success


def test_local_url_uses_port(monkeypatch):
    monkeypatch.setattr(app, "get_builder", lambda: None)
    assert app.HelperApp(port=5555).local_url == "http://127.0.0.1:5555"


def test_quit_sets_shutdown(monkeypatch):
    monkeypatch.setattr(app, "get_builder", lambda: None)
    helper = app.HelperApp()
    helper.quit()
    assert helper._shutdown.is_set()


def test_copy_local_url(monkeypatch):
    monkeypatch.setattr(app, "get_builder", lambda: None)
    copied = []
    monkeypatch.setattr(app, "copy_text", lambda text: copied.append(text) or True)

    app.HelperApp(port=5555).copy_local_url()

    assert copied == ["http://127.0.0.1:5555"]
