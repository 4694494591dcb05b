"""Tests for deco_db.py — merge rules, rebuild decision, on-disk format."""

from datetime import datetime, timezone

import pytest

from deco_db import (
    DB_VERSION,
    CatalogSnapshot,
    DecorationDatabase,
    DecorationEntry,
    build_database,
    merge_records,
    needs_rebuild,
)
from gw2_catalog import CatalogRecord


def _g(id_, name):
    return CatalogRecord(id_, name, "Decoration")


def _h(id_, name):
    return CatalogRecord(id_, name)


def _db(guild_ids, homestead_ids, version=DB_VERSION):
    return DecorationDatabase(
        version=version,
        generated_at_utc=datetime(2026, 1, 1, tzinfo=timezone.utc),
        source_snapshot=CatalogSnapshot(frozenset(guild_ids), frozenset(homestead_ids)),
        decorations=[DecorationEntry("Chair", 20, 10)],
    )


# ── Merge ────────────────────────────────────────────────

def test_merge_joins_names_case_insensitively():
    entries = merge_records([_g(10, "Chair")], [_h(20, "chair")])
    assert entries == [DecorationEntry(name="Chair", homestead_id=20, guild_upgrade_id=10)]


def test_merge_trims_whitespace():
    entries = merge_records([_g(10, "  Chair ")], [_h(20, "CHAIR")])
    assert len(entries) == 1
    assert entries[0].name == "Chair"


def test_merge_keeps_first_seen_casing():
    # guild records are applied first, so their casing wins
    entries = merge_records([_g(10, "chair")], [_h(20, "Chair")])
    assert entries[0].name == "chair"


def test_same_catalog_collision_last_write_wins():
    entries = merge_records([_g(10, "Chair"), _g(11, "CHAIR")], [])
    assert entries == [DecorationEntry(name="Chair", guild_upgrade_id=11)]

    entries = merge_records([], [_h(20, "Lamp"), _h(21, "lamp")])
    assert entries == [DecorationEntry(name="Lamp", homestead_id=21)]


def test_merge_sorted_case_insensitively():
    entries = merge_records(
        [_g(1, "banner"), _g(2, "Zebra Rug")],
        [_h(3, "Anvil"), _h(4, "crate")],
    )
    assert [e.name for e in entries] == ["Anvil", "banner", "crate", "Zebra Rug"]


def test_every_entry_has_an_id():
    entries = merge_records(
        [_g(1, "A"), _g(2, "B"), _g(3, "shared")],
        [_h(4, "C"), _h(5, "Shared")],
    )
    assert all(e.homestead_id is not None or e.guild_upgrade_id is not None
               for e in entries)


def test_merge_ids_independent_of_catalog_order():
    guild = [_g(1, "Chair"), _g(2, "Lamp"), _g(3, "Rug")]
    homestead = [_h(7, "lamp"), _h(8, "Stool")]

    forward = merge_records(guild, homestead)

    # Fold in the opposite order by hand and compare id assignments
    by_name = {}
    for h in homestead:
        by_name.setdefault(h.name.strip().casefold(), {})["homestead"] = h.id
    for g in guild:
        by_name.setdefault(g.name.strip().casefold(), {})["guild"] = g.id

    assert {e.name.casefold(): (e.homestead_id, e.guild_upgrade_id) for e in forward} == {
        k: (v.get("homestead"), v.get("guild")) for k, v in by_name.items()
    }


def test_merge_is_stable_across_runs():
    guild = [_g(10, "Chair")]
    homestead = [_h(20, "chair")]
    assert merge_records(guild, homestead) == merge_records(guild, homestead)


def test_build_database_records_snapshot():
    db = build_database([_g(10, "Chair")], [_h(20, "chair")], {10, 99}, {20})
    assert db.version == DB_VERSION
    assert db.source_snapshot.guild_upgrade_ids == frozenset({10, 99})
    assert db.source_snapshot.homestead_decoration_ids == frozenset({20})
    assert db.generated_at_utc.tzinfo is not None
    assert len(db) == 1


# ── Rebuild decision ─────────────────────────────────────

def test_needs_rebuild_without_existing_db():
    assert needs_rebuild(None, {1}, {2}) is True


def test_needs_rebuild_on_version_change():
    assert needs_rebuild(_db({1}, {2}, version=DB_VERSION + 1), {1}, {2}) is True


def test_no_rebuild_when_sets_equal():
    assert needs_rebuild(_db({1, 2}, {3}), [2, 1, 1], {3}) is False


@pytest.mark.parametrize("guild, homestead", [
    ({1, 2, 5}, {3}),     # new guild id
    ({1}, {3}),           # removed guild id (subset is not enough)
    ({1, 2}, {3, 4}),     # new homestead id
    ({1, 2}, set()),      # homestead emptied
])
def test_needs_rebuild_on_drift(guild, homestead):
    assert needs_rebuild(_db({1, 2}, {3}), guild, homestead) is True


# ── Format ───────────────────────────────────────────────

def test_to_dict_uses_wire_names():
    data = _db({2, 1}, {3}).to_dict()
    assert set(data) == {"version", "generatedAtUtc", "sourceSnapshot", "decorations"}
    assert data["sourceSnapshot"] == {"guildUpgradeIds": [1, 2], "homesteadDecorationIds": [3]}
    assert data["decorations"] == [{"name": "Chair", "homesteadId": 20, "guildUpgradeId": 10}]


def test_from_dict_reads_what_to_dict_writes():
    db = _db({1, 2}, {3})
    assert DecorationDatabase.from_dict(db.to_dict()) == db


@pytest.mark.parametrize("mutate", [
    lambda d: d.pop("version"),
    lambda d: d.update(version="1"),
    lambda d: d.update(generatedAtUtc="yesterday"),
    lambda d: d.update(decorations={"name": "Chair"}),
    lambda d: d["decorations"].append({"name": "Ghost"}),
    lambda d: d["sourceSnapshot"].update(guildUpgradeIds=["x"]),
])
def test_from_dict_rejects_bad_shapes(mutate):
    data = _db({1}, {2}).to_dict()
    mutate(data)
    with pytest.raises((KeyError, TypeError, ValueError)):
        DecorationDatabase.from_dict(data)
