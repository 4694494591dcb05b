"""
Deco Tools Helper - Decoration Database

The merged, name-keyed view of both decoration catalogs:

  Chair  →  homestead_id=20, guild_upgrade_id=10

Names are matched trimmed and case-insensitively. The first record seen
for a name fixes its display casing; a later record from the SAME catalog
with the same name overwrites that catalog's id (last write wins).

On-disk format (JSON):
{
  "version": 1,
  "generatedAtUtc": "2026-01-01T12:00:00+00:00",
  "sourceSnapshot": {"guildUpgradeIds": [...], "homesteadDecorationIds": [...]},
  "decorations": [{"name": "Chair", "homesteadId": 20, "guildUpgradeId": 10}, ...]
}
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Iterable, List, Optional

from gw2_catalog import CatalogRecord

# Bump when the on-disk format changes; forces a rebuild on next start
DB_VERSION = 1


def normalize_name(name: str) -> str:
    return name.strip().casefold()


@dataclass(frozen=True)
class CatalogSnapshot:
    """Catalog ids observed at build time, used to detect drift."""
    guild_upgrade_ids: FrozenSet[int] = frozenset()
    homestead_decoration_ids: FrozenSet[int] = frozenset()

    def to_dict(self) -> dict:
        return {
            "guildUpgradeIds": sorted(self.guild_upgrade_ids),
            "homesteadDecorationIds": sorted(self.homestead_decoration_ids),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CatalogSnapshot":
        return cls(
            guild_upgrade_ids=_int_set(data.get("guildUpgradeIds", [])),
            homestead_decoration_ids=_int_set(data.get("homesteadDecorationIds", [])),
        )


@dataclass
class DecorationEntry:
    name: str
    homestead_id: Optional[int] = None
    guild_upgrade_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "homesteadId": self.homestead_id,
            "guildUpgradeId": self.guild_upgrade_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DecorationEntry":
        name = data["name"]
        if not isinstance(name, str):
            raise ValueError(f"decoration name must be a string: {name!r}")
        entry = cls(
            name=name,
            homestead_id=_optional_int(data.get("homesteadId")),
            guild_upgrade_id=_optional_int(data.get("guildUpgradeId")),
        )
        if entry.homestead_id is None and entry.guild_upgrade_id is None:
            raise ValueError(f"decoration {name!r} has no ids")
        return entry


@dataclass
class DecorationDatabase:
    version: int
    generated_at_utc: datetime
    source_snapshot: CatalogSnapshot = field(default_factory=CatalogSnapshot)
    decorations: List[DecorationEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.decorations)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "generatedAtUtc": self.generated_at_utc.isoformat(),
            "sourceSnapshot": self.source_snapshot.to_dict(),
            "decorations": [e.to_dict() for e in self.decorations],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DecorationDatabase":
        """Parse the on-disk format. Raises KeyError/TypeError/ValueError on bad input."""
        if not isinstance(data, dict):
            raise TypeError("database root must be an object")

        version = data["version"]
        if not isinstance(version, int) or isinstance(version, bool):
            raise ValueError(f"bad version: {version!r}")

        generated = datetime.fromisoformat(data["generatedAtUtc"])
        if generated.tzinfo is None:
            generated = generated.replace(tzinfo=timezone.utc)

        decorations = data["decorations"]
        if not isinstance(decorations, list):
            raise TypeError("decorations must be a list")

        return cls(
            version=version,
            generated_at_utc=generated,
            source_snapshot=CatalogSnapshot.from_dict(data["sourceSnapshot"]),
            decorations=[DecorationEntry.from_dict(d) for d in decorations],
        )


def _int_set(values) -> FrozenSet[int]:
    if not isinstance(values, list):
        raise TypeError("id set must be a list")
    out = set()
    for v in values:
        if not isinstance(v, int) or isinstance(v, bool):
            raise ValueError(f"bad id: {v!r}")
        out.add(v)
    return frozenset(out)


def _optional_int(value) -> Optional[int]:
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"bad id: {value!r}")
    return value


# ─── Merge ───────────────────────────────────────

def merge_records(guild_records: Iterable[CatalogRecord],
                  homestead_records: Iterable[CatalogRecord]) -> List[DecorationEntry]:
    """Fold both catalogs into one entry per normalized name, sorted by name."""
    by_name: Dict[str, DecorationEntry] = {}

    def _upsert(record: CatalogRecord) -> DecorationEntry:
        name = record.name.strip()
        key = normalize_name(name)
        entry = by_name.get(key)
        if entry is None:
            entry = DecorationEntry(name=name)
            by_name[key] = entry
        return entry

    for g in guild_records:
        _upsert(g).guild_upgrade_id = g.id

    for h in homestead_records:
        _upsert(h).homestead_id = h.id

    return [by_name[k] for k in sorted(by_name)]


def build_database(guild_records: Iterable[CatalogRecord],
                   homestead_records: Iterable[CatalogRecord],
                   guild_ids: Iterable[int],
                   homestead_ids: Iterable[int],
                   now: Optional[datetime] = None) -> DecorationDatabase:
    return DecorationDatabase(
        version=DB_VERSION,
        generated_at_utc=now or datetime.now(timezone.utc),
        source_snapshot=CatalogSnapshot(
            guild_upgrade_ids=frozenset(guild_ids),
            homestead_decoration_ids=frozenset(homestead_ids),
        ),
        decorations=merge_records(guild_records, homestead_records),
    )


# ─── Rebuild decision ────────────────────────────

def needs_rebuild(existing: Optional[DecorationDatabase],
                  guild_ids: Iterable[int],
                  homestead_ids: Iterable[int]) -> bool:
    """True unless `existing` was built from exactly these id sets at DB_VERSION."""
    if existing is None:
        return True

    if existing.version != DB_VERSION:
        return True

    snapshot = existing.source_snapshot
    if frozenset(guild_ids) != snapshot.guild_upgrade_ids:
        return True

    if frozenset(homestead_ids) != snapshot.homestead_decoration_ids:
        return True

    return False
