"""
gw2_catalog.py — Fetches the two public decoration catalogs.

  /v2/guild/upgrades            → guild hall upgrades (only type "Decoration" kept)
  /v2/homestead/decorations     → homestead decorations

Each catalog is read in two steps: the bare id list, then metadata for
those ids in batches of CATALOG_BATCH_SIZE via ?ids=1,2,3.
A failed request anywhere fails the whole fetch — no partial results.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Set

import requests

from config import (
    CATALOG_BATCH_SIZE,
    GUILD_UPGRADES_URL,
    HOMESTEAD_DECORATIONS_URL,
    USER_AGENT,
)
from gw2_api import MalformedPayloadError, get_json

logger = logging.getLogger(__name__)


class BuildCancelled(Exception):
    """Raised when a cancellation signal is observed mid-fetch."""


def check_cancelled(cancel: Optional[threading.Event]):
    if cancel is not None and cancel.is_set():
        raise BuildCancelled("Build cancelled")


@dataclass(frozen=True)
class Catalog:
    """A remote id catalog and the record filter that applies to it."""
    key: str
    base_url: str
    required_type: Optional[str] = None   # records with another "type" are dropped


GUILD_UPGRADES = Catalog("guild", GUILD_UPGRADES_URL, required_type="Decoration")
HOMESTEAD_DECORATIONS = Catalog("homestead", HOMESTEAD_DECORATIONS_URL)


@dataclass(frozen=True)
class CatalogRecord:
    id: int
    name: str
    type: str = ""


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def batched(ids: Iterable[int], size: int = CATALOG_BATCH_SIZE) -> Iterator[List[int]]:
    """Yield consecutive chunks of at most `size` ids, preserving order."""
    batch = []
    for id_ in ids:
        batch.append(id_)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


class CatalogClient:
    """Reads id lists and record metadata from the GW2 catalogs."""

    def __init__(self, session: Optional[requests.Session] = None,
                 batch_size: int = CATALOG_BATCH_SIZE):
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT})
        self.batch_size = min(batch_size, CATALOG_BATCH_SIZE)

    # ─── Id lists ────────────────────────────────────

    def fetch_ids(self, catalog: Catalog) -> Set[int]:
        """Return every positive id currently listed by the catalog."""
        data = get_json(self._session, catalog.base_url)
        if not isinstance(data, list):
            raise MalformedPayloadError(
                f"{catalog.key} id list: expected a list, got {type(data).__name__}")

        ids = set()
        for value in data:
            if not _is_int(value):
                raise MalformedPayloadError(
                    f"{catalog.key} id list: non-integer id {value!r}")
            if value > 0:
                ids.add(value)

        logger.info(f"{catalog.key} catalog: {len(ids)} ids")
        return ids

    # ─── Metadata ────────────────────────────────────

    def fetch_records(self, catalog: Catalog, ids: Iterable[int],
                      cancel: Optional[threading.Event] = None) -> List[CatalogRecord]:
        """Fetch metadata for `ids` in bounded batches and filter the results."""
        ordered = sorted(ids)
        records: List[CatalogRecord] = []
        total_batches = (len(ordered) + self.batch_size - 1) // self.batch_size

        for n, batch in enumerate(batched(ordered, self.batch_size), 1):
            check_cancelled(cancel)
            data = get_json(
                self._session, catalog.base_url,
                params={"ids": ",".join(str(i) for i in batch)},
            )
            if not isinstance(data, list):
                raise MalformedPayloadError(
                    f"{catalog.key} batch {n}: expected a list, got {type(data).__name__}")

            kept = [r for r in (self._parse_record(catalog, raw) for raw in data) if r]
            records.extend(kept)
            logger.debug(f"  {catalog.key} batch {n}/{total_batches}: "
                         f"{len(kept)}/{len(batch)} records kept")

        logger.info(f"{catalog.key} catalog: {len(records)} decorations")
        return records

    @staticmethod
    def _parse_record(catalog: Catalog, raw) -> Optional[CatalogRecord]:
        """Turn one API object into a CatalogRecord, or None if filtered out."""
        if not isinstance(raw, dict):
            raise MalformedPayloadError(
                f"{catalog.key}: expected record object, got {type(raw).__name__}")

        id_ = raw.get("id")
        if not _is_int(id_) or id_ <= 0:
            return None

        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            return None

        rec_type = raw.get("type") or ""
        if not isinstance(rec_type, str):
            rec_type = ""
        if catalog.required_type is not None:
            if rec_type.casefold() != catalog.required_type.casefold():
                return None

        return CatalogRecord(id=id_, name=name, type=rec_type)
