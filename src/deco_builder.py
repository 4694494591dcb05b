"""
deco_builder.py — Keeps the local decoration database in sync with the GW2 API.

Build sequence (at most one per process):
    fetch id lists → load stored db → ids unchanged? → done (skipped)
                                    → fetch metadata (both catalogs in parallel)
                                      → merge → atomic save → done

Every failure ends as a BuildResult(success=False); the stored database
is only ever replaced by a complete, verified file.

Usage:
    builder = DecorationBuilder()
    builder.start_background()          # fire-and-forget at startup
    db = builder.try_load()             # per-request read
"""

import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from contextlib import contextmanager
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Callable, Iterator, Optional

from deco_db import DecorationDatabase, build_database, needs_rebuild
from deco_store import DecorationStore
from gw2_catalog import (
    GUILD_UPGRADES,
    HOMESTEAD_DECORATIONS,
    BuildCancelled,
    CatalogClient,
    check_cancelled,
)

logger = logging.getLogger(__name__)

ProgressFn = Callable[[str], None]


class BuildState(Enum):
    IDLE = "idle"
    BUILDING = "building"
    DONE = "done"


@dataclass
class BuildResult:
    success: bool
    skipped: bool = False
    deferred: bool = False      # another build was already running
    total_entries: int = 0
    error: Optional[str] = None
    storage_path: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    def summary(self) -> str:
        if not self.success:
            return f"failed: {self.error}"
        if self.deferred:
            return "deferred (build already in progress)"
        if self.skipped:
            return f"up to date ({self.total_entries} entries)"
        return f"rebuilt ({self.total_entries} entries)"


class BuildLease:
    """Exclusive, non-blocking permit to run a build.

        with lease.hold() as acquired:
            if not acquired:
                return  # someone else is building
    """

    def __init__(self):
        self._lock = threading.Lock()

    @contextmanager
    def hold(self) -> Iterator[bool]:
        acquired = self._lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._lock.release()

    @property
    def held(self) -> bool:
        return self._lock.locked()


class _FetchAbort:
    """Cancel signal for the metadata fetches: set by the caller's event
    or by set() when a sibling fetch has already failed."""

    def __init__(self, parent: Optional[threading.Event]):
        self._parent = parent
        self._aborted = threading.Event()

    def set(self):
        self._aborted.set()

    def is_set(self) -> bool:
        if self._aborted.is_set():
            return True
        return self._parent is not None and self._parent.is_set()


# One lease for the whole process so separate builders never write the same file at once
PROCESS_BUILD_LEASE = BuildLease()


class DecorationBuilder:
    """Coordinates fetch → decide → merge → persist for the decoration database."""

    def __init__(self, client: Optional[CatalogClient] = None,
                 store: Optional[DecorationStore] = None,
                 lease: BuildLease = PROCESS_BUILD_LEASE):
        self.client = client or CatalogClient()
        self.store = store or DecorationStore()
        self._lease = lease
        self._state_lock = threading.Lock()
        self._state = BuildState.IDLE
        self._last_result: Optional[BuildResult] = None

    # ─── State ───────────────────────────────────────

    @property
    def state(self) -> BuildState:
        with self._state_lock:
            return self._state

    @property
    def last_result(self) -> Optional[BuildResult]:
        with self._state_lock:
            return self._last_result

    def get_status(self) -> dict:
        with self._state_lock:
            return {
                "state": self._state.value,
                "last_result": self._last_result.to_dict() if self._last_result else None,
            }

    def _set_state(self, state: BuildState, result: Optional[BuildResult] = None):
        with self._state_lock:
            self._state = state
            if result is not None:
                self._last_result = result

    # ─── Public API ──────────────────────────────────

    def try_load(self) -> Optional[DecorationDatabase]:
        return self.store.load()

    def ensure_up_to_date(self, progress: Optional[ProgressFn] = None,
                          cancel: Optional[threading.Event] = None) -> BuildResult:
        """Rebuild the database if the remote catalogs changed. Never raises."""
        with self._lease.hold() as acquired:
            if not acquired:
                logger.info("Decoration build already in progress, request deferred")
                return BuildResult(success=True, skipped=True, deferred=True,
                                   storage_path=str(self.store.path))

            self._set_state(BuildState.BUILDING)
            try:
                result = self._build(progress, cancel)
            except BuildCancelled:
                logger.info("Decoration build cancelled")
                result = self._failure("Build cancelled")
            except Exception as e:
                logger.warning(f"Decoration build failed: {e}", exc_info=True)
                result = self._failure(str(e) or type(e).__name__)
            self._set_state(BuildState.DONE, result)
            return result

    def start_background(self, progress: Optional[ProgressFn] = None,
                         cancel: Optional[threading.Event] = None,
                         on_done: Optional[Callable[[BuildResult], None]] = None
                         ) -> threading.Thread:
        """Run ensure_up_to_date() on a daemon thread and log its result."""
        def _run():
            result = self.ensure_up_to_date(progress=progress, cancel=cancel)
            if result.success:
                logger.info(f"Decoration database {result.summary()}")
            else:
                logger.warning(f"Decoration database {result.summary()}")
            if on_done:
                try:
                    on_done(result)
                except Exception as e:
                    logger.warning(f"Build completion callback failed: {e}")

        t = threading.Thread(target=_run, name="deco-builder", daemon=True)
        t.start()
        return t

    # ─── Build ───────────────────────────────────────

    def _build(self, progress: Optional[ProgressFn],
               cancel: Optional[threading.Event]) -> BuildResult:
        def report(message: str):
            logger.debug(message)
            if progress:
                progress(message)

        check_cancelled(cancel)
        report("Fetching ID lists…")
        guild_ids = self.client.fetch_ids(GUILD_UPGRADES)
        check_cancelled(cancel)
        homestead_ids = self.client.fetch_ids(HOMESTEAD_DECORATIONS)
        check_cancelled(cancel)

        report("Loading existing database…")
        existing = self.store.load()

        if not needs_rebuild(existing, guild_ids, homestead_ids):
            return BuildResult(success=True, skipped=True,
                               total_entries=len(existing),
                               storage_path=str(self.store.path))

        report("Fetching decoration metadata…")
        abort = _FetchAbort(cancel)
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="deco-fetch") as pool:
            futures = [
                pool.submit(self.client.fetch_records, GUILD_UPGRADES, guild_ids, abort),
                pool.submit(self.client.fetch_records,
                            HOMESTEAD_DECORATIONS, homestead_ids, abort),
            ]
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            failed = [f for f in futures if f in done and f.exception() is not None]
            if failed:
                # Stop the other catalog at its next batch
                abort.set()
                raise failed[0].exception()
            guild_records, homestead_records = (f.result() for f in futures)
        check_cancelled(cancel)

        report("Merging database…")
        db = build_database(guild_records, homestead_records, guild_ids, homestead_ids)
        check_cancelled(cancel)

        report("Saving database…")
        self.store.save(db)

        return BuildResult(success=True, skipped=False,
                           total_entries=len(db),
                           storage_path=str(self.store.path))

    def _failure(self, error: str) -> BuildResult:
        return BuildResult(success=False, error=error,
                           storage_path=str(self.store.path))


# ─── Module-level convenience ────────────────────

_default_builder: Optional[DecorationBuilder] = None
_default_lock = threading.Lock()


def get_builder() -> DecorationBuilder:
    """Return the process-wide default builder (created on first use)."""
    global _default_builder
    with _default_lock:
        if _default_builder is None:
            _default_builder = DecorationBuilder()
        return _default_builder


def ensure_up_to_date(progress: Optional[ProgressFn] = None,
                      cancel: Optional[threading.Event] = None) -> BuildResult:
    return get_builder().ensure_up_to_date(progress=progress, cancel=cancel)


def try_load() -> Optional[DecorationDatabase]:
    return get_builder().try_load()
