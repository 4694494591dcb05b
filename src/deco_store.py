"""
deco_store.py — Crash-safe persistence for the decoration database.

save():
  1. Write JSON to <file>.tmp in the same directory, fsync
  2. Re-read and parse the temp file (never commit something we can't load)
  3. Commit: back up current file to <file>.bak, os.replace(tmp, file),
     drop the backup. If os.replace fails, fall back to copy-then-delete.
  4. The temp file is removed on every path.

load() never raises: missing, unreadable and corrupt files (including
pathologically nested JSON) all read as None.
"""

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from config import DECO_DB_FILE
from deco_db import DecorationDatabase

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """The database could not be written. The previous file is left intact."""


class DecorationStore:
    """Reads and atomically replaces the decoration database file."""

    def __init__(self, path: Path = DECO_DB_FILE):
        self.path = Path(path)

    @property
    def tmp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    @property
    def bak_path(self) -> Path:
        return self.path.with_name(self.path.name + ".bak")

    # ─── Write ───────────────────────────────────────

    def save(self, database: DecorationDatabase):
        """Persist `database`, replacing the current file atomically."""
        tmp = self.tmp_path
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._write_temp(tmp, database)
            self._verify(tmp)
            self._commit(tmp)
        except OSError as e:
            raise PersistenceError(f"Failed to save {self.path.name}: {e}") from e
        finally:
            _try_delete(tmp)

        logger.info(f"Decoration database saved: {len(database)} entries → {self.path}")

    @staticmethod
    def _write_temp(tmp: Path, database: DecorationDatabase):
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(database.to_dict(), f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())

    @staticmethod
    def _verify(tmp: Path):
        try:
            with open(tmp, "r", encoding="utf-8") as f:
                DecorationDatabase.from_dict(json.load(f))
        except (ValueError, KeyError, TypeError, RecursionError) as e:
            raise PersistenceError(f"Temp file failed verification: {e}") from e

    def _commit(self, tmp: Path):
        if not self.path.exists():
            os.replace(tmp, self.path)
            return

        bak = self.bak_path
        shutil.copy2(self.path, bak)
        try:
            os.replace(tmp, self.path)
        except OSError as e:
            # Copy-then-delete: a reader may briefly see a torn file, which
            # load() reports as "absent"
            logger.warning(f"Atomic replace failed ({e}), falling back to copy")
            try:
                shutil.copyfile(tmp, self.path)
            except OSError:
                os.replace(bak, self.path)
                raise
        _try_delete(bak)

    # ─── Read ────────────────────────────────────────

    def load(self) -> Optional[DecorationDatabase]:
        """Return the stored database, or None if missing or unreadable."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return DecorationDatabase.from_dict(data)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError, RecursionError) as e:
            logger.warning(f"Ignoring unreadable decoration database {self.path}: {e}")
            return None

    def exists(self) -> bool:
        return self.path.exists()


def _try_delete(path: Path):
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug(f"Could not delete {path}: {e}")
