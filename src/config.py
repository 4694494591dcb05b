"""
Deco Tools Helper - Configuration
All tunable constants in one place.
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

IS_FROZEN = getattr(sys, "frozen", False)
APP_DIR = Path(sys._MEIPASS) if IS_FROZEN else Path(__file__).resolve().parent.parent

# ─────────────────────────────────────────────
# Version
# ─────────────────────────────────────────────
APP_NAME = "GW2 Deco Tools Helper"
_version_file = APP_DIR / "resources" / "VERSION"
APP_VERSION = _version_file.read_text().strip() if _version_file.exists() else "dev"

# ─────────────────────────────────────────────
# Local storage
# ─────────────────────────────────────────────
DATA_DIR = Path(os.environ.get(
    "DECOTOOLS_DATA_DIR",
    Path(os.path.expanduser("~")) / ".decotools-helper",
))

# Merged decoration database (read by the local server on every request)
DECO_DB_FILE = DATA_DIR / "decorations.db.json"

# User settings (API key, default save paths)
SETTINGS_FILE = DATA_DIR / "config.json"

# Where the game expects decoration XML files by default
GW2_DOCUMENTS_DIR = Path(os.path.expanduser("~")) / "Documents" / "Guild Wars 2"

# ─────────────────────────────────────────────
# GW2 API
# ─────────────────────────────────────────────
GW2_API_BASE = "https://api.guildwars2.com"
GUILD_UPGRADES_URL = f"{GW2_API_BASE}/v2/guild/upgrades"
HOMESTEAD_DECORATIONS_URL = f"{GW2_API_BASE}/v2/homestead/decorations"

CATALOG_BATCH_SIZE = 50  # max ids per ?ids= request

HTTP_TIMEOUT = 30  # seconds
USER_AGENT = f"DecoToolsHelper/{APP_VERSION}"

# ─────────────────────────────────────────────
# Local server
# ─────────────────────────────────────────────
SERVER_HOST = "127.0.0.1"
SERVER_PORT = int(os.environ.get("DECOTOOLS_PORT", "61337"))

# ─────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────
LOG_LEVEL = os.environ.get("DECOTOOLS_LOG_LEVEL", "INFO")
LOG_FILE = DATA_DIR / "helper.log"
