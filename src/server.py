"""
server.py — Local HTTP server used by the Deco Tools web UI.

Listens on 127.0.0.1 only. Proxies a small, explicit set of GW2 API
endpoints with the user's API key, exposes live MumbleLink data, and
serves the merged decoration database.

Endpoints:
  GET    /status              → helper state, API key present, Mumble, save paths, db build
  POST   /config/apikey       → store the GW2 API key
  DELETE /config/apikey       → forget the stored API key
  GET    /decos/homestead     → {decoration_id: count} for the account
  GET    /guilds              → [{id, name, tag}] for the account's guilds
  POST   /decos/guild/{guild} → {upgrade_id: count} for requested ids only
  GET    /mumble              → map id + avatar position
  GET    /decos/database      → merged decoration database (503 until built)
  POST   /decos/rebuild       → trigger a background database rebuild
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import mumble
from config import APP_VERSION, SETTINGS_FILE
from deco_builder import BuildState, DecorationBuilder, get_builder
from gw2_api import Gw2ApiClient, Gw2ApiError, MalformedPayloadError, TransportError
from helper_settings import default_save_path, has_api_key, load_settings, save_settings

logger = logging.getLogger("server")

# ---------------------------------------------------------------------------
# Collaborators (module globals so tests can swap them)
# ---------------------------------------------------------------------------
SETTINGS_PATH = SETTINGS_FILE
gw2_client = Gw2ApiClient()
deco_builder: Optional[DecorationBuilder] = None

# Browser tools are served from file:// (Origin: null) or a localhost dev server
ALLOWED_ORIGINS = r"^(null|http://(localhost|127\.0\.0\.1)(:\d+)?)$"


def _builder() -> DecorationBuilder:
    global deco_builder
    if deco_builder is None:
        deco_builder = get_builder()
    return deco_builder


def _api_key() -> Optional[str]:
    settings = load_settings(SETTINGS_PATH)
    if not has_api_key(settings):
        return None
    return settings["api_key"].strip()


def _no_key_response() -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "API key not configured"})


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Kick off the decoration database check without delaying startup."""
    _builder().start_background()
    logger.info("Deco Tools helper server ready")
    yield


app = FastAPI(title="Deco Tools Helper", version=APP_VERSION, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(Gw2ApiError)
async def gw2_error_handler(request: Request, exc: Gw2ApiError):
    logger.warning(f"{request.url.path}: {exc}")
    if isinstance(exc, TransportError) and exc.status_code in (401, 403):
        return JSONResponse(status_code=401,
                            content={"error": "API key rejected", "detail": str(exc)})
    return JSONResponse(status_code=502,
                        content={"error": "GW2 API request failed", "detail": str(exc)})


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------
class ApiKeyRequest(BaseModel):
    apiKey: Optional[str] = None


class GuildIdRequest(BaseModel):
    ids: List[int] = []


# ---------------------------------------------------------------------------
# Status / config
# ---------------------------------------------------------------------------
@app.get("/status")
def get_status():
    builder = _builder()
    settings = load_settings(SETTINGS_PATH)
    return {
        "running": True,
        "version": APP_VERSION,
        "apiKeyPresent": has_api_key(settings),
        "mumbleAvailable": mumble.is_available(),
        "savePaths": {
            "homestead": str(default_save_path(settings, "homestead")),
            "guildHall": str(default_save_path(settings, "guild_hall")),
        },
        "decorations": {
            **builder.get_status(),
            "ready": builder.try_load() is not None,
        },
    }


@app.post("/config/apikey")
def set_api_key(req: ApiKeyRequest):
    key = (req.apiKey or "").strip()
    if not key:
        return JSONResponse(status_code=400,
                            content={"success": False, "error": "Invalid API key"})
    settings = load_settings(SETTINGS_PATH)
    settings["api_key"] = key
    save_settings(settings, SETTINGS_PATH)
    logger.info("API key updated")
    return {"success": True}


@app.delete("/config/apikey")
def remove_api_key():
    settings = load_settings(SETTINGS_PATH)
    settings["api_key"] = ""
    save_settings(settings, SETTINGS_PATH)
    logger.info("API key removed")
    return {"success": True}


# ---------------------------------------------------------------------------
# Account data (API key required)
# ---------------------------------------------------------------------------
def _count_map(items: list, what: str) -> dict:
    """[{id, count}, ...] → {"id": count}"""
    out = {}
    for item in items:
        if not isinstance(item, dict) or "id" not in item:
            raise MalformedPayloadError(f"{what}: unexpected entry {item!r}")
        out[str(item["id"])] = item.get("count", 0)
    return out


@app.get("/decos/homestead")
def get_homestead_decorations():
    key = _api_key()
    if key is None:
        return _no_key_response()
    items = gw2_client.get_list("/v2/account/homestead/decorations", key)
    return _count_map(items, "homestead decorations")


@app.get("/guilds")
def get_guilds():
    key = _api_key()
    if key is None:
        return _no_key_response()

    account = gw2_client.get_object("/v2/account", key)
    result = []
    for guild_id in account.get("guilds", []):
        guild = gw2_client.get_object(f"/v2/guild/{quote(str(guild_id), safe='')}", key)
        result.append({
            "id": guild.get("id", guild_id),
            "name": guild.get("name", ""),
            "tag": guild.get("tag", ""),
        })
    return result


@app.post("/decos/guild/{guild_id}")
def get_guild_decorations(guild_id: str, req: GuildIdRequest):
    """Counts for the requested upgrade ids only — never a bulk storage scan."""
    key = _api_key()
    if key is None:
        return _no_key_response()
    if not req.ids:
        return JSONResponse(status_code=400, content={"error": "No IDs provided"})

    storage = gw2_client.get_list(
        f"/v2/guild/{quote(guild_id, safe='')}/storage", key,
        params={"ids": ",".join(str(i) for i in req.ids)},
    )
    result = {str(i): 0 for i in req.ids}
    result.update(_count_map(storage, "guild storage"))
    return result


# ---------------------------------------------------------------------------
# MumbleLink
# ---------------------------------------------------------------------------
@app.get("/mumble")
def get_mumble():
    pos = mumble.read_position()
    if pos is None:
        return {"available": False}
    return pos.to_dict()


# ---------------------------------------------------------------------------
# Decoration database
# ---------------------------------------------------------------------------
@app.get("/decos/database")
def get_decoration_database():
    db = _builder().try_load()
    if db is None:
        # Distinct from an empty list: the database simply hasn't been built yet
        return JSONResponse(status_code=503, content={
            "ready": False,
            "error": "Decoration database not ready",
            "build": _builder().get_status(),
        })
    return {"ready": True, **db.to_dict()}


@app.post("/decos/rebuild")
def rebuild_decoration_database():
    builder = _builder()
    if builder.state == BuildState.BUILDING:
        return JSONResponse(status_code=202, content={"started": False})
    builder.start_background()
    return JSONResponse(status_code=202, content={"started": True})
