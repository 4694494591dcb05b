"""
mumble.py — Reads the GW2 MumbleLink shared memory block.

No API key needed; the game updates the block every frame while running.
Windows only — elsewhere read_position() always returns None.

Layout (Mumble LinkedMem, wchar_t = 2 bytes):
  0    uint32  uiVersion
  4    uint32  uiTick
  8    float[3] fAvatarPosition
  ...
  1104 uint32  context_len
  1108 byte[256] context   (GW2: mapId at +28)
"""

import logging
import mmap
import struct
import sys
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

LINK_NAME = "MumbleLink"
LINK_SIZE = 5460

_HEADER = struct.Struct("<II3f")         # uiVersion, uiTick, avatar position
_CONTEXT_OFFSET = 1108
_MAP_ID = struct.Struct("<I")
_MAP_ID_OFFSET = _CONTEXT_OFFSET + 28


@dataclass
class MumblePosition:
    map_id: int
    x: float
    y: float
    z: float

    def to_dict(self) -> dict:
        return {
            "available": True,
            "mapId": self.map_id,
            "position": {"x": self.x, "y": self.y, "z": self.z},
        }


def parse_link(buf: bytes) -> Optional[MumblePosition]:
    """Parse a raw LinkedMem snapshot. None if the game hasn't populated it
    yet or the character isn't in a map (loading screen, character select)."""
    if len(buf) < _MAP_ID_OFFSET + _MAP_ID.size:
        return None

    version, _tick, x, y, z = _HEADER.unpack_from(buf, 0)
    if version == 0:
        return None

    (map_id,) = _MAP_ID.unpack_from(buf, _MAP_ID_OFFSET)
    if map_id == 0:
        return None

    return MumblePosition(map_id=map_id, x=x, y=y, z=z)


def read_position() -> Optional[MumblePosition]:
    """Snapshot the shared memory block and parse it."""
    if sys.platform != "win32":
        return None
    try:
        with mmap.mmap(-1, LINK_SIZE, tagname=LINK_NAME, access=mmap.ACCESS_READ) as link:
            buf = link[:]
    except OSError as e:
        logger.debug(f"MumbleLink unavailable: {e}")
        return None
    return parse_link(buf)


def is_available() -> bool:
    return read_position() is not None
