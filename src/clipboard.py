"""
clipboard.py — Writes text to the Windows clipboard via user32/kernel32.

Windows only; copy_text() returns False elsewhere or when the clipboard
is held by another process.
"""

import ctypes
import logging
import sys

logger = logging.getLogger("clipboard")

# ─── Windows API constants ────────────────────────
CF_UNICODETEXT = 13
GMEM_MOVEABLE = 0x0002


def _bindings():
    import ctypes.wintypes as wt

    user32 = ctypes.windll.user32
    kernel32 = ctypes.windll.kernel32

    user32.OpenClipboard.argtypes = [wt.HWND]
    user32.OpenClipboard.restype = wt.BOOL
    user32.CloseClipboard.restype = wt.BOOL
    user32.EmptyClipboard.restype = wt.BOOL
    user32.SetClipboardData.argtypes = [wt.UINT, wt.HANDLE]
    user32.SetClipboardData.restype = wt.HANDLE
    kernel32.GlobalAlloc.argtypes = [wt.UINT, ctypes.c_size_t]
    kernel32.GlobalAlloc.restype = wt.HANDLE
    kernel32.GlobalLock.argtypes = [wt.HANDLE]
    kernel32.GlobalLock.restype = ctypes.c_void_p
    kernel32.GlobalUnlock.argtypes = [wt.HANDLE]
    kernel32.GlobalUnlock.restype = wt.BOOL
    return user32, kernel32


def copy_text(text: str) -> bool:
    """Replace the clipboard contents with `text`. True on success."""
    if sys.platform != "win32":
        logger.debug("Clipboard copy is only supported on Windows")
        return False

    user32, kernel32 = _bindings()
    if not user32.OpenClipboard(None):
        logger.warning("Clipboard is busy, copy skipped")
        return False
    try:
        user32.EmptyClipboard()
        encoded = text.encode("utf-16-le") + b"\x00\x00"
        handle = kernel32.GlobalAlloc(GMEM_MOVEABLE, len(encoded))
        if not handle:
            return False
        ptr = kernel32.GlobalLock(handle)
        if not ptr:
            return False
        try:
            ctypes.memmove(ptr, encoded, len(encoded))
        finally:
            kernel32.GlobalUnlock(handle)
        return bool(user32.SetClipboardData(CF_UNICODETEXT, handle))
    finally:
        user32.CloseClipboard()
