"""
tray.py -- System tray icon for the Deco Tools helper.

Uses pystray with run_detached() so the main thread stays free to wait
for shutdown.  All callbacks run on pystray's background thread.
"""

import logging

from config import APP_DIR, APP_NAME

logger = logging.getLogger("tray")


class TrayIcon:
    """Pystray wrapper with a rebuild-aware menu."""

    def __init__(self, on_open, on_copy_url, on_rebuild, on_quit, get_build_state):
        self._on_open = on_open
        self._on_copy_url = on_copy_url
        self._on_rebuild = on_rebuild
        self._on_quit = on_quit
        self._get_build_state = get_build_state
        self._icon = None

    # ------------------------------------------------------------------
    def start(self) -> bool:
        """Create and start the tray icon (non-blocking). False if unavailable."""
        try:
            import pystray
            from PIL import Image
        except ImportError:
            logger.warning("pystray/Pillow not installed -- tray icon disabled")
            return False

        icon_path = APP_DIR / "resources" / "tray.png"
        try:
            image = Image.open(str(icon_path)).resize((64, 64), Image.LANCZOS)
        except Exception:
            # Fallback: solid teal square
            image = Image.new("RGB", (64, 64), (40, 150, 140))

        def _rebuild_label(item):
            try:
                state = self._get_build_state()
            except Exception:
                state = "idle"
            return "Rebuilding Decorations…" if state == "building" else "Rebuild Decorations"

        def _rebuild_enabled(item):
            try:
                return self._get_build_state() != "building"
            except Exception:
                return True

        menu = pystray.Menu(
            pystray.MenuItem("Open Status Page", lambda icon, item: self._on_open(),
                             default=True),
            pystray.MenuItem("Copy Local URL", lambda icon, item: self._on_copy_url()),
            pystray.MenuItem(_rebuild_label, lambda icon, item: self._on_rebuild(),
                             enabled=_rebuild_enabled),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Exit", lambda icon, item: self._on_quit()),
        )

        try:
            self._icon = pystray.Icon("DecoToolsHelper", image, APP_NAME, menu)
            self._icon.run_detached()
        except Exception as e:
            logger.warning(f"Tray icon failed to start: {e}")
            self._icon = None
            return False
        logger.info("Tray icon started")
        return True

    # ------------------------------------------------------------------
    def stop(self):
        """Remove the tray icon."""
        if self._icon:
            try:
                self._icon.stop()
            except Exception as e:
                logger.debug(f"Tray icon stop failed: {e}")
            self._icon = None

    # ------------------------------------------------------------------
    def update_tooltip(self, text):
        """Update the hover tooltip text."""
        if self._icon:
            self._icon.title = text
