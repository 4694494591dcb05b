"""
app.py — Desktop entry point for the GW2 Deco Tools helper.

Starts the local HTTP server in a background thread, puts an icon in the
system tray, and checks the decoration database in the background (the
server's startup hook does this, so startup never waits on the GW2 API).

Usage:
    python app.py                 # tray + server
    python app.py --no-tray       # headless, Ctrl+C to quit
    python app.py --debug         # verbose log file
"""

import argparse
import logging
import os
import sys
import threading
import webbrowser

# Ensure src/ is on sys.path so bare imports and uvicorn "server:app" work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import APP_NAME, APP_VERSION, LOG_FILE, LOG_LEVEL, SERVER_HOST, SERVER_PORT
from clipboard import copy_text
from deco_builder import get_builder
from helper_settings import has_api_key, load_settings
from tray import TrayIcon

logger = logging.getLogger("decotools")


def setup_logging(debug: bool = False):
    """Console gets INFO+, the log file gets DEBUG when --debug is used."""
    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    level = logging.DEBUG if debug else getattr(logging, LOG_LEVEL.upper(), logging.INFO)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter("%(asctime)s %(message)s", datefmt="%H:%M:%S"))

    file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(console)
    root_logger.addHandler(file_handler)


class HelperApp:
    """Owns the server thread, the tray icon and the shutdown signal."""

    def __init__(self, port: int = SERVER_PORT, use_tray: bool = True):
        self.port = port
        self.use_tray = use_tray
        self.builder = get_builder()
        self._shutdown = threading.Event()
        self._server = None
        self._tray = None

    @property
    def local_url(self) -> str:
        return f"http://{SERVER_HOST}:{self.port}"

    def start_server(self):
        """Run uvicorn on a daemon thread."""
        import uvicorn

        config = uvicorn.Config("server:app", host=SERVER_HOST, port=self.port,
                                log_level="warning")
        self._server = uvicorn.Server(config)
        threading.Thread(target=self._server.run, name="http-server", daemon=True).start()
        logger.info(f"Local server listening on {self.local_url}")

    def open_status(self):
        webbrowser.open(f"{self.local_url}/status")

    def copy_local_url(self):
        if copy_text(self.local_url):
            logger.info(f"Copied {self.local_url} to clipboard")

    def rebuild(self):
        self.builder.start_background(on_done=self._on_build_done)

    def _on_build_done(self, result):
        if self._tray:
            self._tray.update_tooltip(f"{APP_NAME}: decorations {result.summary()}")

    def quit(self):
        self._shutdown.set()

    def run(self):
        settings = load_settings()
        if not has_api_key(settings):
            logger.info("No GW2 API key configured yet, POST it to "
                        f"{self.local_url}/config/apikey")

        self.start_server()

        if self.use_tray:
            self._tray = TrayIcon(
                on_open=self.open_status,
                on_copy_url=self.copy_local_url,
                on_rebuild=self.rebuild,
                on_quit=self.quit,
                get_build_state=lambda: self.builder.state.value,
            )
            if not self._tray.start():
                self._tray = None

        try:
            while not self._shutdown.wait(0.5):
                pass
        except KeyboardInterrupt:
            pass
        finally:
            if self._tray:
                self._tray.stop()
            if self._server:
                self._server.should_exit = True
            logger.info("Goodbye!")


def main():
    parser = argparse.ArgumentParser(
        description=f"{APP_NAME} {APP_VERSION}",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=SERVER_PORT,
        help=f"Local server port (default: {SERVER_PORT})"
    )
    parser.add_argument(
        "--no-tray",
        action="store_true",
        help="Run without a system tray icon"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )
    args = parser.parse_args()

    setup_logging(debug=args.debug)

    try:
        HelperApp(port=args.port, use_tray=not args.no_tray).run()
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
