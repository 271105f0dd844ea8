"""Development server for Banana.

Serves the built site for local authoring:
- Logs every request with its status code coloured by class.
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Optionally watches the sources, rebuilds on change and tells open browser
  tabs to reload over a websocket.

Rebuilds render into a staging directory that is swapped into place once the
build succeeds, so a failed rebuild leaves the previous site being served.

Key classes:
- DevServer: Builds, serves and (optionally) watches a project.
- _ReloadHandler: HTTP request handler with access log and reload script.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import os
import threading
import time
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import click
import websockets

from .build import BuildResult, SiteBuilder
from .config import load_config
from .utils import remove_tree
from .watch import Watcher, watch, watch_targets

logger = logging.getLogger(__name__)


def status_colour(code: int) -> str:
    """Return the click colour for an HTTP status code."""
    if code >= 500:
        return "red"
    if code >= 400:
        return "yellow"
    if code >= 300:
        return "cyan"
    return "green"


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler serving the output tree.

    Attributes:
        reload_script: Script injected into HTML pages, empty when live
            reload is off.
    """

    reload_script_template = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
      }};
    }})();
    </script>
    """
    reload_script = ""

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        return self._serve_404()

    def log_request(self, code="-", size="-"):
        try:
            status = int(code)
        except (TypeError, ValueError):
            status = 0
        label = click.style(str(status), fg=status_colour(status))
        method = click.style(self.command or "-", fg="white", bold=True)
        logger.info("%s %s %s", label, method, self.path)

    def log_message(self, format, *args):
        logger.debug(format, *args)

    def _inject(self, content: str) -> str:
        if not self.reload_script:
            return content
        if "</body>" in content:
            return content.replace("</body>", f"{self.reload_script}</body>")
        return content + self.reload_script

    def _send_html(self, status: int, content: str):
        encoded = self._inject(content).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html (when present) with a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.exists():
            self._send_html(HTTPStatus.NOT_FOUND, error_page.read_text(encoding="utf-8"))
            return None
        self.send_error(HTTPStatus.NOT_FOUND, "File not found")
        return None

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            index_path = path_obj / "index.html"
            if not index_path.exists():
                return self._serve_404()
            path_obj = index_path
        elif not path_obj.exists():
            return self._serve_404()

        if path_obj.suffix == ".html":
            self._send_html(HTTPStatus.OK, path_obj.read_text(encoding="utf-8"))
            return None
        return super().send_head()


class DevServer:
    """Development server with optional rebuild-on-change and live reload.

    Attributes:
        project_root: Root directory of the project.
        output_dir: Directory served over HTTP.
        http_port: Port for the HTTP server.
        ws_port: Port for live reload websocket connections.
    """

    def __init__(
        self,
        project_root: Path,
        http_port: int | None = None,
        ws_port: int | None = None,
    ):
        """Initialize the development server.

        Args:
            project_root: Root directory of the project.
            http_port: Optional override for the configured port.
            ws_port: Optional websocket port; defaults to http_port + 1.
        """
        self.project_root = project_root
        self.config = load_config(project_root)
        self.output_dir = project_root / self.config.output_dir
        self._staging_dir = self.output_dir.with_name(self.output_dir.name + ".staging")
        self._previous_dir = self.output_dir.with_name(self.output_dir.name + ".previous")
        self.http_port = int(http_port or self.config.port)
        self.ws_port = ws_port if ws_port is not None else self.http_port + 1
        self.live_reload = False
        self._watcher: Watcher | None = None
        self._httpd: ThreadingHTTPServer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()

    @property
    def url(self) -> str:
        return f"http://localhost:{self.http_port}"

    def start(
        self, watch_sources: bool = False, clean: bool = False, open_browser: bool = False
    ) -> None:  # pragma: no cover - integration path
        """Build, serve and block until interrupted.

        Args:
            watch_sources: Rebuild and reload browsers when sources change.
            clean: Remove the output directory before the first build.
            open_browser: Open the site in the default browser.
        """
        if clean:
            SiteBuilder(self.project_root, output_dir=self.output_dir).clean()
        self.build()
        self.live_reload = watch_sources
        threading.Thread(target=self._start_http, daemon=True).start()
        if watch_sources:
            threading.Thread(target=self._start_ws, daemon=True).start()
            self._start_watcher()
            logger.info("Watching for file changes...")
        logger.info("Serving your site on %s!", click.style(self.url, fg="magenta"))
        if open_browser:
            click.launch(self.url)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._watcher is not None:
            self._watcher.close()
            self._watcher = None
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd = None
        self._loop.call_soon_threadsafe(self._loop.stop)

    def _handler_class(self) -> type[_ReloadHandler]:
        script = ""
        if self.live_reload:
            script = _ReloadHandler.reload_script_template.format(ws_port=self.ws_port)
        return type("_ReloadHandlerWithPort", (_ReloadHandler,), {"reload_script": script})

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler = functools.partial(self._handler_class(), directory=str(self.output_dir))
        self._httpd = ThreadingHTTPServer(("", self.http_port), handler)
        self._httpd.serve_forever()

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.error("WebSocket server failed to start (port %s): %s", self.ws_port, exc)
        except RuntimeError:
            # stop() halts the loop before the server future resolves
            return

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, "0.0.0.0", self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self) -> None:
        if not self.live_reload:
            return
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in list(self._ws_clients):
            try:
                await ws.send(message)
            except websockets.ConnectionClosed:
                stale.add(ws)
            except Exception:
                logger.exception("Reload broadcast failed")
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)

    def _start_watcher(self) -> None:
        self._watcher = watch(
            watch_targets(self.project_root),
            self,
            ignore=[self.output_dir, self._staging_dir, self._previous_dir],
        )

    def build(self) -> BuildResult:
        """Build into the staging directory and swap it into place."""
        staging = self._staging_dir
        remove_tree(staging)
        try:
            result = SiteBuilder(self.project_root, output_dir=staging).build()
        except Exception:
            remove_tree(staging)
            raise
        self._activate_staging(staging)
        result.files = [self.output_dir / f.relative_to(staging) for f in result.files]
        result.output_dir = self.output_dir
        return result

    def on_change(self) -> None:
        """Rebuild after a source change, then reload connected browsers."""
        logger.info("Change detected. Rebuilding...")
        self.build()
        logger.info("Rebuild complete")
        self._broadcast_reload()

    def _activate_staging(self, staging: Path) -> None:
        target = self.output_dir
        previous = self._previous_dir
        remove_tree(previous)
        if target.exists():
            os.replace(target, previous)
        os.replace(staging, target)
        remove_tree(previous)
