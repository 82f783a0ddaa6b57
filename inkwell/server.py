"""Development server for Inkwell.

Serves the built site with live reload for local authoring:
- Injects a reload script into HTML responses.
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Rebuilds through a Watcher and tells connected browsers to reload.

Key classes:
- DevServer: Main class for running the development server.
- _ReloadHandler: HTTP request handler that injects reload script and enforces 404s.
"""

from __future__ import annotations

import asyncio
import functools
import json
import threading
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets

from .build import BuildOptions, build_site
from .filesystem import RealFilesystem
from .watcher import Watcher

RELOAD_SCRIPT_TEMPLATE = """
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


def inject_reload_script(content: str, script: str) -> str:
    """Insert the reload script before </body>, or append it."""
    if "</body>" in content:
        return content.replace("</body>", f"{script}</body>", 1)
    return content + script


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that injects live reload script into HTML pages.

    Attributes:
        reload_script: JavaScript code for WebSocket connection to trigger reloads.
    """

    reload_script = RELOAD_SCRIPT_TEMPLATE.format(ws_port=4001)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        # Never expose directory listings; treat as missing content.
        return self._serve_404()

    def _send_html(self, status: int, content: str) -> None:
        encoded = inject_reload_script(content, self.reload_script).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html (when present) with injected reload script and a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.exists():
            self._send_html(404, error_page.read_text(encoding="utf-8"))
            return None
        self.send_error(404, "File not found")
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
            self._send_html(200, path_obj.read_text(encoding="utf-8"))
            return None
        return super().send_head()


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        project_root: Directory the source and output paths are relative to.
        options: Build options.
        output_dir: Directory where built site is served.
        addr: Address the HTTP server binds to.
        http_port: Port for HTTP server.
        ws_port: Port for WebSocket connections.
        watcher: Watcher driving the rebuilds.
    """

    def __init__(
        self,
        project_root: Path,
        options: BuildOptions,
        addr: str = "",
        http_port: int | None = None,
        ws_port: int | None = None,
    ):
        """Initialize the development server.

        Args:
            project_root: Root directory of the project.
            options: Build options.
            addr: Address to bind; empty for all interfaces.
            http_port: Optional override for the options' port.
            ws_port: Optional override for the websocket port.
        """
        self.project_root = project_root
        self.options = options
        self.fs = RealFilesystem(project_root)
        self.output_dir = self.fs.real_path(options.dst)
        self.addr = addr
        self.http_port = int(http_port or options.port)
        if ws_port is not None:
            self.ws_port = ws_port
        elif http_port is None and options.ws_port is not None:
            self.ws_port = options.ws_port
        else:
            self.ws_port = self.http_port + 1
        self._reload_script = RELOAD_SCRIPT_TEMPLATE.format(ws_port=self.ws_port)
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._httpd: ThreadingHTTPServer | None = None
        self.watcher = Watcher(
            self.fs.real_path(options.src),
            self.rebuild,
            ignore=[self.output_dir],
        )

    def start(self) -> None:  # pragma: no cover - integration path
        """Serve, build, and rebuild on changes until interrupted or a build fails."""
        threading.Thread(target=self._start_http, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        try:
            self.watcher.run()
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()

    def stop(self) -> None:
        self.watcher.stop()
        if self._httpd is not None:
            self._httpd.shutdown()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def rebuild(self) -> None:
        """Build the site and tell connected browsers to reload."""
        print("Change detected; rebuilding...")
        result = build_site(self.fs, self.options, cwd=self.project_root)
        print(f"Built {len(result.site.posts)} posts into {self.output_dir}")
        self._broadcast_reload()

    def _handler_class(self) -> type[_ReloadHandler]:
        return type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script},
        )

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler = functools.partial(self._handler_class(), directory=str(self.output_dir))
        self._httpd = ThreadingHTTPServer((self.addr, self.http_port), handler)
        host = self.addr or "localhost"
        print(f"Serving {self.output_dir} at http://{host}:{self.http_port}")
        self._httpd.serve_forever()

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            print(f"WebSocket server failed to start (port {self.ws_port}): {exc}")
            return
        except RuntimeError:
            # Loop stopped by stop().
            return

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, self.addr or "0.0.0.0", self.ws_port):
            await asyncio.Future()  # Run forever

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self):
        if not self._loop.is_running():
            return
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in self._ws_clients:
            try:
                await ws.send(message)
            except websockets.ConnectionClosed:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)
