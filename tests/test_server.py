import asyncio
import io
import logging
import time

import pytest
import websockets

from banana.errors import TemplateError
from banana.server import DevServer, _ReloadHandler, status_colour


def create_project(tmp_path, port=None):
    config = "site:\n  title: Served\n"
    if port is not None:
        config += f"port: {port}\n"
    (tmp_path / "banana.yml").write_text(config, encoding="utf-8")
    (tmp_path / "layout.tmpl").write_text(
        "<html><body>{% block content %}{% endblock %}</body></html>", encoding="utf-8"
    )
    (tmp_path / "index.tmpl").write_text(
        "{% block content %}{{ site.title }}{% endblock %}", encoding="utf-8"
    )
    return tmp_path


def make_handler(tmp_path, path, handler_class=_ReloadHandler):
    handler = handler_class.__new__(handler_class)
    handler.path = path
    handler.directory = str(tmp_path)
    handler.command = "GET"
    handler.request_version = "HTTP/1.1"
    handler.server_version = ""
    handler.sys_version = ""
    handler._headers_buffer = []
    handler.headers = {}
    handler.rfile = io.BytesIO(b"")
    handler.wfile = io.BytesIO()
    handler.codes = []
    handler.send_response = lambda code, message=None: handler.codes.append(code)
    handler.send_header = lambda *args, **kwargs: None
    handler.end_headers = lambda: None
    handler.send_error = lambda code, message=None: handler.codes.append(("error", code))
    return handler


@pytest.mark.parametrize(
    "code, colour",
    [(200, "green"), (304, "cyan"), (404, "yellow"), (500, "red"), (0, "green")],
)
def test_status_colour(code, colour):
    assert status_colour(code) == colour


def test_ports_default_from_config(tmp_path):
    create_project(tmp_path, port=4100)
    server = DevServer(tmp_path)
    assert server.http_port == 4100
    assert server.ws_port == 4101
    assert server.url == "http://localhost:4100"

    explicit = DevServer(tmp_path, http_port=5055, ws_port=6000)
    assert explicit.http_port == 5055
    assert explicit.ws_port == 6000


def test_reload_script_only_with_live_reload(tmp_path):
    create_project(tmp_path)
    server = DevServer(tmp_path, http_port=5055)
    assert server._handler_class().reload_script == ""
    server.live_reload = True
    assert "ws://" in server._handler_class().reload_script
    assert ":5056" in server._handler_class().reload_script


def test_html_gets_reload_script_before_body_end(tmp_path):
    (tmp_path / "index.html").write_text("<html><body>Hello</body></html>", encoding="utf-8")
    handler_class = type("Handler", (_ReloadHandler,), {"reload_script": "<script>reload</script>"})
    handler = make_handler(tmp_path, "/", handler_class)
    assert handler_class.send_head(handler) is None
    assert handler.codes == [200]
    assert handler.wfile.getvalue() == b"<html><body>Hello<script>reload</script></body></html>"


def test_html_without_body_gets_script_appended(tmp_path):
    (tmp_path / "plain.html").write_text("<p>No body</p>", encoding="utf-8")
    handler_class = type("Handler", (_ReloadHandler,), {"reload_script": "<script>reload</script>"})
    handler = make_handler(tmp_path, "/plain.html", handler_class)
    handler_class.send_head(handler)
    assert handler.wfile.getvalue().endswith(b"<script>reload</script>")


def test_html_is_untouched_without_live_reload(tmp_path):
    (tmp_path / "index.html").write_text("<html><body>Hi</body></html>", encoding="utf-8")
    handler = make_handler(tmp_path, "/index.html")
    _ReloadHandler.send_head(handler)
    assert handler.wfile.getvalue() == b"<html><body>Hi</body></html>"


def test_directory_without_index_is_not_listed(tmp_path):
    (tmp_path / "empty").mkdir()
    handler = make_handler(tmp_path, "/empty/")
    assert _ReloadHandler.send_head(handler) is None
    assert handler.codes == [("error", 404)]


def test_missing_path_serves_custom_404(tmp_path):
    (tmp_path / "404.html").write_text("<html><body>oops</body></html>", encoding="utf-8")
    handler = make_handler(tmp_path, "/missing/")
    _ReloadHandler.send_head(handler)
    assert handler.codes == [404]
    assert b"oops" in handler.wfile.getvalue()


def test_other_files_are_served_as_is(tmp_path):
    (tmp_path / "style.css").write_text("body{}", encoding="utf-8")
    handler = make_handler(tmp_path, "/style.css")
    result = _ReloadHandler.send_head(handler)
    assert result is not None
    assert result.read() == b"body{}"
    result.close()


def test_access_log_includes_status_and_path(tmp_path, caplog):
    handler = make_handler(tmp_path, "/about/")
    with caplog.at_level(logging.INFO, logger="banana"):
        _ReloadHandler.log_request(handler, 404)
    assert "404" in caplog.text
    assert "/about/" in caplog.text


def test_build_swaps_staging_into_place(tmp_path):
    create_project(tmp_path)
    server = DevServer(tmp_path)
    stale = server.output_dir / "stale.html"
    stale.parent.mkdir()
    stale.write_text("old", encoding="utf-8")

    result = server.build()
    assert result.output_dir == server.output_dir
    assert result.files == [server.output_dir / "index.html"]
    assert "Served" in (server.output_dir / "index.html").read_text(encoding="utf-8")
    assert not stale.exists()
    assert not server._staging_dir.exists()
    assert not server._previous_dir.exists()


def test_failed_build_keeps_the_served_site(tmp_path):
    create_project(tmp_path)
    server = DevServer(tmp_path)
    server.build()
    (tmp_path / "index.tmpl").write_text("---\nlayout: nope\n---\n", encoding="utf-8")
    with pytest.raises(TemplateError):
        server.build()
    assert "Served" in (server.output_dir / "index.html").read_text(encoding="utf-8")
    assert not server._staging_dir.exists()


def test_on_change_rebuilds_then_reloads(monkeypatch, tmp_path):
    create_project(tmp_path)
    server = DevServer(tmp_path)
    calls = []
    monkeypatch.setattr(server, "build", lambda: calls.append("build"))
    monkeypatch.setattr(server, "_broadcast_reload", lambda: calls.append("reload"))
    server.on_change()
    assert calls == ["build", "reload"]


def test_broadcast_reload_is_skipped_without_live_reload(monkeypatch, tmp_path):
    create_project(tmp_path)
    server = DevServer(tmp_path)
    called = []
    monkeypatch.setattr(
        "banana.server.asyncio.run_coroutine_threadsafe",
        lambda coro, loop: called.append(coro),
    )
    server._broadcast_reload()
    assert called == []


def test_broadcast_reload_sends_on_the_server_loop(monkeypatch, tmp_path):
    create_project(tmp_path)
    server = DevServer(tmp_path)
    server.live_reload = True
    called = {}

    def fake_runner(coro, loop):
        called["loop"] = loop
        new_loop = asyncio.new_event_loop()
        try:
            return new_loop.run_until_complete(coro)
        finally:
            new_loop.close()

    monkeypatch.setattr("banana.server.asyncio.run_coroutine_threadsafe", fake_runner)
    server._broadcast_reload()
    assert called["loop"] is server._loop


def test_async_broadcast_drops_closed_clients(tmp_path):
    create_project(tmp_path)
    server = DevServer(tmp_path)

    class GoodWS:
        def __init__(self):
            self.messages = []

        async def send(self, msg):
            self.messages.append(msg)

    class ClosedWS:
        async def send(self, msg):
            raise websockets.ConnectionClosed(None, None)

    good = GoodWS()
    closed = ClosedWS()
    server._ws_clients = {good, closed}
    asyncio.run(server._async_broadcast('{"type": "reload"}'))
    assert good.messages == ['{"type": "reload"}']
    assert server._ws_clients == {good}


def test_ws_handler_tracks_client(tmp_path):
    create_project(tmp_path)
    server = DevServer(tmp_path)

    class DummyWS:
        def __init__(self):
            self.closed = False

        async def wait_closed(self):
            assert self in server._ws_clients
            self.closed = True

    ws = DummyWS()
    asyncio.run(server._ws_handler(ws))
    assert ws.closed
    assert ws not in server._ws_clients


def test_start_watcher_ignores_output(monkeypatch, tmp_path):
    create_project(tmp_path)
    server = DevServer(tmp_path)
    captured = {}

    class FakeWatcher:
        def close(self):
            captured["closed"] = True

    def fake_watch(directories, listener, ignore=()):
        captured["directories"] = list(directories)
        captured["listener"] = listener
        captured["ignore"] = list(ignore)
        return FakeWatcher()

    monkeypatch.setattr("banana.server.watch", fake_watch)
    server._start_watcher()
    assert captured["directories"] == [tmp_path]
    assert captured["listener"] is server
    assert server.output_dir in captured["ignore"]
    assert server._staging_dir in captured["ignore"]

    server.stop()
    assert captured["closed"]


def test_async_broadcast_survives_clients_leaving_mid_send(tmp_path):
    create_project(tmp_path)
    server = DevServer(tmp_path)
    received = []

    class LeavingWS:
        async def send(self, msg):
            # another connection closes while this send is awaited
            server._ws_clients.discard(other)
            received.append(msg)

    class FailingWS:
        async def send(self, msg):
            raise RuntimeError("socket gone")

    other = FailingWS()
    leaving = LeavingWS()
    server._ws_clients = {leaving, other}
    asyncio.run(server._async_broadcast("reload"))
    assert received == ["reload"]
    assert server._ws_clients == {leaving}


def test_watching_server_rebuilds_a_bounded_number_of_times(monkeypatch, tmp_path):
    create_project(tmp_path)
    (tmp_path / "posts").mkdir()
    server = DevServer(tmp_path)
    server.build()

    calls = []
    real_build = server.build

    def counting_build():
        calls.append(1)
        return real_build()

    monkeypatch.setattr(server, "build", counting_build)
    server._start_watcher()
    try:
        (tmp_path / "posts" / "a.md").write_text("---\ntitle: A\n---\nbody\n", encoding="utf-8")
        deadline = time.monotonic() + 10
        while not calls and time.monotonic() < deadline:
            time.sleep(0.05)
        # the staging swap must not trigger further rebuilds
        time.sleep(2)
    finally:
        server.stop()
    assert 1 <= len(calls) <= 2
    assert (server.output_dir / "a" / "index.html").exists()
