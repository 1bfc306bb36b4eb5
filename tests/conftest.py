import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests


class FakeRaw:
    def __init__(self, data):
        self._data = data

    def read1(self, amt=-1, decode_content=None):
        chunk, self._data = self._data[:amt], self._data[amt:]
        return chunk


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None, url=""):
        self.status_code = status_code
        self.url = url
        text = text if text is not None else json.dumps(body)
        self.raw = FakeRaw(text.encode())
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error for url: {self.url}", response=self)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class FakeSession:
    """Routes GETs by URL to canned bodies, FakeResponses, exceptions or callables."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.responses = []
        self.closed = False

    def get(self, url, timeout=None, stream=False):
        self.calls.append((url, timeout))
        if url not in self.routes:
            raise requests.ConnectionError(f"connection refused: {url}")
        route = self.routes[url]
        if callable(route):
            route = route(url, timeout)
        if isinstance(route, Exception):
            raise route
        resp = route if isinstance(route, FakeResponse) else FakeResponse(body=route, url=url)
        self.responses.append(resp)
        return resp

    def close(self):
        self.closed = True


class ManualClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


BASE = "http://connect:8083"


def status_doc(name, state="RUNNING", worker="w1", tasks=()):
    return {
        "name": name,
        "connector": {"state": state, "worker_id": worker},
        "tasks": [{"id": i, "state": s, "worker_id": w} for i, s, w in tasks],
    }


@pytest.fixture
def session():
    return FakeSession()


class _DripHandler(BaseHTTPRequestHandler):
    body = b'["aaaaaaaa"]'
    delay = 0.0

    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.body)))
        self.end_headers()
        try:
            for i in range(len(self.body)):
                self.wfile.write(self.body[i:i + 1])
                self.wfile.flush()
                time.sleep(self.delay)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, format, *args):
        pass


@pytest.fixture
def drip_server():
    """Local HTTP server writing its body one byte at a time; yields a factory taking the per-byte delay."""
    servers = []

    def start(delay):
        handler = type("Handler", (_DripHandler,), {"delay": delay})
        httpd = ThreadingHTTPServer(("127.0.0.1", 0), handler)
        httpd.daemon_threads = True
        threading.Thread(target=httpd.serve_forever, daemon=True).start()
        servers.append(httpd)
        return f"http://127.0.0.1:{httpd.server_address[1]}"

    yield start
    for httpd in servers:
        httpd.shutdown()
        httpd.server_close()
