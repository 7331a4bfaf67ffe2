"""Shared fixtures: stub providers with artificial latency and a local HTTP server."""

import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from cep_lookup.errors import LookupCancelled
from cep_lookup.models import Address
from cep_lookup.providers import Provider


class StubProvider(Provider):
    """
    Provider that answers after ``delay`` seconds.

    Waits on the cancel token, so a cancelled race wakes it at once. With
    ``ignore_cancel`` it sleeps through cancellation, like a call that cannot
    be interrupted. Pass ``error`` to fail instead of answering.
    """

    def __init__(self, label, delay=0.0, address=None, error=None, ignore_cancel=False):
        self.label = label
        self.delay = delay
        self.address = address or Address(postal_code="01001000", street=f"Rua {label}",
                                           neighborhood="Sé", city="São Paulo", state="SP")
        self.error = error
        self.ignore_cancel = ignore_cancel
        self.calls = 0
        self.was_cancelled = False
        self.finished = threading.Event()

    def lookup(self, cep, token):
        self.calls += 1
        try:
            if self.ignore_cancel:
                time.sleep(self.delay)
            elif token.wait(self.delay):
                self.was_cancelled = True
                raise LookupCancelled(self.label, "cancelled")
            if isinstance(self.error, Exception):
                raise self.error
            return self.address
        finally:
            self.finished.set()


@pytest.fixture
def stub_provider():
    return StubProvider


class _Route:
    def __init__(self, status=200, body=None, delay=0.0, raw=None):
        self.status = status
        self.body = body
        self.delay = delay
        self.raw = raw


class StubServer:
    """ThreadingHTTPServer on a free port; register canned responses per path."""

    def __init__(self):
        self.routes = {}
        self.requests = []
        self._release = threading.Event()
        server = self

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self):
                server.requests.append(self.path)
                route = server.routes.get(self.path, _Route(404, {"message": "not found"}))
                if route.delay:
                    server._release.wait(route.delay)
                payload = route.raw if route.raw is not None else json.dumps(route.body).encode("utf-8")
                try:
                    self.send_response(route.status)
                    self.send_header("Content-Type", "application/json; charset=utf-8")
                    self.send_header("Content-Length", str(len(payload)))
                    self.end_headers()
                    self.wfile.write(payload)
                except (BrokenPipeError, ConnectionResetError):
                    pass

            def log_message(self, format, *args):
                pass

        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self.httpd.daemon_threads = True
        self.base_url = f"http://127.0.0.1:{self.httpd.server_address[1]}"
        self._thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)

    def add(self, path, body=None, status=200, delay=0.0, raw=None):
        self.routes[path] = _Route(status, body, delay, raw)

    def start(self):
        self._thread.start()

    def stop(self):
        self._release.set()
        self.httpd.shutdown()
        self.httpd.server_close()


@pytest.fixture
def http_server():
    server = StubServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def brasilapi_body():
    return {
        "cep": "01001000",
        "state": "SP",
        "city": "São Paulo",
        "neighborhood": "Sé",
        "street": "Praça da Sé",
        "service": "open-cep",
    }


@pytest.fixture
def viacep_body():
    return {
        "cep": "01001-000",
        "logradouro": "Praça da Sé",
        "complemento": "lado ímpar",
        "bairro": "Sé",
        "localidade": "São Paulo",
        "uf": "SP",
        "ibge": "3550308",
        "gia": "1004",
        "ddd": "11",
        "siafi": "7107",
    }
