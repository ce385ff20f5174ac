"""
Shared pytest fixtures for telnetfs tests.

Provides a temporary server root, in-memory sockets for session-level tests,
and a real server on an ephemeral port for end-to-end tests.
"""

import itertools
import socket
import threading
import time
from pathlib import Path

import pytest

from telnetfs.sandbox import ensure_root
from telnetfs.server import TelnetServer
from telnetfs.session import Session, SessionManager


_fds = itertools.count(1000)


class FakeSocket:
    """Stand-in for a connected socket: records sent bytes, never blocks."""

    def __init__(self):
        self._fd = next(_fds)
        self.sent = bytearray()
        self.closed = False

    def fileno(self):
        return -1 if self.closed else self._fd

    def send(self, data):
        self.sent.extend(data)
        return len(data)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_socket():
    """The FakeSocket class, for tests that build sessions by hand."""
    return FakeSocket


@pytest.fixture
def server_root(tmp_path: Path) -> Path:
    return ensure_root(str(tmp_path / "server"))


@pytest.fixture
def make_session(server_root):
    """Factory for sessions bound to the temporary server root."""
    counter = itertools.count(1)

    def _make(address=("127.0.0.1", 5555), max_line_bytes=4096):
        return Session(next(counter), FakeSocket(), address, server_root, max_line_bytes=max_line_bytes)

    return _make


@pytest.fixture
def session(make_session):
    return make_session()


class Client:
    """Blocking test client that reads up to the server prompt."""

    def __init__(self, address, timeout=5.0):
        self.sock = socket.create_connection(address, timeout=timeout)
        host, port = self.sock.getsockname()[:2]
        self.prompt = f"{host}:{port}: "
        self.buffer = b""

    def read_until(self, marker: str) -> str:
        wanted = marker.encode("utf-8")
        while wanted not in self.buffer:
            chunk = self.sock.recv(4096)
            if not chunk:
                raise ConnectionError("server closed the connection")
            self.buffer += chunk
        head, _, tail = self.buffer.partition(wanted)
        self.buffer = tail
        return head.decode("utf-8")

    def read_prompt(self) -> str:
        return self.read_until(self.prompt)

    def command(self, line: str) -> str:
        self.sock.sendall(line.encode("utf-8") + b"\r\n")
        return self.read_prompt()

    def close(self):
        self.sock.close()


@pytest.fixture
def running_server(server_root):
    manager = SessionManager(server_root)
    server = TelnetServer("127.0.0.1", 0, manager, select_timeout=0.05)
    server.start()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.stop()
    thread.join(timeout=5)


@pytest.fixture
def connect(running_server):
    clients = []

    def _connect() -> Client:
        client = Client(running_server.address)
        clients.append(client)
        return client

    yield _connect
    for client in clients:
        client.close()


@pytest.fixture
def wait_for():
    """Poll a predicate until it holds or the timeout expires."""

    def _wait(predicate, timeout=5.0, interval=0.02):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait
