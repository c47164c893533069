"""Shared fixtures: an in-process HLL RCON v2 server speaking the real wire format."""

import base64
import json
import select
import socket
import struct
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

HEADER = struct.Struct("<II")


def xor(data: bytes, key: bytes) -> bytes:
    if not key:
        return data
    return bytes(b ^ key[i % len(key)] for i, b in enumerate(data))


def recv_exactly(conn, size):
    buf = b""
    while len(buf) < size:
        chunk = conn.recv(size - len(buf))
        if not chunk:
            return None
        buf += chunk
    return buf


class FakeRconServer:
    """Accepts RCON v2 connections and answers one request at a time.

    ``handlers`` maps command names to callables taking the decoded request
    dict and returning ``(status, message, content)``; returning ``None``
    drops the connection without answering.
    """

    def __init__(self, password="secret", xor_key=b"testkey", token="tok-123"):
        self.password = password
        self.xor_key = xor_key
        self.token = token
        self.handlers = {}
        self.server_connect_reply = None
        self.login_reply = None
        self.id_offset = 0
        self.answer_delay = 0.0

        self.requests = []
        self.request_ids = []
        self.raw_bodies = []
        self.interleaved = False

        self._lock = threading.Lock()
        self._conns = []
        self._stopped = threading.Event()
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._listener.bind(("127.0.0.1", 0))
        self._listener.listen(16)
        self._listener.settimeout(0.1)
        self.host, self.port = self._listener.getsockname()
        self._thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._thread.start()

    def stop(self):
        self._stopped.set()
        self._thread.join(timeout=2)
        self._listener.close()
        with self._lock:
            conns, self._conns = self._conns, []
        for conn in conns:
            conn.close()

    def _accept_loop(self):
        while not self._stopped.is_set():
            try:
                conn, _ = self._listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            conn.settimeout(None)
            with self._lock:
                self._conns.append(conn)
            threading.Thread(target=self._serve, args=(conn,), daemon=True).start()

    def _serve(self, conn):
        key = b""
        try:
            while True:
                header = recv_exactly(conn, HEADER.size)
                if header is None:
                    return
                request_id, length = HEADER.unpack(header)
                raw = recv_exactly(conn, length) if length else b""
                if raw is None:
                    return
                request = json.loads(xor(raw, key).decode("utf-8"))
                with self._lock:
                    self.raw_bodies.append(raw)
                    self.request_ids.append(request_id)
                    self.requests.append(request)

                if self.answer_delay:
                    time.sleep(self.answer_delay)
                readable, _, _ = select.select([conn], [], [], 0)
                if readable:
                    self.interleaved = True

                reply = self._dispatch(request)
                if reply is None:
                    conn.close()
                    return
                status, message, content = reply
                body = json.dumps({
                    "statusCode": status,
                    "statusMessage": message,
                    "version": 2,
                    "name": request["name"],
                    "contentBody": content,
                }).encode("utf-8")
                body = xor(body, key)
                response_id = (request_id + self.id_offset) & 0xFFFFFFFF
                conn.sendall(HEADER.pack(response_id, len(body)) + body)

                if request["name"] == "ServerConnect" and status == 200:
                    key = self.xor_key
        except OSError:
            return

    def _dispatch(self, request):
        name = request["name"]
        if name == "ServerConnect":
            if self.server_connect_reply is not None:
                return self.server_connect_reply
            return 200, "OK", base64.b64encode(self.xor_key).decode("ascii")
        if name == "Login":
            if self.login_reply is not None:
                return self.login_reply
            if request["contentBody"] != self.password:
                return 401, "Invalid password", ""
            return 200, "OK", self.token
        if request["authToken"] != self.token:
            return 401, "Unauthorized", ""
        handler = self.handlers.get(name)
        if handler is None:
            return 400, f"Unknown command {name}", ""
        return handler(request)


class FakeClock:
    def __init__(self):
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def rcon_server():
    server = FakeRconServer()
    yield server
    server.stop()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def closed_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
