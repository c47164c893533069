# RCON v2 client
# Based on the HLL RCON v2 protocol documentation
# XOR + two-step handshake + one command in flight per connection

import logging
import socket
import threading
from enum import Enum
from typing import Optional

from errors import (
    AuthError,
    DialError,
    HandshakeError,
    NotConnected,
    RconError,
    ReadError,
    RequestTooLarge,
    ResponseIDMismatch,
    ResponseTooLarge,
    WriteError,
)
from rcon_protocol import (
    HEADER_SIZE,
    LOGIN,
    MAX_REQUEST_ID,
    SERVER_CONNECT,
    STATUS_OK,
    Response,
    decode_header,
    decode_xor_key,
    encode_frame,
    pack_request,
    unpack_response,
    xor_crypt,
)

log = logging.getLogger(__name__)

DEFAULT_DIAL_TIMEOUT = 10
DEFAULT_MAX_REQUEST_SIZE = 1024 * 1024
DEFAULT_MAX_RESPONSE_SIZE = 10 * 1024 * 1024
RECV_CHUNK = 64 * 1024


class ClientState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_KEY = "awaiting_key"
    AWAITING_AUTH = "awaiting_auth"
    READY = "ready"
    CLOSED = "closed"


class RconV2:
    """One authenticated connection to one HLL server.

    Exchanges are serialized by an internal lock, so a single instance can be
    shared by threads; their commands queue rather than interleave on the
    socket. ``close()`` does not wait for that lock and may be called from any
    thread: it shuts the socket down, which makes a blocked read fail.
    """

    def __init__(
        self,
        host: str,
        port: int,
        password: str,
        dial_timeout: float = DEFAULT_DIAL_TIMEOUT,
        max_request_size: int = DEFAULT_MAX_REQUEST_SIZE,
        max_response_size: int = DEFAULT_MAX_RESPONSE_SIZE,
        read_timeout: Optional[float] = None,
    ):
        self.host = host
        self.port = int(port)
        self.password = password
        # A timeout of 0 would put the socket in non-blocking mode; treat it
        # as "no timeout".
        self.dial_timeout = dial_timeout or None
        self.max_request_size = max_request_size
        self.max_response_size = max_response_size
        self.read_timeout = read_timeout or None

        self._sock: Optional[socket.socket] = None
        self._xor_key = b""
        self._auth_token = ""
        self._request_id = 0
        self._state = ClientState.DISCONNECTED
        self._exchange_lock = threading.Lock()
        self._state_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<RconV2 {self.host}:{self.port} {self._state.value}>"

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ClientState.READY

    def connect(self) -> None:
        with self._exchange_lock:
            with self._state_lock:
                if self._state is ClientState.CLOSED:
                    raise NotConnected("client has been closed")
                if self._state is not ClientState.DISCONNECTED:
                    raise RconError(f"connect() called while {self._state.value}")
                self._state = ClientState.CONNECTING

            log.debug("Connecting to RCON %s:%s", self.host, self.port)
            try:
                sock = socket.create_connection((self.host, self.port), timeout=self.dial_timeout)
            except OSError as exc:
                self._set_state(ClientState.CLOSED)
                raise DialError(f"failed to connect to {self.host}:{self.port}: {exc}") from exc
            # The dial timeout only bounds the connect; reads use read_timeout.
            sock.settimeout(self.read_timeout)

            with self._state_lock:
                if self._state is ClientState.CLOSED:
                    sock.close()
                    raise NotConnected("client was closed while connecting")
                self._sock = sock
                self._state = ClientState.AWAITING_KEY
            log.debug("TCP connection established to %s:%s", self.host, self.port)

            try:
                self._handshake()
            except Exception:
                self._shutdown()
                raise

        log.info("RCON authentication successful for %s:%s", self.host, self.port)

    def _handshake(self) -> None:
        log.debug("Sending %s", SERVER_CONNECT)
        resp = self._exchange(SERVER_CONNECT, "")
        if resp.status_code != STATUS_OK:
            raise HandshakeError(
                f"{SERVER_CONNECT} failed ({resp.status_code}): {resp.status_message}"
            )
        if not isinstance(resp.content_body, str):
            raise HandshakeError(f"{SERVER_CONNECT} returned a non-string XOR key")

        self._xor_key = decode_xor_key(resp.content_body)
        self._set_state(ClientState.AWAITING_AUTH)
        log.debug("XOR key decoded (%d bytes)", len(self._xor_key))

        log.debug("Sending %s", LOGIN)
        resp = self._exchange(LOGIN, self.password)
        if resp.status_code != STATUS_OK:
            raise AuthError(f"{LOGIN} failed ({resp.status_code}): {resp.status_message}")
        if not isinstance(resp.content_body, str):
            raise AuthError(f"{LOGIN} returned a non-string auth token")

        self._auth_token = resp.content_body
        self._set_state(ClientState.READY)

    def execute(self, command: str, content_body="") -> Response:
        """Send one command and return the server's response.

        A non-200 status is returned as-is; only transport and protocol
        failures raise.
        """
        with self._exchange_lock:
            if self._state is not ClientState.READY:
                raise NotConnected(f"cannot execute {command}: client is {self._state.value}")

            log.debug("Executing RCON command %s", command)
            try:
                resp = self._exchange(command, content_body)
            except RconError as exc:
                log.error("RCON command %s failed: %s", command, exc)
                raise

        log.debug("RCON command %s completed with status %s", command, resp.status_code)
        return resp

    def close(self) -> None:
        log.debug("Closing RCON connection to %s:%s", self.host, self.port)
        self._shutdown()

    def _set_state(self, state: ClientState) -> None:
        with self._state_lock:
            if self._state is not ClientState.CLOSED:
                self._state = state

    def _shutdown(self) -> None:
        with self._state_lock:
            sock, self._sock = self._sock, None
            self._state = ClientState.CLOSED
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as exc:
            log.debug("Socket shutdown for %s:%s: %s", self.host, self.port, exc)
        sock.close()

    def _next_request_id(self) -> int:
        # Only one exchange is ever in flight, so reuse after wraparound
        # cannot collide with a pending id.
        self._request_id = (self._request_id + 1) & MAX_REQUEST_ID
        return self._request_id

    def _exchange(self, name: str, content_body) -> Response:
        # Caller holds _exchange_lock. Any failure drops the connection.
        try:
            return self._round_trip(name, content_body)
        except Exception:
            self._shutdown()
            raise

    def _round_trip(self, name: str, content_body) -> Response:
        request_id = self._next_request_id()
        body = pack_request(self._auth_token, name, content_body)

        size = HEADER_SIZE + len(body)
        if size > self.max_request_size:
            raise RequestTooLarge(
                f"request size {size} exceeds maximum {self.max_request_size} bytes"
            )

        sock = self._sock
        if sock is None:
            raise NotConnected("connection is closed")

        body = xor_crypt(body, self._xor_key)
        try:
            sock.sendall(encode_frame(request_id, body))
        except OSError as exc:
            raise WriteError(f"failed to send {name} request: {exc}") from exc

        response_id, length = decode_header(self._recv_exactly(sock, HEADER_SIZE, "response header"))
        if length > self.max_response_size:
            raise ResponseTooLarge(
                f"response size {length} exceeds maximum {self.max_response_size} bytes"
            )

        payload = xor_crypt(self._recv_exactly(sock, length, "response body"), self._xor_key)
        resp = unpack_response(payload)

        if response_id != request_id:
            raise ResponseIDMismatch(
                f"response ID mismatch: expected {request_id}, got {response_id}"
            )
        return resp

    @staticmethod
    def _recv_exactly(sock: socket.socket, size: int, what: str) -> bytes:
        buf = bytearray()
        while len(buf) < size:
            try:
                chunk = sock.recv(min(size - len(buf), RECV_CHUNK))
            except OSError as exc:
                raise ReadError(f"failed to read {what}: {exc}") from exc
            if not chunk:
                raise ReadError(f"connection closed while reading {what} ({len(buf)}/{size} bytes)")
            buf += chunk
        return bytes(buf)
