"""Per-user RCON sessions.

Each session owns exactly one authenticated :class:`rcon_v2.RconV2`. Callers
hold only the opaque session id; the manager closes the client on every
removal path (explicit remove, idle eviction, shutdown).
"""

import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from errors import RconError, SessionNotFound
from rcon_protocol import Response
from rcon_v2 import (
    DEFAULT_DIAL_TIMEOUT,
    DEFAULT_MAX_REQUEST_SIZE,
    DEFAULT_MAX_RESPONSE_SIZE,
    ClientState,
    RconV2,
)

log = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT = timedelta(minutes=30)
SWEEP_INTERVAL_SECONDS = 60.0
SESSION_ID_BYTES = 16


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_session_id() -> str:
    return secrets.token_hex(SESSION_ID_BYTES)


@dataclass
class Session:
    id: str
    client: RconV2 = field(repr=False)
    host: str
    port: int
    created_at: datetime
    last_used: datetime

    @property
    def alive(self) -> bool:
        return self.client.state is not ClientState.CLOSED

    def execute(self, command: str, content_body="") -> Response:
        return self.client.execute(command, content_body)

    def describe(self) -> dict:
        return {
            "session_id": self.id,
            "host": self.host,
            "port": self.port,
            "connected_at": self.created_at.isoformat(),
            "last_used": self.last_used.isoformat(),
        }


class SessionManager:
    def __init__(
        self,
        idle_timeout: timedelta = DEFAULT_IDLE_TIMEOUT,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
        client_factory: Callable[..., RconV2] = RconV2,
        start_sweeper: bool = True,
    ):
        self.idle_timeout = idle_timeout
        self.sweep_interval = sweep_interval
        self._clock = clock or utcnow
        self._client_factory = client_factory
        self._sessions: dict[str, Session] = {}
        # get() writes last_used, so every access to the table is exclusive.
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        if start_sweeper:
            self.start()

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "SessionManager":
        """Build a manager whose idle timeout comes from ``config.GatewaySettings``."""
        return cls(idle_timeout=settings.idle_timeout, **kwargs)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id) -> bool:
        with self._lock:
            return session_id in self._sessions

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def start(self) -> None:
        if self._sweeper is not None:
            return
        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="rcon-session-sweeper", daemon=True
        )
        self._sweeper.start()
        log.debug("Session sweeper started (interval %.0fs, idle timeout %s)",
                  self.sweep_interval, self.idle_timeout)

    def create(
        self,
        host: str,
        port: int,
        password: str,
        dial_timeout: float = DEFAULT_DIAL_TIMEOUT,
        max_request_size: int = DEFAULT_MAX_REQUEST_SIZE,
        max_response_size: int = DEFAULT_MAX_RESPONSE_SIZE,
        read_timeout: Optional[float] = None,
    ) -> Session:
        client = self._client_factory(
            host,
            port,
            password,
            dial_timeout=dial_timeout,
            max_request_size=max_request_size,
            max_response_size=max_response_size,
            read_timeout=read_timeout,
        )
        # Errors propagate; a client that failed to connect has already
        # closed its socket and nothing is registered.
        client.connect()

        now = self._clock()
        session = Session(
            id=generate_session_id(),
            client=client,
            host=host,
            port=int(port),
            created_at=now,
            last_used=now,
        )
        with self._lock:
            self._sessions[session.id] = session
        log.info("Session %s created for %s:%s", session.id, host, port)
        return session

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.last_used = self._clock()
        return session

    def require(self, session_id: str) -> Session:
        session = self.get(session_id)
        if session is None:
            raise SessionNotFound("session not found or expired")
        return session

    def execute(self, session_id: str, command: str, content_body="") -> Response:
        session = self.require(session_id)
        try:
            return session.execute(command, content_body)
        except RconError:
            if not session.alive:
                self.remove(session.id)
            raise

    def remove(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return
        session.client.close()
        log.info("Session %s disconnected", session_id)

    def sweep(self) -> list[str]:
        """Evict every session idle for longer than ``idle_timeout``, and
        every session whose connection has already been closed.

        Returns the evicted session ids.
        """
        now = self._clock()
        with self._lock:
            expired = [
                session for session in self._sessions.values()
                if not session.alive or now - session.last_used > self.idle_timeout
            ]
            for session in expired:
                del self._sessions[session.id]

        for session in expired:
            if session.alive:
                log.info("Session %s evicted after %s idle", session.id, now - session.last_used)
            else:
                log.info("Session %s evicted: connection already closed", session.id)
            session.client.close()
        return [session.id for session in expired]

    def shutdown(self) -> None:
        self._stop.set()
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is not None and sweeper is not threading.current_thread():
            sweeper.join(timeout=max(self.sweep_interval, 1.0))

        with self._lock:
            remaining = list(self._sessions.values())
            self._sessions.clear()
        for session in remaining:
            session.client.close()
        if remaining:
            log.info("Closed %d remaining session(s) on shutdown", len(remaining))

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            try:
                self.sweep()
            except Exception:
                log.exception("Session sweep failed")
