import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

import json5

LOGGER = logging.getLogger(__name__)

CONFIG_PATH = Path(os.environ.get("CONFIG_PATH", "/app/config.jsonc"))

DEFAULT_DIAL_TIMEOUT_SECONDS = 10
DEFAULT_READ_TIMEOUT_SECONDS = 0
DEFAULT_MAX_REQUEST_SIZE = 1048576
DEFAULT_MAX_RESPONSE_SIZE = 10485760
DEFAULT_SESSION_TIMEOUT_MINUTES = 30


def _load_config(path: Path):
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            cfg = json5.load(fh)
    except (OSError, ValueError):
        LOGGER.exception("Failed to load configuration from %s", path)
        return {}
    if not isinstance(cfg, dict):
        LOGGER.warning("Ignoring configuration in %s: top level is not an object", path)
        return {}
    LOGGER.info("Loaded configuration from %s", path)
    return cfg


def _resolve_config():
    candidates = [CONFIG_PATH, Path.cwd() / "config.jsonc"]
    for candidate in candidates:
        cfg = _load_config(candidate)
        if cfg:
            return cfg
    LOGGER.info("No configuration file found; falling back to environment variables")
    return {}

CONFIG = _resolve_config()


def get_env(name: str, default=None):
    return os.environ.get(name, default)


def _lookup(cfg: dict, dotted_key: str, default=None):
    node = cfg
    for part in dotted_key.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def get_setting(env_key: str, json_key: str, default=None, cfg: Optional[dict] = None):
    # "rcon.max_request_size" reads CONFIG["rcon"]["max_request_size"]
    source = CONFIG if cfg is None else cfg
    return os.environ.get(env_key) or _lookup(source, json_key, default)


def get_int_setting(env_key: str, json_key: str, default: int, cfg: Optional[dict] = None) -> int:
    raw = get_setting(env_key, json_key, default, cfg)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        LOGGER.warning("Invalid %s %r; using %s", env_key, raw, default)
        return default
    if value < 0:
        LOGGER.warning("Negative %s %r; using %s", env_key, raw, default)
        return default
    return value


@dataclass(frozen=True)
class GatewaySettings:
    dial_timeout_seconds: int = DEFAULT_DIAL_TIMEOUT_SECONDS
    read_timeout_seconds: int = DEFAULT_READ_TIMEOUT_SECONDS
    max_request_size: int = DEFAULT_MAX_REQUEST_SIZE
    max_response_size: int = DEFAULT_MAX_RESPONSE_SIZE
    session_timeout_minutes: int = DEFAULT_SESSION_TIMEOUT_MINUTES

    @property
    def dial_timeout(self) -> Optional[float]:
        # 0 means no dial timeout; a zero socket timeout would be non-blocking
        return float(self.dial_timeout_seconds) or None

    @property
    def read_timeout(self) -> Optional[float]:
        # 0 keeps reads unbounded once a request is on the wire
        return float(self.read_timeout_seconds) or None

    @property
    def idle_timeout(self) -> timedelta:
        return timedelta(minutes=self.session_timeout_minutes)

    def client_options(self) -> dict:
        return {
            "dial_timeout": self.dial_timeout,
            "max_request_size": self.max_request_size,
            "max_response_size": self.max_response_size,
            "read_timeout": self.read_timeout,
        }


def load_gateway_settings(cfg: Optional[dict] = None) -> GatewaySettings:
    return GatewaySettings(
        dial_timeout_seconds=get_int_setting(
            "HLL_RCON_DIAL_TIMEOUT_SECONDS", "rcon.dial_timeout_seconds", DEFAULT_DIAL_TIMEOUT_SECONDS, cfg),
        read_timeout_seconds=get_int_setting(
            "HLL_RCON_READ_TIMEOUT_SECONDS", "rcon.read_timeout_seconds", DEFAULT_READ_TIMEOUT_SECONDS, cfg),
        max_request_size=get_int_setting(
            "HLL_RCON_MAX_REQUEST_SIZE", "rcon.max_request_size", DEFAULT_MAX_REQUEST_SIZE, cfg),
        max_response_size=get_int_setting(
            "HLL_RCON_MAX_RESPONSE_SIZE", "rcon.max_response_size", DEFAULT_MAX_RESPONSE_SIZE, cfg),
        session_timeout_minutes=get_int_setting(
            "HLL_SESSION_TIMEOUT_MINUTES", "session.timeout_minutes", DEFAULT_SESSION_TIMEOUT_MINUTES, cfg),
    )


def setup_logging():
    raw = str(get_setting("LOG_LEVEL", "log.level", "INFO")).upper()
    if raw == "WARNING":
        raw = "WARN"
    if raw not in ("DEBUG", "INFO", "WARN", "ERROR"):
        raw = "INFO"
    logging.basicConfig(
        level=getattr(logging, raw),
        format="[%(asctime)s] [%(levelname)s] %(message)s"
    )


setup_logging()
