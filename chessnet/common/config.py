from __future__ import annotations

import json
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional


CHESSNET_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = CHESSNET_ROOT / "config.json"
CONFIG_PATH_ENV = "CHESSNET_CONFIG"

DEFAULT_PORT = 9000
DEFAULT_HANDSHAKE_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 0.02


class ConfigError(Exception):
    pass


def config_path() -> Path:
    p = (os.environ.get(CONFIG_PATH_ENV) or "").strip()
    if p:
        return Path(p)
    return DEFAULT_CONFIG_PATH


@lru_cache(maxsize=1)
def load_config() -> dict[str, Any]:
    path = config_path()
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def section(name: str) -> dict[str, Any]:
    cfg = load_config()
    sec = cfg.get(name)
    return sec if isinstance(sec, dict) else {}


def get_str(sec: dict[str, Any], key: str) -> Optional[str]:
    v = sec.get(key)
    if v is None:
        return None
    if isinstance(v, str):
        s = v.strip()
        return s if s else None
    return None


def get_int(sec: dict[str, Any], key: str) -> Optional[int]:
    v = sec.get(key)
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def get_float(sec: dict[str, Any], key: str) -> Optional[float]:
    v = sec.get(key)
    if v is None or isinstance(v, bool):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def get_bool(sec: dict[str, Any], key: str) -> Optional[bool]:
    v = sec.get(key)
    return v if isinstance(v, bool) else None


@dataclass(frozen=True)
class PeerSettings:
    host: Optional[str]
    port: int
    name: str
    handshake_timeout: float
    poll_interval: float
    ack_timeout: Optional[float]
    trace: bool


def _port(sec: dict[str, Any]) -> int:
    raw = (os.environ.get("CHESSNET_PORT") or "").strip()
    if raw:
        port = get_int({"port": raw}, "port")
        where = "CHESSNET_PORT"
    elif sec.get("port") is not None:
        port = get_int(sec, "port")
        where = "peer.port"
    else:
        return DEFAULT_PORT
    if port is None or not 0 < port < 65536:
        raise ConfigError(f"bad:{where}")
    return port


def peer_settings() -> PeerSettings:
    """Resolve the "peer" section; CHESSNET_* environment variables win over the file.

    Raises ConfigError when a port is set but is not a number in 1..65535.
    """
    sec = section("peer")
    return PeerSettings(
        host=(os.environ.get("CHESSNET_HOST") or get_str(sec, "host")),
        port=_port(sec),
        name=(os.environ.get("CHESSNET_NAME") or get_str(sec, "name") or "player"),
        handshake_timeout=get_float(sec, "handshakeTimeout") or DEFAULT_HANDSHAKE_TIMEOUT,
        poll_interval=get_float(sec, "pollInterval") or DEFAULT_POLL_INTERVAL,
        ack_timeout=get_float(sec, "ackTimeout"),
        trace=bool(get_bool(sec, "trace")),
    )
