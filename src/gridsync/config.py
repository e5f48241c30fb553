"""
Environment-driven configuration for the server and the client.

Unparsable numeric values fall back to their defaults instead of failing
start-up.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, default)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3000
    store: str = "memory"
    cache_dir: str = field(
        default_factory=lambda: os.path.join(tempfile.gettempdir(), "gridsync_cache")
    )
    session_max_age_seconds: float = 24 * 60 * 60
    sweep_interval_seconds: float = 60 * 60
    max_sessions: int = 0
    max_upload_bytes: int = MAX_UPLOAD_BYTES

    @classmethod
    def from_env(cls) -> ServerConfig:
        defaults = cls()
        store = _env_str("GRIDSYNC_STORE", defaults.store).strip().lower()
        if store not in {"memory", "disk"}:
            store = defaults.store
        return cls(
            host=_env_str("GRIDSYNC_HOST", defaults.host),
            port=_env_int("GRIDSYNC_PORT", defaults.port),
            store=store,
            cache_dir=_env_str("GRIDSYNC_CACHE_DIR", defaults.cache_dir),
            session_max_age_seconds=_env_float(
                "GRIDSYNC_SESSION_MAX_AGE_SECONDS", defaults.session_max_age_seconds
            ),
            sweep_interval_seconds=_env_float(
                "GRIDSYNC_SWEEP_INTERVAL_SECONDS", defaults.sweep_interval_seconds
            ),
            max_sessions=_env_int("GRIDSYNC_MAX_SESSIONS", defaults.max_sessions),
            max_upload_bytes=_env_int(
                "GRIDSYNC_MAX_UPLOAD_BYTES", defaults.max_upload_bytes
            ),
        )


@dataclass
class ClientConfig:
    # Empty string selects local-only mode.
    server_url: str = "http://127.0.0.1:3000"
    local_dir: str = field(
        default_factory=lambda: os.path.join(tempfile.gettempdir(), "gridsync_local")
    )
    debounce_seconds: float = 0.5
    poll_interval_seconds: float = 30.0
    request_timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> ClientConfig:
        defaults = cls()
        return cls(
            server_url=_env_str("GRIDSYNC_SERVER_URL", defaults.server_url).strip(),
            local_dir=_env_str("GRIDSYNC_LOCAL_DIR", defaults.local_dir),
            debounce_seconds=_env_float(
                "GRIDSYNC_DEBOUNCE_SECONDS", defaults.debounce_seconds
            ),
            poll_interval_seconds=_env_float(
                "GRIDSYNC_POLL_INTERVAL_SECONDS", defaults.poll_interval_seconds
            ),
            request_timeout_seconds=_env_float(
                "GRIDSYNC_REQUEST_TIMEOUT_SECONDS", defaults.request_timeout_seconds
            ),
        )
