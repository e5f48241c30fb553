from __future__ import annotations

import re
import secrets
import time
import uuid

from ..errors import InvalidInputError

# Version-4 UUID, case-insensitive.
_SESSION_ID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

_LOCAL_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def is_valid_session_id(session_id: object) -> bool:
    return isinstance(session_id, str) and bool(_SESSION_ID_RE.match(session_id))


def validate_session_id(session_id: str | None) -> str:
    """Validate a server session id and return it unchanged.

    Runs before any store lookup so a malformed id is reported as invalid
    input rather than as a missing session.
    """
    if session_id is None:
        raise InvalidInputError("session_id is required")
    if not is_valid_session_id(session_id):
        raise InvalidInputError("Invalid session ID format")
    return session_id


def new_session_id() -> str:
    return str(uuid.uuid4())


def new_local_session_id() -> str:
    """Id for pure-local mode: ``local_<epoch ms>_<9 random chars>``."""
    suffix = "".join(secrets.choice(_LOCAL_ID_ALPHABET) for _ in range(9))
    return f"local_{int(time.time() * 1000)}_{suffix}"
