from __future__ import annotations

import base64
import io
import logging
import time
from typing import Any

import pandas as pd

from ..config import MAX_UPLOAD_BYTES
from ..errors import InvalidInputError, PayloadTooLargeError
from ..storage_types import to_iso

logger = logging.getLogger(__name__)

CSV_MIMETYPE = "text/csv"
ALLOWED_MIMETYPES = frozenset(
    {
        CSV_MIMETYPE,
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    }
)


def validate_upload(
    mimetype: str | None, size: int, max_bytes: int = MAX_UPLOAD_BYTES
) -> None:
    """Reject uploads of the wrong type or above the size cap."""
    if mimetype not in ALLOWED_MIMETYPES:
        raise InvalidInputError(
            "Invalid file type. Only CSV and Excel files are allowed."
        )
    if size > max_bytes:
        raise PayloadTooLargeError(too_large_message(max_bytes))


def too_large_message(max_bytes: int) -> str:
    return f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB."


def summarize_csv(content: bytes, max_columns: int = 50) -> dict[str, Any] | None:
    """Row count and column names of a CSV payload, or None if unparsable."""
    try:
        df = pd.read_csv(io.BytesIO(content))
    except Exception as e:  # noqa: BLE001
        logger.info(f"CSV upload could not be summarized: {e}")
        return None
    columns = [str(col) for col in df.columns]
    return {"rows": int(len(df)), "columns": columns[:max_columns]}


def build_upload_info(
    filename: str | None,
    mimetype: str,
    content: bytes,
    uploaded_at: float | None = None,
) -> dict[str, Any]:
    """Upload entry as stored in workspaceData.uploads (payload included)."""
    info: dict[str, Any] = {
        "originalName": filename or "upload",
        "mimetype": mimetype,
        "size": len(content),
        "uploadedAt": to_iso(time.time() if uploaded_at is None else uploaded_at),
        "data": base64.b64encode(content).decode("ascii"),
    }
    if mimetype == CSV_MIMETYPE:
        summary = summarize_csv(content)
        if summary is not None:
            info["summary"] = summary
    return info


def public_upload_info(info: dict[str, Any]) -> dict[str, Any]:
    """Upload entry without its base64 payload."""
    return {k: v for k, v in info.items() if k != "data"}
