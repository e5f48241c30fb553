"""
Storage Types and Data Classes

This module contains the core data structures and enums shared by the
session stores, the HTTP layer and the client.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ActiveTab(Enum):
    """Tabs the editor can show."""

    GRID = "grid"
    TABLE = "table"
    PQ_QUERY = "pq-query"


class StorageTier(Enum):
    """Where a store keeps its records."""

    MEMORY = "memory"
    FILESYSTEM = "filesystem"


def to_iso(timestamp: float) -> str:
    """Render epoch seconds as an ISO-8601 UTC string."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


@dataclass
class SessionRecord:
    """Server-of-record entry for one editor session."""

    session_id: str
    created_at: float
    last_activity: float
    ui_state: dict[str, Any] = field(default_factory=dict)
    workspace_data: dict[str, list[Any]] = field(default_factory=dict)

    def copy(self) -> SessionRecord:
        """Detached copy, so callers never hold a reference into the store."""
        return SessionRecord(
            session_id=self.session_id,
            created_at=self.created_at,
            last_activity=self.last_activity,
            ui_state=copy.deepcopy(self.ui_state),
            workspace_data=copy.deepcopy(self.workspace_data),
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping used for durable storage."""
        return {
            "session_id": self.session_id,
            "created_at": self.created_at,
            "last_activity": self.last_activity,
            "ui_state": copy.deepcopy(self.ui_state),
            "workspace_data": copy.deepcopy(self.workspace_data),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SessionRecord:
        return cls(
            session_id=raw["session_id"],
            created_at=float(raw["created_at"]),
            last_activity=float(raw["last_activity"]),
            ui_state=dict(raw.get("ui_state") or {}),
            workspace_data=dict(raw.get("workspace_data") or {}),
        )

    def to_json(self) -> dict[str, Any]:
        """Wire shape of a session.

        Upload entries are sent as metadata only; their base64 payload stays
        on the server.
        """
        workspace = copy.deepcopy(self.workspace_data)
        uploads = workspace.get("uploads")
        if isinstance(uploads, list):
            workspace["uploads"] = [
                {k: v for k, v in entry.items() if k != "data"}
                if isinstance(entry, dict)
                else entry
                for entry in uploads
            ]
        return {
            "sessionId": self.session_id,
            "createdAt": to_iso(self.created_at),
            "lastActivity": to_iso(self.last_activity),
            "uiState": copy.deepcopy(self.ui_state),
            "workspaceData": workspace,
        }


@dataclass
class StorageStats:
    """Storage statistics for monitoring and the health endpoint."""

    total_sessions: int
    total_uploads: int
    oldest_activity: float | None
    memory_usage_percent: float
    disk_usage_percent: float
    tier: StorageTier
