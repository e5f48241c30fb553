from __future__ import annotations

from ..storage_types import SessionRecord, to_iso


def summarize_session(record: SessionRecord | None, max_items: int = 10) -> str:
    """Produce a human-readable summary of one session record.

    Pure utility (no side effects); cell contents are never included.
    """
    lines: list[str] = ["=== INSPECT SESSION ==="]
    if record is None:
        return "\n".join(lines + ["Session not found."])

    lines.append(f"Session: {record.session_id}")
    lines.append(f"Created: {to_iso(record.created_at)}")
    lines.append(f"Last activity: {to_iso(record.last_activity)}")
    lines.append("")
    lines.append("uiState:")
    for key in sorted(record.ui_state)[:max_items]:
        value = record.ui_state[key]
        if isinstance(value, dict):
            lines.append(f"  {key}: {{{len(value)} fields}}")
        else:
            lines.append(f"  {key}: {value!r}")
    lines.append("workspaceData:")
    for key in sorted(record.workspace_data)[:max_items]:
        value = record.workspace_data[key]
        lines.append(f"  {key}: {len(value)} item(s)")
    return "\n".join(lines)
