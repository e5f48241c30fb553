"""
Session state schema and merge rules.

Both the server-of-record and the client cache use the same two halves:

- ``uiState``: fixed set of keys (see ``UI_STATE_SCHEMA``). Scalars are
  type-checked, mapping-valued fields (``fileConfigs``, ``docProps``,
  ``pqQuery``, ``gridView``) must be mappings and are replaced wholesale by
  a patch, never deep-merged.
- ``workspaceData``: fixed set of keys, each an ordered list whose element
  type is opaque.

All functions here are pure: they never mutate their arguments.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from .errors import InvalidInputError
from .storage_types import ActiveTab

logger = logging.getLogger(__name__)

ACTIVE_TABS = frozenset(tab.value for tab in ActiveTab)

UI_STATE_SCHEMA: dict[str, type] = {
    "activeTab": str,
    "excelToggle": bool,
    "sidebarCollapsed": bool,
    "fileConfigs": dict,
    "docProps": dict,
    "pqQuery": dict,
    "gridView": dict,
}

WORKSPACE_KEYS = ("gridData", "tableData", "pqQueryData", "uploads")

# Uploads only grow through the upload endpoint, so pushes leave them out.
PUSHED_WORKSPACE_KEYS = ("gridData", "tableData", "pqQueryData")

SESSION_ID_KEY = "sessionId"


def default_ui_state() -> dict[str, Any]:
    return {
        "activeTab": ActiveTab.GRID.value,
        "excelToggle": False,
        "sidebarCollapsed": False,
        "fileConfigs": {"tableName": "Table1", "sheetName": "Sheet1"},
        "docProps": {
            "title": "",
            "subject": "",
            "keywords": "",
            "createdBy": "",
            "description": "",
            "lastModifiedBy": "",
            "category": "",
            "revision": "",
        },
        "pqQuery": {"queryMashup": "", "refreshOnOpen": False, "queryName": "Query1"},
        "gridView": {
            "isGridView": False,
            "promoteHeaders": False,
            "adjustColumnNames": False,
        },
    }


def default_workspace_data() -> dict[str, list[Any]]:
    return {key: [] for key in WORKSPACE_KEYS}


def default_local_state(session_id: str | None = None) -> dict[str, Any]:
    """Flat client-side state: session id, ui fields and workspace lists."""
    state: dict[str, Any] = {SESSION_ID_KEY: session_id}
    state.update(default_ui_state())
    state.update(default_workspace_data())
    return state


def shallow_merge(base: Mapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` with every top-level key of ``patch`` replaced.

    Keys absent from ``patch`` are kept. Values are copied so the result
    shares no mutable structure with either input.
    """
    merged = copy.deepcopy(dict(base))
    for key, value in patch.items():
        merged[key] = copy.deepcopy(value)
    return merged


def validate_ui_state_patch(patch: Any) -> dict[str, Any]:
    if not isinstance(patch, Mapping):
        raise InvalidInputError("Invalid UI state data")
    for key, value in patch.items():
        expected = UI_STATE_SCHEMA.get(key)
        if expected is None:
            raise InvalidInputError(f"Invalid UI state data: unknown key '{key}'")
        # bool is an int subclass; only exact types are accepted for flags.
        if expected is bool and not isinstance(value, bool):
            raise InvalidInputError(f"Invalid UI state data: '{key}' must be a boolean")
        if expected is dict and not isinstance(value, Mapping):
            raise InvalidInputError(f"Invalid UI state data: '{key}' must be an object")
        if expected is str and not isinstance(value, str):
            raise InvalidInputError(f"Invalid UI state data: '{key}' must be a string")
    active_tab = patch.get("activeTab")
    if active_tab is not None and active_tab not in ACTIVE_TABS:
        raise InvalidInputError(
            f"Invalid UI state data: unknown activeTab '{active_tab}'"
        )
    return dict(patch)


def validate_workspace_patch(patch: Any) -> dict[str, list[Any]]:
    if not isinstance(patch, Mapping):
        raise InvalidInputError("Invalid workspace data")
    for key, value in patch.items():
        if key not in WORKSPACE_KEYS:
            raise InvalidInputError(f"Invalid workspace data: unknown key '{key}'")
        if not isinstance(value, list):
            raise InvalidInputError(f"Invalid workspace data: '{key}' must be an array")
    return dict(patch)


def split_local_state(
    state: Mapping[str, Any],
) -> tuple[dict[str, Any], dict[str, list[Any]]]:
    """Split a flat local state into the (uiState, workspaceData) a push sends.

    Fields the server would reject are left out, so one bad local value
    cannot block every later push.
    """
    ui_state: dict[str, Any] = {}
    for key in UI_STATE_SCHEMA:
        if key not in state:
            continue
        try:
            validate_ui_state_patch({key: state[key]})
        except InvalidInputError as e:
            logger.warning(f"Leaving '{key}' out of the push: {e}")
            continue
        ui_state[key] = copy.deepcopy(state[key])
    workspace_data = {
        key: copy.deepcopy(state[key])
        for key in PUSHED_WORKSPACE_KEYS
        if isinstance(state.get(key), list)
    }
    return ui_state, workspace_data


def adopt_session(session: Mapping[str, Any]) -> dict[str, Any]:
    """Build a flat local state from a session as returned by the server."""
    state = default_local_state(session.get(SESSION_ID_KEY))
    ui_state = session.get("uiState") or {}
    workspace_data = session.get("workspaceData") or {}
    state = shallow_merge(
        state, {k: v for k, v in ui_state.items() if k in UI_STATE_SCHEMA}
    )
    state = shallow_merge(
        state, {k: v for k, v in workspace_data.items() if k in WORKSPACE_KEYS}
    )
    return state
