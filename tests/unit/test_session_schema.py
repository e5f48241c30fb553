"""Unit tests for the state schema, merge and split rules."""

import pytest

from gridsync.errors import InvalidInputError
from gridsync.session_schema import (
    UI_STATE_SCHEMA,
    WORKSPACE_KEYS,
    adopt_session,
    default_local_state,
    default_ui_state,
    shallow_merge,
    split_local_state,
    validate_ui_state_patch,
    validate_workspace_patch,
)


class TestShallowMerge:
    def test_patch_keys_replace_base_keys(self):
        base = {"a": 1, "nested": {"x": 1, "y": 2}}

        merged = shallow_merge(base, {"nested": {"x": 5}})

        assert merged == {"a": 1, "nested": {"x": 5}}

    def test_inputs_are_not_mutated_or_shared(self):
        base = {"rows": [[1]]}
        patch = {"cols": [2]}

        merged = shallow_merge(base, patch)
        merged["rows"].append([3])
        merged["cols"].append(4)

        assert base == {"rows": [[1]]}
        assert patch == {"cols": [2]}


class TestUiStateValidation:
    def test_subset_of_schema_accepted(self):
        assert validate_ui_state_patch({"activeTab": "table"}) == {"activeTab": "table"}

    def test_full_default_state_accepted(self):
        validate_ui_state_patch(default_ui_state())

    @pytest.mark.parametrize(
        "patch",
        [
            {"activeTab": "bogus"},
            {"activeTab": None},
            {"activeTab": 3},
            {"excelToggle": "yes"},
            {"excelToggle": 1},
            {"fileConfigs": ["Table1"]},
            {"unknownField": True},
        ],
    )
    def test_invalid_patches_rejected(self, patch):
        with pytest.raises(InvalidInputError):
            validate_ui_state_patch(patch)

    @pytest.mark.parametrize("patch", [None, [], "grid", 5])
    def test_non_mapping_rejected(self, patch):
        with pytest.raises(InvalidInputError, match="Invalid UI state data"):
            validate_ui_state_patch(patch)


class TestWorkspaceValidation:
    def test_lists_accepted(self):
        patch = {"gridData": [["a"]], "uploads": []}
        assert validate_workspace_patch(patch) == patch

    def test_non_list_value_rejected(self):
        with pytest.raises(InvalidInputError, match="Invalid workspace data"):
            validate_workspace_patch({"gridData": {"rows": 3}})

    def test_unknown_key_rejected(self):
        with pytest.raises(InvalidInputError):
            validate_workspace_patch({"scratch": []})


class TestLocalStateShape:
    def test_default_local_state_is_flat(self):
        state = default_local_state("local_1_abc")

        assert state["sessionId"] == "local_1_abc"
        assert set(UI_STATE_SCHEMA) <= set(state)
        assert set(WORKSPACE_KEYS) <= set(state)

    def test_split_excludes_session_id_and_uploads(self):
        state = default_local_state("sid")
        state["gridData"] = [["1", "2"]]
        state["uploads"] = [{"originalName": "a.csv"}]

        ui_state, workspace_data = split_local_state(state)

        assert "sessionId" not in ui_state
        assert set(ui_state) == set(UI_STATE_SCHEMA)
        assert workspace_data == {"gridData": [["1", "2"]], "tableData": [], "pqQueryData": []}

    def test_split_output_passes_server_validation(self):
        ui_state, workspace_data = split_local_state(default_local_state())

        validate_ui_state_patch(ui_state)
        validate_workspace_patch(workspace_data)

    def test_split_drops_fields_the_server_would_reject(self):
        state = default_local_state()
        state["docProps"] = "oops"
        state["activeTab"] = None
        state["tableData"] = "not-a-list"

        ui_state, workspace_data = split_local_state(state)

        assert "docProps" not in ui_state
        assert "activeTab" not in ui_state
        assert ui_state["excelToggle"] is False
        assert "tableData" not in workspace_data
        validate_ui_state_patch(ui_state)

    def test_adopt_session(self):
        session = {
            "sessionId": "0b7c3f0e-8a1d-4c1e-9f57-1f3c6c1b2a90",
            "uiState": {"activeTab": "table", "legacy": 1},
            "workspaceData": {"gridData": [["x"]]},
        }

        state = adopt_session(session)

        assert state["sessionId"] == session["sessionId"]
        assert state["activeTab"] == "table"
        assert state["gridData"] == [["x"]]
        assert state["pqQueryData"] == []
        assert "legacy" not in state
