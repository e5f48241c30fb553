"""Unit tests for session id and upload helpers."""

import base64
import re

import pytest

from gridsync.errors import InvalidInputError, PayloadTooLargeError
from gridsync.utils.session_utils import (
    is_valid_session_id,
    new_local_session_id,
    new_session_id,
    validate_session_id,
)
from gridsync.utils.upload_utils import (
    build_upload_info,
    public_upload_info,
    summarize_csv,
    validate_upload,
)

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class TestSessionIds:
    def test_new_session_id_is_valid(self):
        assert is_valid_session_id(new_session_id())

    def test_uppercase_accepted(self):
        assert validate_session_id(new_session_id().upper())

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "not-a-uuid",
            # Version 1 UUID
            "6fa459ea-ee8a-11ca-a3c8-0002a5d5c51b",
            # Bad variant nibble
            "0b7c3f0e-8a1d-4c1e-7f57-1f3c6c1b2a90",
            " 0b7c3f0e-8a1d-4c1e-9f57-1f3c6c1b2a90",
        ],
    )
    def test_malformed_ids_rejected(self, value):
        with pytest.raises(InvalidInputError):
            validate_session_id(value)

    def test_none_rejected(self):
        with pytest.raises(InvalidInputError, match="required"):
            validate_session_id(None)

    def test_non_string_is_not_valid(self):
        assert is_valid_session_id(1234) is False

    def test_local_session_id_format(self):
        assert re.match(r"^local_\d+_[0-9a-z]{9}$", new_local_session_id())
        assert not is_valid_session_id(new_local_session_id())


class TestUploadUtils:
    @pytest.mark.parametrize("mimetype", ["text/csv", "application/vnd.ms-excel", XLSX])
    def test_allowed_types(self, mimetype):
        validate_upload(mimetype, 10)

    @pytest.mark.parametrize("mimetype", ["application/pdf", "image/png", None])
    def test_rejected_types(self, mimetype):
        with pytest.raises(InvalidInputError, match="Invalid file type"):
            validate_upload(mimetype, 10)

    def test_size_cap(self):
        validate_upload("text/csv", 100, max_bytes=100)
        with pytest.raises(PayloadTooLargeError):
            validate_upload("text/csv", 101, max_bytes=100)

    def test_summarize_csv(self, sample_csv_bytes):
        assert summarize_csv(sample_csv_bytes) == {
            "rows": 3,
            "columns": ["name", "age", "city"],
        }

    def test_summarize_empty_csv(self):
        assert summarize_csv(b"") is None

    def test_build_upload_info_for_csv(self, sample_csv_bytes):
        info = build_upload_info("people.csv", "text/csv", sample_csv_bytes, uploaded_at=0)

        assert info["originalName"] == "people.csv"
        assert info["size"] == len(sample_csv_bytes)
        assert info["uploadedAt"] == "1970-01-01T00:00:00+00:00"
        assert base64.b64decode(info["data"]) == sample_csv_bytes
        assert info["summary"]["rows"] == 3

    def test_excel_upload_has_no_summary(self):
        info = build_upload_info("book.xlsx", XLSX, b"PK\x03\x04")

        assert "summary" not in info

    def test_public_upload_info_drops_payload(self, sample_csv_bytes):
        info = build_upload_info("people.csv", "text/csv", sample_csv_bytes)

        public = public_upload_info(info)

        assert "data" not in public
        assert public["originalName"] == "people.csv"
