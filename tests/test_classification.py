"""Tests for remote/employment classification, date parsing and id synthesis."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from jobnest.models.job import EmploymentType, NormalizedJobRecord, RemoteType
from jobnest.sources.common import (
    classify_employment_type,
    classify_remote_type,
    coerce_flag,
    coerce_mapping,
    coerce_str_list,
    parse_posted_at,
    stable_external_id,
)


class TestRemoteType:
    """Test suite for classify_remote_type."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Remote (EU timezone preferred)", RemoteType.REMOTE),
            ("Hybrid - 3 days onsite", RemoteType.HYBRID),
            ("Berlin, on-site", RemoteType.ONSITE),
            ("Onsite in Lahore", RemoteType.ONSITE),
            ("", RemoteType.UNKNOWN),
            (None, RemoteType.UNKNOWN),
            ("Karachi, Pakistan", RemoteType.UNKNOWN),
        ],
    )
    def test_classification(self, text: str | None, expected: RemoteType) -> None:
        assert classify_remote_type(text) == expected

    def test_hybrid_wins_over_remote(self) -> None:
        """Hybrid is checked before remote, so mixed text is hybrid."""
        assert classify_remote_type("Remote / Hybrid") == RemoteType.HYBRID

    def test_case_insensitive(self) -> None:
        assert classify_remote_type("REMOTE") == RemoteType.REMOTE


class TestEmploymentType:
    """Test suite for classify_employment_type."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Full-time", EmploymentType.FULL_TIME),
            ("FULLTIME", EmploymentType.FULL_TIME),
            ("part_time", EmploymentType.PART_TIME),
            ("Contract", EmploymentType.CONTRACT),
            ("Internship", EmploymentType.INTERNSHIP),
            ("freelance", EmploymentType.FREELANCE),
            ("Temporary", EmploymentType.TEMPORARY),
            ("", EmploymentType.UNKNOWN),
            (None, EmploymentType.UNKNOWN),
            ("volunteer", EmploymentType.UNKNOWN),
        ],
    )
    def test_classification(self, text: str | None, expected: EmploymentType) -> None:
        assert classify_employment_type(text) == expected


class TestParsePostedAt:
    """Test suite for provider date parsing."""

    def test_iso_with_z(self) -> None:
        dt = parse_posted_at("2024-03-01T10:00:00Z")
        assert dt == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_iso_with_offset_converted_to_utc(self) -> None:
        dt = parse_posted_at("2024-03-01T12:00:00+02:00")
        assert dt == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_unix_seconds(self) -> None:
        assert parse_posted_at(1700000000) == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    def test_unix_milliseconds(self) -> None:
        assert parse_posted_at(1700000000000) == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    def test_numeric_string(self) -> None:
        assert parse_posted_at("1700000000") == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    def test_free_text_format(self) -> None:
        assert parse_posted_at("March 1, 2024") == datetime(2024, 3, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", True, {"a": 1}])
    def test_unparseable_returns_none(self, value) -> None:
        assert parse_posted_at(value) is None


class TestCoercion:
    """Test suite for the loose-type helpers used by provider rows."""

    @pytest.mark.parametrize(
        "value, expected",
        [(True, True), ("true", True), (" Yes ", True), (1, True), (0, False), ("false", False), ([], False)],
    )
    def test_flag(self, value, expected: bool) -> None:
        assert coerce_flag(value) is expected

    def test_str_list(self) -> None:
        assert coerce_str_list("python") == ["python"]
        assert coerce_str_list([None, " go ", "", 3]) == ["go", "3"]
        assert coerce_str_list({"a": 1}) == []

    def test_mapping(self) -> None:
        assert coerce_mapping({"k": 1}) == {"k": 1}
        assert coerce_mapping([]) == {}


class TestExternalId:
    """Test suite for synthesized external ids."""

    def test_stable(self) -> None:
        a = stable_external_id("Dev", "Acme", "https://example.com/1")
        b = stable_external_id("Dev", "Acme", "https://example.com/1")
        assert a == b

    def test_differs_by_url(self) -> None:
        a = stable_external_id("Dev", "Acme", "https://example.com/1")
        b = stable_external_id("Dev", "Acme", "https://example.com/2")
        assert a != b

    def test_ignores_surrounding_whitespace(self) -> None:
        assert stable_external_id(" Dev ", "Acme", None) == stable_external_id("Dev", "Acme", "")


class TestNormalizedJobRecord:
    """Test suite for record validation."""

    def test_blank_title_rejected(self) -> None:
        with pytest.raises(Exception):
            NormalizedJobRecord(external_id="x", title="   ")

    def test_blank_external_id_rejected(self) -> None:
        with pytest.raises(Exception):
            NormalizedJobRecord(external_id="", title="Dev")

    def test_fields_stripped(self) -> None:
        record = NormalizedJobRecord(external_id=" 42 ", title=" Dev ")
        assert record.external_id == "42"
        assert record.title == "Dev"

    def test_defaults(self) -> None:
        record = NormalizedJobRecord(external_id="1", title="Dev")
        assert record.remote_type == RemoteType.UNKNOWN
        assert record.employment_type == EmploymentType.UNKNOWN
        assert record.tags == {}
