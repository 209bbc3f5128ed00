"""Tests for the minimum viable record check."""

import pytest

from idscan.extraction.field_extractor import FieldKey
from idscan.validation.validator import ValidationReport, Validator


@pytest.fixture
def validator() -> Validator:
    return Validator()


class TestValidate:
    """Tests for the required-field rule."""

    def test_name_and_id_present(self, validator: Validator) -> None:
        fields = {FieldKey.NAME: "Jane Doe", FieldKey.ID_NUMBER: "D1234567"}
        assert validator.validate(fields) is True

    def test_missing_id_number(self, validator: Validator) -> None:
        assert validator.validate({FieldKey.NAME: "Jane Doe"}) is False

    def test_missing_name(self, validator: Validator) -> None:
        fields = {FieldKey.ID_NUMBER: "D1234567", FieldKey.DATE_OF_BIRTH: "01/02/1990"}
        assert validator.validate(fields) is False

    def test_blank_value_counts_as_missing(self, validator: Validator) -> None:
        fields = {FieldKey.NAME: "   ", FieldKey.ID_NUMBER: "D1234567"}
        assert validator.validate(fields) is False

    def test_empty(self, validator: Validator) -> None:
        assert validator.validate({}) is False


class TestCheck:
    """Tests for the detailed validation report."""

    def test_report_lists_missing(self, validator: Validator) -> None:
        report = validator.check({FieldKey.NAME: "Jane Doe"})
        assert isinstance(report, ValidationReport)
        assert report.is_valid is False
        assert report.missing == [FieldKey.ID_NUMBER]
        assert "id_number" in report.message

    def test_known_date_layouts_no_warnings(self, validator: Validator) -> None:
        fields = {
            FieldKey.NAME: "Jane Doe",
            FieldKey.ID_NUMBER: "D1234567",
            FieldKey.DATE_OF_BIRTH: "04/12/1990",
            FieldKey.EXPIRATION_DATE: "31.08.28",
        }
        report = validator.check(fields)
        assert report.is_valid is True
        assert report.warnings == []

    def test_unknown_date_layout_warns_only(self, validator: Validator) -> None:
        fields = {
            FieldKey.NAME: "Jane Doe",
            FieldKey.ID_NUMBER: "D1234567",
            FieldKey.DATE_OF_BIRTH: "31/31/1990",
        }
        report = validator.check(fields)
        assert report.is_valid is True
        assert len(report.warnings) == 1
        assert "date_of_birth" in report.warnings[0]

    def test_check_agrees_with_validate(self, validator: Validator) -> None:
        for fields in (
            {},
            {FieldKey.NAME: "A B"},
            {FieldKey.NAME: "A B", FieldKey.ID_NUMBER: "1234"},
        ):
            assert validator.check(fields).is_valid == validator.validate(fields)
