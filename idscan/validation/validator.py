"""Completeness check for extracted identity fields.

A scan is actionable only when it yields both a name and an ID number.
Date fields are additionally checked against known layouts, but those
checks only produce warnings.
"""

from dataclasses import dataclass, field
from datetime import datetime

from idscan.extraction.field_extractor import ExtractedFields, FieldKey
from idscan.utils.logger import get_logger

logger = get_logger(__name__)

REQUIRED_FIELDS: tuple[FieldKey, ...] = (FieldKey.NAME, FieldKey.ID_NUMBER)

DATE_FIELDS: tuple[FieldKey, ...] = (FieldKey.DATE_OF_BIRTH, FieldKey.EXPIRATION_DATE)

DATE_FORMATS: list[str] = [
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%m-%d-%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%m.%d.%Y",
    "%m/%d/%y",
    "%d/%m/%y",
    "%m-%d-%y",
    "%d.%m.%y",
]


@dataclass
class ValidationReport:
    """Outcome of validating one set of extracted fields."""

    is_valid: bool
    missing: list[FieldKey] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.is_valid:
            return "Required fields present"
        names = ", ".join(key.value for key in self.missing)
        return f"Required fields missing: {names}"


def _is_known_date(value: str) -> bool:
    for fmt in DATE_FORMATS:
        try:
            datetime.strptime(value, fmt)
            return True
        except ValueError:
            continue
    return False


class Validator:
    """Checks that extracted fields form a minimum viable ID record."""

    def validate(self, fields: ExtractedFields) -> bool:
        """Return ``True`` iff name and ID number are present and non-empty."""
        return all(fields.get(key, "").strip() for key in REQUIRED_FIELDS)

    def check(self, fields: ExtractedFields) -> ValidationReport:
        """Validate fields and report what is missing or suspicious.

        Args:
            fields: Extracted identity fields.

        Returns:
            Report whose ``is_valid`` always equals ``validate(fields)``.
        """
        missing = [key for key in REQUIRED_FIELDS if not fields.get(key, "").strip()]
        warnings = [
            f"Unrecognized date layout for {key.value}: {fields[key]}"
            for key in DATE_FIELDS
            if key in fields and not _is_known_date(fields[key])
        ]
        report = ValidationReport(
            is_valid=not missing, missing=missing, warnings=warnings
        )
        logger.info(
            "Validation %s (%d warnings)",
            "PASSED" if report.is_valid else "FAILED",
            len(warnings),
        )
        return report
