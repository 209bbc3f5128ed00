"""Pattern-based extraction of identity fields from recognized text lines.

Each line is sanitized and matched against labelled patterns for name,
date of birth, ID number, expiration date, address, and issuing state.
Free-text fields keep the longest capture across lines; every other field
keeps its first capture.
"""

import re
from dataclasses import dataclass
from enum import StrEnum

from idscan.utils.logger import get_logger

logger = get_logger(__name__)


class FieldKey(StrEnum):
    """Identity fields the extractor can produce."""

    NAME = "name"
    DATE_OF_BIRTH = "date_of_birth"
    ID_NUMBER = "id_number"
    EXPIRATION_DATE = "expiration_date"
    ADDRESS = "address"
    STATE = "state"


ExtractedFields = dict[FieldKey, str]

FREE_TEXT_FIELDS = frozenset({FieldKey.NAME, FieldKey.ADDRESS})

_DATE = r"(\d{1,2}[/.\-]\d{1,2}[/.\-]\d{2,4})"

# Labelled patterns; group 1 is the value. Longer labels come first.
_FIELD_PATTERNS: dict[FieldKey, re.Pattern[str]] = {
    FieldKey.NAME: re.compile(
        r"^(?:full\s+name|first\s+name|last\s+name|given\s+name|surname|forename|name)"
        r"\b\s*:?\s*(.+)$",
        re.IGNORECASE,
    ),
    FieldKey.DATE_OF_BIRTH: re.compile(
        r"(?:^|\s)(?:date\s+of\s+birth|birth\s+date|birthday|born|dob)\b\s*:?\s*"
        + _DATE
        + r"(?:$|\s)",
        re.IGNORECASE,
    ),
    FieldKey.ID_NUMBER: re.compile(
        r"(?:^|\s)(?:id|license)\b(?:\s*(?:number|no\.?|#))?"
        r"(?:\s*[:#.\-]\s*|\s+)([a-z0-9\-]{4,})(?:$|\s)",
        re.IGNORECASE,
    ),
    FieldKey.EXPIRATION_DATE: re.compile(
        r"(?:^|\s)(?:expiration\s+date|expiration|expires|expiry|exp|valid\s+until)"
        r"\b\.?\s*:?\s*" + _DATE + r"(?:$|\s)",
        re.IGNORECASE,
    ),
    FieldKey.ADDRESS: re.compile(
        r"(?:^|\s)(?:address|addr|residence|location)\b\s*:?\s*(.+)$",
        re.IGNORECASE,
    ),
}

_STATE_LABEL_PATTERNS = (
    re.compile(
        r"(?:^|\s)(?:issuing\s+state\b\s*:?|state\s*:)\s*([a-z]{2})(?:$|\s)",
        re.IGNORECASE,
    ),
    # A bare "STATE XX" only when nothing follows, so headers like
    # "STATE ID CARD" are not read as a code.
    re.compile(r"(?:^|\s)state\s+([a-z]{2})\s*$", re.IGNORECASE),
)
# "City, ST 12345" as printed on the address block.
_STATE_ZIP_PATTERN = re.compile(r",\s*([A-Z]{2})\s+\d{5}(?:-\d{4})?\b")

US_STATE_CODES = frozenset(
    {
        "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "DC", "FL", "GA", "HI",
        "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD", "MA", "MI", "MN",
        "MS", "MO", "MT", "NE", "NV", "NH", "NJ", "NM", "NY", "NC", "ND", "OH",
        "OK", "OR", "PA", "RI", "SC", "SD", "TN", "TX", "UT", "VT", "VA", "WA",
        "WV", "WI", "WY", "AS", "GU", "MP", "PR", "VI",
    }
)

_QUOTE_TRANSLATION = str.maketrans(
    {
        "‘": "'",
        "’": "'",
        "“": '"',
        "”": '"',
        ";": ",",
    }
)


@dataclass(frozen=True)
class FieldMatch:
    """A sanitized candidate value found on one line."""

    key: FieldKey
    value: str
    line_number: int
    from_address: bool = False


def sanitize_line(line: str) -> str:
    """Trim a line and normalize curly quotes and semicolons."""
    return line.strip().translate(_QUOTE_TRANSLATION)


def title_case(value: str) -> str:
    """Capitalize the first letter of each whitespace-separated word."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in value.split())


def sanitize_free_text(value: str) -> str:
    """Clean a name or address value.

    Values shorter than two characters are discarded. Fully uppercase
    values longer than three characters are converted to title case.
    """
    value = sanitize_line(value)
    if len(value) < 2:
        return ""
    if value == value.upper() and len(value) > 3:
        value = title_case(value)
    return value


def sanitize_id_number(value: str) -> str:
    """Fix common OCR confusions in an ID number.

    ``O`` becomes ``0``, ``I`` becomes ``1``, and spaces are removed.
    Results shorter than four characters are discarded.
    """
    value = value.strip().replace("O", "0").replace("I", "1").replace(" ", "")
    if len(value) < 4:
        return ""
    return value


def sanitize_date(value: str) -> str:
    """Trim a date value. The format is kept as printed on the card."""
    return value.strip()


def _state_candidate(line: str) -> tuple[str, bool]:
    """Return the state code on a line and whether it came from an address tail."""
    match = _STATE_ZIP_PATTERN.search(line)
    if match and match.group(1) in US_STATE_CODES:
        return match.group(1), True
    for pattern in _STATE_LABEL_PATTERNS:
        match = pattern.search(line)
        if match and match.group(1).upper() in US_STATE_CODES:
            return match.group(1).upper(), False
    return "", False


_SANITIZERS = {
    FieldKey.NAME: sanitize_free_text,
    FieldKey.DATE_OF_BIRTH: sanitize_date,
    FieldKey.ID_NUMBER: sanitize_id_number,
    FieldKey.EXPIRATION_DATE: sanitize_date,
    FieldKey.ADDRESS: sanitize_free_text,
}


class FieldExtractor:
    """Turns recognized text lines into identity fields.

    Stateless and deterministic: the same lines in the same order always
    produce the same fields.
    """

    def extract_matches(self, lines: list[str]) -> list[FieldMatch]:
        """Find every candidate value, before conflict resolution.

        Args:
            lines: Recognized text lines in reading order.

        Returns:
            Candidates in line order, then field order within a line.
        """
        matches: list[FieldMatch] = []
        for number, raw_line in enumerate(lines):
            line = sanitize_line(raw_line)
            if not line:
                continue

            for key, pattern in _FIELD_PATTERNS.items():
                match = pattern.search(line)
                if not match:
                    continue
                value = _SANITIZERS[key](match.group(1))
                if value:
                    matches.append(FieldMatch(key, value, number))

            state, from_address = _state_candidate(line)
            if state:
                matches.append(
                    FieldMatch(FieldKey.STATE, state, number, from_address)
                )

        return matches

    def extract(self, lines: list[str]) -> ExtractedFields:
        """Extract identity fields from recognized text lines.

        Name and address are replaced only by a strictly longer candidate
        from a later line. A state read from an address tail replaces one
        read from a label. All other fields keep the first candidate.

        Args:
            lines: Recognized text lines in reading order.

        Returns:
            Mapping containing only the fields that were found.
        """
        fields: ExtractedFields = {}
        state_from_address = False
        for match in self.extract_matches(lines):
            current = fields.get(match.key)
            if match.key == FieldKey.STATE:
                if current is None or (match.from_address and not state_from_address):
                    fields[match.key] = match.value
                    state_from_address = match.from_address
            elif current is None:
                fields[match.key] = match.value
            elif match.key in FREE_TEXT_FIELDS and len(match.value) > len(current):
                fields[match.key] = match.value

        logger.info(
            "Field extraction found %d fields: %s",
            len(fields),
            ", ".join(sorted(fields)),
        )
        return fields
