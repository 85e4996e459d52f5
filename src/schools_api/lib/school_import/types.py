"""Data types for the school_import library.

Defines the in-memory structures produced by the CSV parsers and consumed
by the batch coordinator: parsed school rows, derived district records,
and planned batches.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum


class CsvFormat(StrEnum):
    """Physical layout of a school directory CSV."""

    HEADERED = "headered"
    HEADERLESS = "headerless"


@dataclass(frozen=True)
class SchoolRow:
    """One school record parsed from a directory CSV, before persistence.

    Only ``name`` is required; every other field is ``None`` when the
    source column is missing or blank. ``district_nces_id`` is the
    district's external id and is resolved to an internal id at insert time.
    """

    name: str
    nces_id: str | None = None
    state: str | None = None
    state_name: str | None = None
    city: str | None = None
    address: str | None = None
    zip: str | None = None
    phone: str | None = None
    website: str | None = None
    level: str | None = None
    school_type: str | None = None
    operational_status: str | None = None
    district_nces_id: str | None = None
    district_name: str | None = None
    county: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    school_year: str | None = None
    sy_status: str | None = None
    charter_status: str | None = None
    magnet_status: str | None = None
    virtual_status: str | None = None
    title1_status: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Return the row as a plain dict."""
        return asdict(self)


@dataclass(frozen=True)
class DistrictData:
    """A parent district derived from the school rows that reference it."""

    nces_id: str
    name: str | None = None
    state: str | None = None
    state_name: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Return the district as a plain dict."""
        return asdict(self)


@dataclass(frozen=True)
class DistrictRecord:
    """A full district row from the NCES LEA directory file."""

    nces_id: str
    name: str | None = None
    state: str | None = None
    state_name: str | None = None
    state_lea_id: str | None = None
    address: str | None = None
    city: str | None = None
    zip: str | None = None
    zip4: str | None = None
    phone: str | None = None
    website: str | None = None
    lea_type: str | None = None
    lea_type_text: str | None = None
    charter_lea: str | None = None
    operational_status: str | None = None
    operational_status_text: str | None = None
    lowest_grade: str | None = None
    highest_grade: str | None = None
    operational_schools: int = 0

    def to_dict(self) -> dict[str, object]:
        """Return the record as a plain dict."""
        return asdict(self)


@dataclass
class ParseResult:
    """Outcome of parsing a school directory CSV.

    Attributes:
        rows: Admitted school rows, in file order.
        format: Detected physical layout.
        scientific_notation_fixed: Rows whose school id was repaired
            from spreadsheet scientific notation.
    """

    rows: list[SchoolRow] = field(default_factory=list)
    format: CsvFormat = CsvFormat.HEADERED
    scientific_notation_fixed: int = 0

    @property
    def format_label(self) -> str:
        return self.format.value


@dataclass(frozen=True)
class SchoolBatch:
    """One coordinator step: a slice of rows plus the districts it references."""

    batch_index: int
    total_batches: int
    is_last_batch: bool
    schools: list[SchoolRow]
    districts: list[DistrictData]
