"""School import library public API.

Provides school and district directory CSV parsing, district extraction,
and batch planning. Everything here is pure: no database access.
"""

from schools_api.lib.school_import.batching import plan_batches
from schools_api.lib.school_import.district_parser import parse_district_csv
from schools_api.lib.school_import.districts import DedupPolicy, dedupe_districts, extract_districts
from schools_api.lib.school_import.parser import (
    PositionalSchemaError,
    decode_csv_bytes,
    detect_format,
    parse_float,
    parse_school_csv,
    repair_scientific_notation,
    tokenize_csv_line,
)
from schools_api.lib.school_import.types import (
    CsvFormat,
    DistrictData,
    DistrictRecord,
    ParseResult,
    SchoolBatch,
    SchoolRow,
)

__all__ = [
    "CsvFormat",
    "DedupPolicy",
    "DistrictData",
    "DistrictRecord",
    "ParseResult",
    "PositionalSchemaError",
    "SchoolBatch",
    "SchoolRow",
    "decode_csv_bytes",
    "dedupe_districts",
    "detect_format",
    "extract_districts",
    "parse_district_csv",
    "parse_float",
    "parse_school_csv",
    "plan_batches",
    "repair_scientific_notation",
    "tokenize_csv_line",
]
