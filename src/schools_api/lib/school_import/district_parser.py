"""NCES LEA (district) directory CSV parser."""

from loguru import logger

from schools_api.lib.school_import.columns import DISTRICT_COLUMN_MAP
from schools_api.lib.school_import.parser import (
    build_header_index,
    clean_value,
    repair_scientific_notation,
    split_lines,
    tokenize_csv_line,
)
from schools_api.lib.school_import.types import DistrictRecord


def _parse_int(value: str) -> int:
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return 0


def parse_district_csv(text: str) -> list[DistrictRecord]:
    """Parse an LEA directory file into district records.

    The first line is the header. Lines without an ``LEAID`` are dropped;
    ``OPERATIONAL_SCHOOLS`` defaults to 0 when missing or non-numeric.

    Args:
        text: Full CSV file contents.

    Returns:
        District records in file order.
    """
    lines = split_lines(text)
    if len(lines) < 2:
        return []

    header_index = build_header_index(lines[0])
    if "LEAID" not in header_index:
        logger.warning("District CSV has no LEAID column; no districts will be imported")
        return []

    records: list[DistrictRecord] = []
    for line in lines[1:]:
        values = tokenize_csv_line(line)
        raw: dict[str, str] = {}
        for header, field_name in DISTRICT_COLUMN_MAP.items():
            idx = header_index.get(header)
            raw[field_name] = clean_value(values[idx]) if idx is not None and idx < len(values) else ""

        nces_id = repair_scientific_notation(raw.pop("nces_id"))
        if not nces_id:
            continue

        operational_schools = _parse_int(raw.pop("operational_schools"))
        records.append(
            DistrictRecord(
                nces_id=nces_id,
                operational_schools=operational_schools,
                **{k: (v or None) for k, v in raw.items()},
            )
        )

    logger.info(f"Parsed {len(records)} districts from LEA directory CSV")
    return records
