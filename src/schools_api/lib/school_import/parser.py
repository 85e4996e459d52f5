"""School directory CSV parser.

Parses NCES Common Core of Data school directory exports in either of two
layouts: a headered file addressed by column name, or a headerless
("Part 2") file addressed by column position. Identifier columns that were
round-tripped through spreadsheet software are repaired from scientific
notation back to their full digit strings.

Parsing is best-effort: malformed, short, or nameless lines are dropped
rather than raised, so the caller sees fewer rows instead of an error.
"""

import math
import re
from decimal import ROUND_HALF_UP, Decimal

from loguru import logger

from schools_api.lib.school_import.columns import (
    FLOAT_FIELDS,
    HEADER_ALIASES,
    HEADERED_MIN_COLUMNS,
    HEADERLESS_COLUMNS,
    HEADERLESS_MIN_COLUMNS,
    ID_FIELDS,
)
from schools_api.lib.school_import.types import CsvFormat, ParseResult, SchoolRow

_SCHOOL_YEAR_RE = re.compile(r'^"?\d{4}-\d{4}')
_SCIENTIFIC_RE = re.compile(r"^(\d+\.?\d*)E\+(\d+)$", re.IGNORECASE)
_FLOAT_PREFIX_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

# Real NCES ids are at most 12 digits; longer mantissas or exponents are left unrepaired
_MAX_ID_DIGITS = 30


class PositionalSchemaError(ValueError):
    """Raised when a headerless file does not have the expected column layout."""


def decode_csv_bytes(content: bytes) -> str:
    """Decode raw CSV bytes as UTF-8 (BOM stripped), falling back to Latin-1."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.info("CSV is not valid UTF-8; decoding as Latin-1")
        return content.decode("latin-1")


def split_lines(text: str) -> list[str]:
    """Split CSV text into non-blank lines, accepting both LF and CRLF endings."""
    return [line.rstrip("\r") for line in text.split("\n") if line.strip()]


def detect_format(first_line: str) -> CsvFormat:
    """Detect the file layout from its first line.

    Headerless exports start every line with the school year
    (``2024-2025``, optionally quoted); anything else is a header row.
    """
    if _SCHOOL_YEAR_RE.match(first_line.strip()):
        return CsvFormat.HEADERLESS
    return CsvFormat.HEADERED


def tokenize_csv_line(line: str) -> list[str]:
    """Split one CSV line into trimmed field values.

    A single left-to-right scan: ``"`` toggles quoting, ``""`` inside quotes
    is a literal quote, and commas split fields only outside quotes.

    Args:
        line: One line of CSV text, without its line terminator.

    Returns:
        Field values with surrounding whitespace removed.
    """
    values: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    length = len(line)

    while i < length:
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < length and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    values.append("".join(current).strip())
    return values


def clean_value(value: str | None) -> str:
    """Trim whitespace and one pair of surrounding double quotes."""
    if not value:
        return ""
    trimmed = value.strip()
    if trimmed.startswith('"'):
        trimmed = trimmed[1:]
    if trimmed.endswith('"'):
        trimmed = trimmed[:-1]
    return trimmed


def repair_scientific_notation(value: str | None) -> str:
    """Restore an identifier that a spreadsheet rewrote in scientific notation.

    ``2.91107E+11`` becomes ``291107000000``. Values that are not in
    ``<digits>[.<digits>]E+<digits>`` form, or whose exponent is too large to
    be an identifier, are returned trimmed but otherwise unchanged. The
    conversion is exact (decimal arithmetic, half-up rounding).
    """
    trimmed = clean_value(value)
    match = _SCIENTIFIC_RE.match(trimmed)
    if match is None:
        return trimmed
    base, exponent = match.groups()
    if len(base) > _MAX_ID_DIGITS or len(exponent) > 2 or int(exponent) > _MAX_ID_DIGITS:
        return trimmed
    repaired = Decimal(base).scaleb(int(exponent)).to_integral_value(rounding=ROUND_HALF_UP)
    return str(int(repaired))


def parse_float(value: str | None) -> float | None:
    """Tolerantly parse a coordinate.

    Accepts a leading numeric prefix (``"33.7 N"`` -> 33.7). Empty,
    non-numeric, or non-finite values yield ``None``, never NaN.
    """
    trimmed = clean_value(value)
    match = _FLOAT_PREFIX_RE.match(trimmed)
    if match is None:
        return None
    try:
        parsed = float(match.group(0))
    except ValueError:
        return None
    if not math.isfinite(parsed):
        return None
    return parsed


def _build_row(raw: dict[str, str]) -> SchoolRow | None:
    """Convert raw field strings into a SchoolRow, or None when nameless."""
    name = raw.get("name", "")
    if not name:
        return None

    values: dict[str, object] = {}
    for field_name, raw_value in raw.items():
        if field_name in FLOAT_FIELDS:
            values[field_name] = parse_float(raw_value)
        elif field_name in ID_FIELDS:
            values[field_name] = repair_scientific_notation(raw_value) or None
        else:
            values[field_name] = raw_value or None
    values["name"] = name
    return SchoolRow(**values)  # type: ignore[arg-type]


def _is_scientific(value: str | None) -> bool:
    trimmed = clean_value(value)
    return _SCIENTIFIC_RE.match(trimmed) is not None and repair_scientific_notation(trimmed) != trimmed


def build_header_index(header_line: str) -> dict[str, int]:
    """Map upper-cased header names to their column index."""
    return {clean_value(h).upper(): i for i, h in enumerate(tokenize_csv_line(header_line))}


def _header_value(values: list[str], header_index: dict[str, int], aliases: tuple[str, ...]) -> str:
    for alias in aliases:
        idx = header_index.get(alias)
        if idx is not None and idx < len(values):
            value = clean_value(values[idx])
            if value:
                return value
    return ""


def parse_headered(lines: list[str]) -> ParseResult:
    """Parse a headered school file (first line is the header row).

    Args:
        lines: Non-blank lines, header first.

    Returns:
        ParseResult with one row per data line that has a school name.
    """
    result = ParseResult(format=CsvFormat.HEADERED)
    if len(lines) < 2:
        return result

    header_index = build_header_index(lines[0])
    missing = [field for field, aliases in HEADER_ALIASES.items() if not any(a in header_index for a in aliases)]
    if missing:
        logger.debug(f"Headered CSV has no column for fields: {', '.join(sorted(missing))}")

    skipped = 0
    for line in lines[1:]:
        values = tokenize_csv_line(line)
        if len(values) < HEADERED_MIN_COLUMNS:
            skipped += 1
            continue

        raw = {field: _header_value(values, header_index, aliases) for field, aliases in HEADER_ALIASES.items()}
        row = _build_row(raw)
        if row is None:
            skipped += 1
            continue
        if _is_scientific(raw["nces_id"]):
            result.scientific_notation_fixed += 1
        result.rows.append(row)

    if skipped:
        logger.debug(f"Skipped {skipped} short or nameless lines")
    return result


def parse_headerless(lines: list[str]) -> ParseResult:
    """Parse a headerless school file using fixed column positions.

    Args:
        lines: Non-blank lines; every line is a data row.

    Returns:
        ParseResult with one row per full-width line that has a school name.

    Raises:
        PositionalSchemaError: If the first line is narrower than the
            positional layout, meaning the producer changed its schema.
    """
    result = ParseResult(format=CsvFormat.HEADERLESS)
    if not lines:
        return result

    first_width = len(tokenize_csv_line(lines[0]))
    if first_width < HEADERLESS_MIN_COLUMNS:
        msg = (
            f"Headerless CSV has {first_width} columns; expected at least {HEADERLESS_MIN_COLUMNS}. "
            "The positional layout may have changed."
        )
        raise PositionalSchemaError(msg)

    skipped = 0
    for line in lines:
        values = tokenize_csv_line(line)
        if len(values) < HEADERLESS_MIN_COLUMNS:
            skipped += 1
            continue

        raw = {field: clean_value(values[idx]) for field, idx in HEADERLESS_COLUMNS.items()}
        row = _build_row(raw)
        if row is None:
            skipped += 1
            continue
        if _is_scientific(raw["nces_id"]):
            result.scientific_notation_fixed += 1
        result.rows.append(row)

    if skipped:
        logger.debug(f"Skipped {skipped} short or nameless lines")
    return result


def parse_school_csv(text: str) -> ParseResult:
    """Parse a school directory CSV, detecting its layout.

    Args:
        text: Full CSV file contents.

    Returns:
        ParseResult with the admitted rows, detected format, and the number
        of repaired scientific-notation school ids.

    Raises:
        PositionalSchemaError: If a headerless file has the wrong width.
    """
    lines = split_lines(text)
    if not lines:
        return ParseResult()

    csv_format = detect_format(lines[0])
    logger.info(f"Detected {csv_format.value} school CSV with {len(lines)} lines")

    if csv_format is CsvFormat.HEADERLESS:
        result = parse_headerless(lines)
    else:
        result = parse_headered(lines)

    logger.info(
        f"Parsed {len(result.rows)} schools ({result.scientific_notation_fixed} scientific-notation ids repaired)"
    )
    return result
