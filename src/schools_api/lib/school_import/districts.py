"""Derive the unique parent districts referenced by parsed school rows."""

from collections.abc import Iterable
from typing import Literal

from schools_api.lib.school_import.types import DistrictData, SchoolRow

DedupPolicy = Literal["first", "last"]


def extract_districts(rows: Iterable[SchoolRow], *, policy: DedupPolicy = "first") -> list[DistrictData]:
    """Return one DistrictData per distinct ``district_nces_id``.

    Rows without a district id are ignored. When several rows name the same
    district, ``policy`` decides whose name/state are kept: ``"first"`` keeps
    the first row seen, ``"last"`` lets later rows overwrite. The output is in
    first-seen order either way.

    Args:
        rows: Parsed school rows, in file order.
        policy: Which occurrence wins for duplicate district ids.

    Returns:
        De-duplicated districts.
    """
    districts: dict[str, DistrictData] = {}
    for row in rows:
        nces_id = row.district_nces_id
        if not nces_id:
            continue
        if nces_id in districts and policy == "first":
            continue
        districts[nces_id] = DistrictData(
            nces_id=nces_id,
            name=row.district_name,
            state=row.state,
            state_name=row.state_name,
        )
    return list(districts.values())


def dedupe_districts(districts: Iterable[DistrictData], *, policy: DedupPolicy = "first") -> list[DistrictData]:
    """Collapse districts that share an ``nces_id``, in first-seen order.

    ``policy`` has the same meaning as in :func:`extract_districts`.
    """
    unique: dict[str | None, DistrictData] = {}
    for district in districts:
        if district.nces_id in unique and policy == "first":
            continue
        unique[district.nces_id] = district
    return list(unique.values())
