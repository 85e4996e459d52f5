"""School service: bulk insert and maintenance of imported school rows."""

import uuid
from collections.abc import Mapping, Sequence

from loguru import logger
from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.lib.school_import import SchoolRow
from schools_api.models.school import School

# ~28 columns * 250 rows = 7,000 params per statement
SCHOOL_INSERT_SUB_BATCH = 250

# SchoolRow fields that are not School columns
_NON_COLUMN_FIELDS = frozenset({"district_nces_id", "district_name", "state_name"})


def build_school_values(
    row: SchoolRow,
    district_id_map: Mapping[str, uuid.UUID],
    import_job_id: uuid.UUID | None = None,
) -> dict:
    """Map a parsed row to School column values.

    The district reference resolves through ``district_id_map``; an unknown
    or missing district leaves ``district_id`` unset.
    """
    values = {k: v for k, v in row.to_dict().items() if k not in _NON_COLUMN_FIELDS}
    values["id"] = uuid.uuid4()
    values["district_id"] = district_id_map.get(row.district_nces_id) if row.district_nces_id else None
    values["lea_id"] = row.district_nces_id
    values["import_job_id"] = import_job_id
    return values


async def insert_schools(
    session: AsyncSession,
    rows: Sequence[SchoolRow],
    district_id_map: Mapping[str, uuid.UUID],
    *,
    import_job_id: uuid.UUID | None = None,
    batch_size: int = SCHOOL_INSERT_SUB_BATCH,
) -> tuple[int, int]:
    """Insert school rows in committed sub-chunks.

    A sub-chunk that fails is rolled back and all of its rows are counted
    as errors; the remaining sub-chunks are still attempted.

    Args:
        session: Database session.
        rows: Parsed school rows.
        district_id_map: Mapping of district NCES id to internal id.
        import_job_id: Ledger id recorded on each inserted school.
        batch_size: Rows per INSERT statement.

    Returns:
        Tuple of (inserted_count, error_count).
    """
    inserted = 0
    errors = 0

    for i in range(0, len(rows), batch_size):
        chunk = rows[i : i + batch_size]
        values = [build_school_values(row, district_id_map, import_job_id) for row in chunk]
        try:
            await session.execute(insert(School), values)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            errors += len(chunk)
            logger.error(f"School insert sub-chunk {i // batch_size + 1} failed ({len(chunk)} rows): {e}")
            continue
        inserted += len(chunk)

    return inserted, errors


async def count_schools(session: AsyncSession) -> int:
    """Count all stored schools."""
    result = await session.execute(select(func.count(School.id)))
    return result.scalar_one()


async def clear_schools(session: AsyncSession) -> int:
    """Delete every stored school.

    Returns:
        Number of deleted rows.
    """
    total = await count_schools(session)
    await session.execute(delete(School))
    await session.commit()
    logger.warning(f"Cleared {total} schools")
    return total
