"""District service: upserts districts keyed by NCES id and resolves internal ids."""

import uuid
from collections.abc import Sequence

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.lib.school_import import DedupPolicy, DistrictData, DistrictRecord, dedupe_districts
from schools_api.models.district import District

# Sub-batch size for bulk upsert: ~20 columns * 500 rows = 10,000 params (under asyncpg's 32,767 limit)
DISTRICT_UPSERT_SUB_BATCH = 500

# Columns a school import may overwrite on an existing district. The LEA
# directory import owns every other attribute.
_SCHOOL_IMPORT_UPDATE_COLUMNS = ("name", "state", "state_name")

# Columns excluded from the ON CONFLICT UPDATE set for directory imports.
_DIRECTORY_EXCLUDE_COLUMNS = frozenset({"nces_id", "id", "created_at"})


def _dialect_insert(session: AsyncSession):  # type: ignore[no-untyped-def]
    """Return the dialect-specific ``insert`` construct that supports ON CONFLICT."""
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


async def _upsert_district_rows(
    session: AsyncSession,
    rows: list[dict],
    update_columns: Sequence[str],
    batch_size: int,
) -> tuple[int, int]:
    """Upsert district dicts in committed sub-batches.

    A failing sub-batch is rolled back and counted; later sub-batches still run.

    Returns:
        Tuple of (processed_count, failed_count).
    """
    insert = _dialect_insert(session)
    processed = 0
    failed = 0

    for i in range(0, len(rows), batch_size):
        batch = rows[i : i + batch_size]
        stmt = insert(District).values(batch)
        stmt = stmt.on_conflict_do_update(
            index_elements=["nces_id"],
            set_={**{col: stmt.excluded[col] for col in update_columns}, "updated_at": func.now()},
        )
        try:
            await session.execute(stmt)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            failed += len(batch)
            logger.error(f"District upsert sub-batch {i // batch_size + 1} failed ({len(batch)} rows): {e}")
            continue
        processed += len(batch)

    return processed, failed


async def upsert_districts(
    session: AsyncSession,
    districts: Sequence[DistrictData],
    batch_size: int = DISTRICT_UPSERT_SUB_BATCH,
    *,
    policy: DedupPolicy = "first",
) -> tuple[int, int]:
    """Upsert districts referenced by school rows (conflict key ``nces_id``).

    Only ``name``, ``state`` and ``state_name`` are written on conflict, so
    richer attributes from an LEA directory import are preserved. Re-running
    the same upsert leaves one row per ``nces_id``. Repeated ids are collapsed
    first, since one ON CONFLICT statement cannot touch a row twice.

    Args:
        session: Database session.
        districts: Districts to write; duplicates are allowed.
        batch_size: Rows per upsert statement.
        policy: Which occurrence wins for a repeated ``nces_id``.

    Returns:
        Tuple of (processed_count, failed_count).
    """
    if not districts:
        return 0, 0
    rows = [
        {"id": uuid.uuid4(), "nces_id": d.nces_id, "name": d.name, "state": d.state, "state_name": d.state_name}
        for d in dedupe_districts(districts, policy=policy)
    ]
    return await _upsert_district_rows(session, rows, _SCHOOL_IMPORT_UPDATE_COLUMNS, batch_size)


async def fetch_district_id_map(session: AsyncSession) -> dict[str, uuid.UUID]:
    """Read the full ``nces_id -> id`` mapping for every stored district."""
    result = await session.execute(select(District.nces_id, District.id))
    return {nces_id: district_id for nces_id, district_id in result.all()}


async def upsert_district_records(
    session: AsyncSession,
    records: Sequence[DistrictRecord],
    batch_size: int = DISTRICT_UPSERT_SUB_BATCH,
) -> tuple[int, int]:
    """Upsert full LEA directory records, overwriting every directory attribute.

    Duplicate ``nces_id`` values collapse to the last record, since one
    upsert statement may not touch the same row twice.

    Returns:
        Tuple of (processed_count, failed_count).
    """
    by_id = {r.nces_id: {"id": uuid.uuid4(), **r.to_dict()} for r in records}
    rows = list(by_id.values())
    if not rows:
        return 0, 0
    update_columns = sorted(set(rows[0]) - _DIRECTORY_EXCLUDE_COLUMNS)
    return await _upsert_district_rows(session, rows, update_columns, batch_size)
