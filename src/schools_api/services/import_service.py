"""Import service: batch coordinator and progress/cancellation ledger for directory imports."""

import uuid
from collections import Counter
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.lib.school_import import (
    DedupPolicy,
    DistrictRecord,
    ParseResult,
    SchoolBatch,
    SchoolRow,
    plan_batches,
)
from schools_api.models.import_job import ImportJob
from schools_api.services.district_service import (
    DISTRICT_UPSERT_SUB_BATCH,
    fetch_district_id_map,
    upsert_district_records,
    upsert_districts,
)
from schools_api.services.school_service import SCHOOL_INSERT_SUB_BATCH, insert_schools

# Statuses from which a run may still make progress or be cancelled
ACTIVE_STATUSES = ("pending", "in_progress")

NO_SCHOOL_DATA_MESSAGE = "No valid school data found in CSV"
NO_DISTRICT_DATA_MESSAGE = "No valid district data found in CSV"


class ImportJobNotFoundError(LookupError):
    """Raised when an import run id does not match any ledger entry."""

    def __init__(self, job_id: uuid.UUID) -> None:
        super().__init__(f"Import job {job_id} not found")
        self.job_id = job_id


class ImportJobStateError(ValueError):
    """Raised when an operation is not allowed in the run's current status."""


@dataclass
class BatchResult:
    """Outcome of processing one coordinator batch."""

    success: bool
    inserted: int
    errors: int
    cumulative_inserted: int
    is_last_batch: bool
    cancelled: bool = False


ProgressCallback = Callable[[BatchResult, SchoolBatch], None]


async def create_import_job(
    session: AsyncSession,
    *,
    file_name: str,
    file_type: str = "school_csv",
    triggered_by: uuid.UUID | None = None,
) -> ImportJob:
    """Create a new pending import job.

    Args:
        session: Database session.
        file_name: Original filename.
        file_type: Type of import (school_csv, district_csv).
        triggered_by: User ID who triggered the import.

    Returns:
        The created ImportJob.
    """
    job = ImportJob(
        file_name=file_name,
        file_type=file_type,
        status="pending",
        triggered_by=triggered_by,
        status_breakdown={},
        state_breakdown={},
    )
    session.add(job)
    await session.commit()
    await session.refresh(job)
    return job


async def get_import_job(session: AsyncSession, job_id: uuid.UUID) -> ImportJob | None:
    """Get an import job by ID, always reloading its current database state.

    Args:
        session: Database session.
        job_id: The import job ID.

    Returns:
        The ImportJob or None if not found.
    """
    result = await session.execute(
        select(ImportJob).where(ImportJob.id == job_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_import_status(session: AsyncSession, job_id: uuid.UUID) -> ImportJob:
    """Get an import job by ID or raise ImportJobNotFoundError."""
    job = await get_import_job(session, job_id)
    if job is None:
        raise ImportJobNotFoundError(job_id)
    return job


async def list_import_jobs(
    session: AsyncSession,
    *,
    file_type: str | None = None,
    status: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[ImportJob], int]:
    """List import jobs with optional filters, newest first.

    Returns:
        Tuple of (jobs, total count).
    """
    query = select(ImportJob)
    count_query = select(func.count(ImportJob.id))

    if file_type:
        query = query.where(ImportJob.file_type == file_type)
        count_query = count_query.where(ImportJob.file_type == file_type)
    if status:
        query = query.where(ImportJob.status == status)
        count_query = count_query.where(ImportJob.status == status)

    total = (await session.execute(count_query)).scalar_one()
    offset = (page - 1) * page_size
    query = query.order_by(ImportJob.created_at.desc()).offset(offset).limit(page_size)
    result = await session.execute(query)
    jobs = list(result.scalars().all())

    return jobs, total


async def _guarded_transition(
    session: AsyncSession,
    job_id: uuid.UUID,
    from_statuses: Sequence[str],
    **values: object,
) -> bool:
    result = await session.execute(
        update(ImportJob)
        .where(ImportJob.id == job_id, ImportJob.status.in_(from_statuses))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return result.rowcount == 1


async def mark_in_progress(session: AsyncSession, job_id: uuid.UUID) -> bool:
    """Move a pending job to in_progress. Returns False if it was not pending."""
    return await _guarded_transition(
        session, job_id, ("pending",), status="in_progress", started_at=datetime.now(UTC)
    )


async def complete_import_job(session: AsyncSession, job_id: uuid.UUID) -> bool:
    """Move an in_progress job to completed.

    The UPDATE only matches ``status = 'in_progress'``, so a run cancelled
    concurrently stays cancelled.

    Returns:
        True if the job was completed by this call.
    """
    return await _guarded_transition(
        session, job_id, ("in_progress",), status="completed", completed_at=datetime.now(UTC)
    )


async def fail_import_job(session: AsyncSession, job_id: uuid.UUID, error_message: str) -> bool:
    """Mark a pending or in_progress job as failed with ``error_message``.

    Returns:
        True if the job was failed by this call.
    """
    return await _guarded_transition(
        session,
        job_id,
        ACTIVE_STATUSES,
        status="failed",
        error_message=error_message,
        completed_at=datetime.now(UTC),
    )


async def cancel_import_job(session: AsyncSession, job_id: uuid.UUID) -> ImportJob:
    """Cancel a pending or in_progress job.

    Batches already committed stay in place; the next batch to start
    observes the cancellation and writes nothing.

    Raises:
        ImportJobNotFoundError: If the job does not exist.
        ImportJobStateError: If the job has already finished.
    """
    job = await get_import_status(session, job_id)
    if job.status not in ACTIVE_STATUSES:
        msg = f"Import job {job_id} is {job.status} and cannot be cancelled"
        raise ImportJobStateError(msg)

    cancelled = await _guarded_transition(
        session, job_id, ACTIVE_STATUSES, status="cancelled", completed_at=datetime.now(UTC)
    )
    job = await get_import_status(session, job_id)
    if not cancelled:
        msg = f"Import job {job_id} is {job.status} and cannot be cancelled"
        raise ImportJobStateError(msg)

    logger.warning(f"Import job {job_id} cancelled")
    return job


def _merge_counts(current: Mapping[str, int] | None, delta: Mapping[str, int] | None) -> dict[str, int]:
    merged = dict(current or {})
    for key, count in (delta or {}).items():
        merged[key] = merged.get(key, 0) + count
    return merged


async def merge_ledger_counts(
    session: AsyncSession,
    job_id: uuid.UUID,
    *,
    rows_inserted: int = 0,
    districts_processed: int = 0,
    errors: int = 0,
    batches_processed: int = 0,
    status_breakdown: Mapping[str, int] | None = None,
    state_breakdown: Mapping[str, int] | None = None,
) -> ImportJob:
    """Add one batch's counts to the job's cumulative ledger.

    The row is read with ``SELECT ... FOR UPDATE`` so concurrent merges for
    the same run serialise on PostgreSQL. Breakdown maps merge key-wise.

    Returns:
        The updated ImportJob.

    Raises:
        ImportJobNotFoundError: If the job does not exist.
    """
    result = await session.execute(
        select(ImportJob)
        .where(ImportJob.id == job_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    job = result.scalar_one_or_none()
    if job is None:
        raise ImportJobNotFoundError(job_id)

    job.rows_inserted += rows_inserted
    job.districts_processed += districts_processed
    job.errors += errors
    job.batches_processed += batches_processed
    # Assign new dicts so the JSON columns are flagged dirty
    job.status_breakdown = _merge_counts(job.status_breakdown, status_breakdown)
    job.state_breakdown = _merge_counts(job.state_breakdown, state_breakdown)
    await session.commit()
    return job


def count_breakdowns(rows: Sequence[SchoolRow]) -> tuple[dict[str, int], dict[str, int]]:
    """Count rows per school-year status and per state.

    The status key is ``sy_status``, else ``operational_status``, else
    ``"Unknown"``; the state key is ``state`` or ``"Unknown"``.

    Returns:
        Tuple of (status_breakdown, state_breakdown).
    """
    statuses = Counter(row.sy_status or row.operational_status or "Unknown" for row in rows)
    states = Counter(row.state or "Unknown" for row in rows)
    return dict(statuses), dict(states)


def _cancelled_result(job: ImportJob, batch: SchoolBatch) -> BatchResult:
    logger.warning(
        f"Import job {job.id} is cancelled; skipping batch {batch.batch_index + 1}/{batch.total_batches}"
    )
    return BatchResult(
        success=False,
        inserted=0,
        errors=0,
        cumulative_inserted=job.rows_inserted,
        is_last_batch=batch.is_last_batch,
        cancelled=True,
    )


async def process_school_batch(
    session: AsyncSession,
    job_id: uuid.UUID,
    batch: SchoolBatch,
    *,
    school_insert_batch_size: int = SCHOOL_INSERT_SUB_BATCH,
    district_upsert_batch_size: int = DISTRICT_UPSERT_SUB_BATCH,
    district_dedup_policy: DedupPolicy = "first",
) -> BatchResult:
    """Process one batch of a school import run.

    Checks the ledger for cancellation, upserts the batch's districts,
    inserts its schools linked to those districts, merges the counts into
    the ledger, and completes the run on the last batch. Failed school
    sub-chunks and failed district sub-batches are tallied as errors rather
    than raised.

    Args:
        session: Database session.
        job_id: The run's ImportJob ID.
        batch: The batch to process.
        school_insert_batch_size: Rows per school INSERT statement.
        district_upsert_batch_size: Rows per district upsert statement.
        district_dedup_policy: Which occurrence wins when the batch names a
            district more than once.

    Returns:
        The batch outcome. ``cancelled`` is True when the run was cancelled
        before this batch started; nothing is written in that case.

    Raises:
        ImportJobNotFoundError: If the run id is unknown.
        ImportJobStateError: If the run already completed or failed.
    """
    job = await get_import_status(session, job_id)
    if job.status == "cancelled":
        return _cancelled_result(job, batch)
    if job.status not in ACTIVE_STATUSES:
        msg = f"Import job {job_id} is {job.status}; batch {batch.batch_index + 1} rejected"
        raise ImportJobStateError(msg)
    if job.status == "pending" and not await mark_in_progress(session, job_id):
        job = await get_import_status(session, job_id)
        if job.status == "cancelled":
            return _cancelled_result(job, batch)

    logger.info(
        f"Batch {batch.batch_index + 1}/{batch.total_batches} for import {job_id}: "
        f"{len(batch.schools)} schools, {len(batch.districts)} districts"
    )

    districts_upserted, district_failures = await upsert_districts(
        session, batch.districts, batch_size=district_upsert_batch_size, policy=district_dedup_policy
    )
    if district_failures:
        logger.warning(f"{district_failures} districts failed to upsert in batch {batch.batch_index + 1}")

    district_id_map = await fetch_district_id_map(session)
    inserted, school_errors = await insert_schools(
        session,
        batch.schools,
        district_id_map,
        import_job_id=job_id,
        batch_size=school_insert_batch_size,
    )
    errors = school_errors + district_failures

    status_counts, state_counts = count_breakdowns(batch.schools)
    job = await merge_ledger_counts(
        session,
        job_id,
        rows_inserted=inserted,
        districts_processed=districts_upserted,
        errors=errors,
        batches_processed=1,
        status_breakdown=status_counts,
        state_breakdown=state_counts,
    )
    cumulative_inserted = job.rows_inserted

    logger.info(
        f"Batch {batch.batch_index + 1}/{batch.total_batches} committed: "
        f"{inserted} inserted, {errors} errors | running total: {cumulative_inserted}"
    )

    if batch.is_last_batch and not await complete_import_job(session, job_id):
        logger.warning(f"Import job {job_id} left in_progress before completion; status not changed")

    return BatchResult(
        success=True,
        inserted=inserted,
        errors=errors,
        cumulative_inserted=cumulative_inserted,
        is_last_batch=batch.is_last_batch,
    )


async def run_school_import(
    session: AsyncSession,
    job_id: uuid.UUID,
    parsed: ParseResult,
    *,
    batch_size: int = 1000,
    policy: DedupPolicy = "first",
    school_insert_batch_size: int = SCHOOL_INSERT_SUB_BATCH,
    district_upsert_batch_size: int = DISTRICT_UPSERT_SUB_BATCH,
    on_progress: ProgressCallback | None = None,
) -> ImportJob:
    """Drive a full school import from a parsed CSV.

    Records the parse summary on the ledger, plans batches and processes
    them in order, stopping at the first batch that observes cancellation.

    Args:
        session: Database session.
        job_id: The run's ImportJob ID.
        parsed: Output of ``parse_school_csv``.
        batch_size: School rows per batch.
        policy: District dedup policy within a batch.
        school_insert_batch_size: Rows per school INSERT statement.
        district_upsert_batch_size: Rows per district upsert statement.
        on_progress: Called after each batch with its result.

    Returns:
        The ImportJob in its final state.
    """
    job = await get_import_status(session, job_id)
    batches = plan_batches(parsed.rows, batch_size, policy=policy)

    job.format_label = parsed.format_label
    job.total_rows = len(parsed.rows)
    job.total_batches = len(batches)
    job.scientific_notation_fixed = parsed.scientific_notation_fixed
    await session.commit()

    logger.info(
        f"Starting school import {job_id}: {len(parsed.rows)} rows in {len(batches)} batches "
        f"({parsed.format_label}, {parsed.scientific_notation_fixed} ids repaired)"
    )

    if not batches:
        await fail_import_job(session, job_id, NO_SCHOOL_DATA_MESSAGE)
        logger.warning(f"School import {job_id} failed: {NO_SCHOOL_DATA_MESSAGE}")
        return await get_import_status(session, job_id)

    try:
        for batch in batches:
            result = await process_school_batch(
                session,
                job_id,
                batch,
                school_insert_batch_size=school_insert_batch_size,
                district_upsert_batch_size=district_upsert_batch_size,
                district_dedup_policy=policy,
            )
            if on_progress is not None:
                on_progress(result, batch)
            if result.cancelled:
                logger.warning(f"School import {job_id} stopped at batch {batch.batch_index + 1}: cancelled")
                break
    except Exception as e:
        logger.exception(f"School import {job_id} failed")
        await session.rollback()
        await fail_import_job(session, job_id, str(e))
        raise

    job = await get_import_status(session, job_id)
    logger.info(
        f"School import {job_id} finished with status {job.status}: "
        f"{job.rows_inserted} inserted, {job.errors} errors, {job.districts_processed} districts"
    )
    return job


async def run_district_import(
    session: AsyncSession,
    job_id: uuid.UUID,
    records: Sequence[DistrictRecord],
    *,
    batch_size: int = DISTRICT_UPSERT_SUB_BATCH,
) -> ImportJob:
    """Upsert a parsed LEA directory file and record the outcome on its ledger.

    Args:
        session: Database session.
        job_id: The ``district_csv`` ImportJob tracking this run.
        records: Output of ``parse_district_csv``.
        batch_size: Rows per upsert statement.

    Returns:
        The ImportJob in its final state.
    """
    job = await get_import_status(session, job_id)
    if job.status == "cancelled":
        logger.warning(f"District import {job_id} is cancelled; nothing to do")
        return job

    job.total_rows = len(records)
    job.total_batches = 1
    await session.commit()

    if not records:
        await fail_import_job(session, job_id, NO_DISTRICT_DATA_MESSAGE)
        return await get_import_status(session, job_id)

    await mark_in_progress(session, job_id)
    try:
        processed, failed = await upsert_district_records(session, records, batch_size=batch_size)
        await merge_ledger_counts(
            session, job_id, districts_processed=processed, errors=failed, batches_processed=1
        )
    except Exception as e:
        logger.exception(f"District import {job_id} failed")
        await session.rollback()
        await fail_import_job(session, job_id, str(e))
        raise

    await complete_import_job(session, job_id)
    logger.info(f"District import {job_id} completed: {processed} upserted, {failed} failed")
    return await get_import_status(session, job_id)
