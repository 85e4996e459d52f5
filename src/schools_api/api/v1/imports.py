"""Import API endpoints.

POST /imports/schools (CSV upload), POST /imports/schools/batch (one batch of an
orchestrated run), POST /imports/runs, POST /imports/districts (LEA directory upload),
POST /imports/{job_id}/cancel, GET /imports, GET /imports/{job_id}.
"""

import asyncio
import math
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, UploadFile, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.core.background import task_runner
from schools_api.core.config import Settings, get_settings
from schools_api.core.database import get_session_factory
from schools_api.core.dependencies import get_async_session, get_current_user, get_run_locks, require_import_admin
from schools_api.core.run_locks import RunLockRegistry
from schools_api.lib.school_import import (
    DistrictRecord,
    ParseResult,
    PositionalSchemaError,
    SchoolBatch,
    decode_csv_bytes,
    extract_districts,
    parse_district_csv,
    parse_school_csv,
)
from schools_api.models.user import User
from schools_api.schemas.common import PaginationMeta, PaginationParams
from schools_api.schemas.imports import (
    BatchRequest,
    BatchResponse,
    CreateRunRequest,
    ImportJobResponse,
    PaginatedImportJobResponse,
)
from schools_api.services import import_service

router = APIRouter(prefix="/imports", tags=["imports"])

_NO_FILE_DETAIL = "No file provided"


async def _read_upload(file: UploadFile, settings: Settings) -> str:
    """Read an uploaded CSV, enforcing the size limit and decoding it.

    UTF-8 (with or without BOM) is tried first; Latin-1 is the fallback,
    since NCES exports are not consistently encoded.
    """
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_NO_FILE_DETAIL)

    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    content = await file.read()
    if len(content) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds maximum size of {settings.max_upload_size_mb} MB",
        )
    return decode_csv_bytes(content)


async def run_school_import_task(job_id: uuid.UUID, parsed: ParseResult, settings: Settings) -> None:
    """Background task: run every batch of a parsed school import in its own session."""
    factory = get_session_factory()
    async with factory() as bg_session:
        await import_service.run_school_import(
            bg_session,
            job_id,
            parsed,
            batch_size=settings.import_batch_size,
            policy=settings.district_dedup_policy,
            school_insert_batch_size=settings.school_insert_batch_size,
            district_upsert_batch_size=settings.district_upsert_batch_size,
        )


async def run_district_import_task(job_id: uuid.UUID, records: list[DistrictRecord], settings: Settings) -> None:
    """Background task: upsert a parsed LEA directory in its own session."""
    factory = get_session_factory()
    async with factory() as bg_session:
        await import_service.run_district_import(
            bg_session, job_id, records, batch_size=settings.district_upsert_batch_size
        )


@router.post("/schools", response_model=ImportJobResponse, status_code=202)
async def import_schools(
    file: UploadFile,
    current_user: Annotated[User, Depends(require_import_admin)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ImportJobResponse:
    """Upload a school directory CSV and import it in the background."""
    text = await _read_upload(file, settings)
    try:
        parsed = await asyncio.to_thread(parse_school_csv, text)
    except PositionalSchemaError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    job = await import_service.create_import_job(
        session,
        file_name=file.filename or "upload.csv",
        file_type="school_csv",
        triggered_by=current_user.id,
    )
    logger.info(f"Accepted school import {job.id} ({file.filename}, {len(parsed.rows)} rows)")

    task_runner.submit_task(run_school_import_task(job.id, parsed, settings))
    return ImportJobResponse.model_validate(job)


@router.post("/schools/batch", response_model=BatchResponse)
async def process_school_batch(
    request: BatchRequest,
    current_user: Annotated[User, Depends(require_import_admin)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    run_locks: Annotated[RunLockRegistry, Depends(get_run_locks)],
) -> BatchResponse:
    """Process one batch of an externally orchestrated school import run."""
    schools = [s.to_row() for s in request.schools]
    districts = [d.to_district() for d in request.districts] or extract_districts(
        schools, policy=settings.district_dedup_policy
    )
    batch = SchoolBatch(
        batch_index=request.batch_index,
        total_batches=request.total_batches,
        is_last_batch=request.is_last_batch,
        schools=schools,
        districts=districts,
    )

    async with run_locks.lock(request.run_id):
        result = await import_service.process_school_batch(
            session,
            request.run_id,
            batch,
            school_insert_batch_size=settings.school_insert_batch_size,
            district_upsert_batch_size=settings.district_upsert_batch_size,
            district_dedup_policy=settings.district_dedup_policy,
        )
    return BatchResponse.model_validate(result)


@router.post("/runs", response_model=ImportJobResponse, status_code=201)
async def create_run(
    request: CreateRunRequest,
    current_user: Annotated[User, Depends(require_import_admin)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ImportJobResponse:
    """Open a pending ledger entry for an externally orchestrated run."""
    job = await import_service.create_import_job(
        session,
        file_name=request.file_name,
        file_type="school_csv",
        triggered_by=current_user.id,
    )
    job.total_rows = request.total_rows
    job.total_batches = request.total_batches
    job.format_label = request.format_label
    await session.commit()
    return ImportJobResponse.model_validate(job)


@router.post("/districts", response_model=ImportJobResponse, status_code=202)
async def import_districts(
    file: UploadFile,
    current_user: Annotated[User, Depends(require_import_admin)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ImportJobResponse:
    """Upload an NCES LEA directory CSV and upsert its districts in the background."""
    text = await _read_upload(file, settings)
    records = await asyncio.to_thread(parse_district_csv, text)

    job = await import_service.create_import_job(
        session,
        file_name=file.filename or "upload.csv",
        file_type="district_csv",
        triggered_by=current_user.id,
    )
    task_runner.submit_task(run_district_import_task(job.id, records, settings))
    return ImportJobResponse.model_validate(job)


@router.post("/{job_id}/cancel", response_model=ImportJobResponse)
async def cancel_import(
    job_id: uuid.UUID,
    current_user: Annotated[User, Depends(require_import_admin)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ImportJobResponse:
    """Cancel a pending or running import; later batches write nothing."""
    job = await import_service.cancel_import_job(session, job_id)
    return ImportJobResponse.model_validate(job)


@router.get("", response_model=PaginatedImportJobResponse)
async def list_imports(
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    pagination: Annotated[PaginationParams, Depends()],
    file_type: str | None = None,
    import_status: str | None = None,
) -> PaginatedImportJobResponse:
    """List import jobs with optional filters."""
    jobs, total = await import_service.list_import_jobs(
        session, file_type=file_type, status=import_status, page=pagination.page, page_size=pagination.page_size
    )
    return PaginatedImportJobResponse(
        items=[ImportJobResponse.model_validate(j) for j in jobs],
        pagination=PaginationMeta(
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=max(1, math.ceil(total / pagination.page_size)),
        ),
    )


@router.get("/{job_id}", response_model=ImportJobResponse)
async def get_import(
    job_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ImportJobResponse:
    """Get import job status and progress counters by ID."""
    job = await import_service.get_import_job(session, job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import job not found")
    return ImportJobResponse.model_validate(job)
