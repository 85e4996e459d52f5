"""Import CLI commands for school and district directory files."""

import asyncio
import uuid
from pathlib import Path

import typer
from tqdm import tqdm

import_app = typer.Typer()


def _print_job_summary(job) -> None:  # type: ignore[no-untyped-def]
    typer.echo(f"  Status:          {job.status}")
    if job.format_label:
        typer.echo(f"  Format:          {job.format_label}")
    typer.echo(f"  Total rows:      {job.total_rows or 0}")
    typer.echo(f"  Batches:         {job.batches_processed}/{job.total_batches or 0}")
    typer.echo(f"  Rows inserted:   {job.rows_inserted}")
    typer.echo(f"  Districts:       {job.districts_processed}")
    typer.echo(f"  Errors:          {job.errors}")
    if job.scientific_notation_fixed:
        typer.echo(f"  IDs repaired:    {job.scientific_notation_fixed}")
    if job.error_message:
        typer.echo(f"  Error:           {job.error_message}")


@import_app.command("schools")
def import_schools(
    file: Path = typer.Argument(..., help="Path to school directory CSV", exists=True, dir_okay=False),  # noqa: B008
    batch_size: int | None = typer.Option(None, "--batch-size", help="Rows per batch (default from settings)"),  # noqa: B008
) -> None:
    """Import schools and their districts from an NCES directory CSV."""
    asyncio.run(_import_schools(file, batch_size))


async def _import_schools(file_path: Path, batch_size: int | None) -> None:
    """Async implementation of school import."""
    from schools_api.core.config import get_settings
    from schools_api.core.database import dispose_engine, get_session_factory, init_engine
    from schools_api.lib.school_import import PositionalSchemaError, decode_csv_bytes, parse_school_csv
    from schools_api.services.import_service import create_import_job, run_school_import

    try:
        parsed = parse_school_csv(decode_csv_bytes(file_path.read_bytes()))
    except PositionalSchemaError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    try:
        factory = get_session_factory()
        async with factory() as session:
            job = await create_import_job(session, file_name=file_path.name, file_type="school_csv")
            typer.echo(f"Import job created: {job.id}")
            typer.echo(f"Parsed {len(parsed.rows)} schools ({parsed.format_label})")

            with tqdm(total=len(parsed.rows), unit="rows", desc=file_path.name, leave=True) as pbar:
                job = await run_school_import(
                    session,
                    job.id,
                    parsed,
                    batch_size=batch_size or settings.import_batch_size,
                    policy=settings.district_dedup_policy,
                    school_insert_batch_size=settings.school_insert_batch_size,
                    district_upsert_batch_size=settings.district_upsert_batch_size,
                    on_progress=lambda result, batch: pbar.update(len(batch.schools)),
                )

            typer.echo(f"\nImport {job.status}:")
            _print_job_summary(job)
            if job.status == "failed":
                raise typer.Exit(code=1)
    finally:
        await dispose_engine()


@import_app.command("districts")
def import_districts(
    file: Path = typer.Argument(..., help="Path to NCES LEA directory CSV", exists=True, dir_okay=False),  # noqa: B008
) -> None:
    """Import full district records from an NCES LEA directory CSV."""
    asyncio.run(_import_districts(file))


async def _import_districts(file_path: Path) -> None:
    """Async implementation of district import."""
    from schools_api.core.config import get_settings
    from schools_api.core.database import dispose_engine, get_session_factory, init_engine
    from schools_api.lib.school_import import decode_csv_bytes, parse_district_csv
    from schools_api.services.import_service import create_import_job, run_district_import

    records = parse_district_csv(decode_csv_bytes(file_path.read_bytes()))

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    try:
        factory = get_session_factory()
        async with factory() as session:
            job = await create_import_job(session, file_name=file_path.name, file_type="district_csv")
            typer.echo(f"Import job created: {job.id}")
            job = await run_district_import(
                session, job.id, records, batch_size=settings.district_upsert_batch_size
            )
            typer.echo(f"\nImport {job.status}:")
            _print_job_summary(job)
            if job.status == "failed":
                raise typer.Exit(code=1)
    finally:
        await dispose_engine()


@import_app.command("status")
def import_status(
    job_id: uuid.UUID = typer.Argument(..., help="Import job ID"),  # noqa: B008
) -> None:
    """Show progress counters for an import job."""
    asyncio.run(_import_status(job_id))


async def _import_status(job_id: uuid.UUID) -> None:
    """Async implementation of status lookup."""
    from schools_api.core.config import get_settings
    from schools_api.core.database import dispose_engine, get_session_factory, init_engine
    from schools_api.services.import_service import get_import_job

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    try:
        factory = get_session_factory()
        async with factory() as session:
            job = await get_import_job(session, job_id)
            if job is None:
                typer.echo(f"Import job {job_id} not found", err=True)
                raise typer.Exit(code=1)
            typer.echo(f"Import job {job.id} ({job.file_type}, {job.file_name}):")
            _print_job_summary(job)
            for label, breakdown in (("By status", job.status_breakdown), ("By state", job.state_breakdown)):
                if breakdown:
                    typer.echo(f"  {label}:")
                    for key, count in sorted(breakdown.items()):
                        typer.echo(f"    {key:<20} {count}")
    finally:
        await dispose_engine()


@import_app.command("cancel")
def import_cancel(
    job_id: uuid.UUID = typer.Argument(..., help="Import job ID"),  # noqa: B008
) -> None:
    """Cancel a pending or running import job."""
    asyncio.run(_import_cancel(job_id))


async def _import_cancel(job_id: uuid.UUID) -> None:
    """Async implementation of cancellation."""
    from schools_api.core.config import get_settings
    from schools_api.core.database import dispose_engine, get_session_factory, init_engine
    from schools_api.services.import_service import (
        ImportJobNotFoundError,
        ImportJobStateError,
        cancel_import_job,
    )

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    try:
        factory = get_session_factory()
        async with factory() as session:
            job = await cancel_import_job(session, job_id)
            typer.echo(f"Import job {job.id} cancelled after {job.batches_processed} batches")
    except (ImportJobNotFoundError, ImportJobStateError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        await dispose_engine()
