"""Tests for the import service: batch coordinator and progress/cancellation ledger."""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.lib.school_import import (
    DistrictData,
    DistrictRecord,
    ParseResult,
    SchoolBatch,
    SchoolRow,
    parse_school_csv,
    plan_batches,
)
from schools_api.models.district import District
from schools_api.models.school import School
from schools_api.services.import_service import (
    NO_SCHOOL_DATA_MESSAGE,
    BatchResult,
    ImportJobNotFoundError,
    ImportJobStateError,
    cancel_import_job,
    complete_import_job,
    count_breakdowns,
    create_import_job,
    fail_import_job,
    get_import_job,
    get_import_status,
    list_import_jobs,
    merge_ledger_counts,
    process_school_batch,
    run_district_import,
    run_school_import,
)


def _rows(count: int, district_id: str = "1300001") -> list[SchoolRow]:
    return [
        SchoolRow(
            name=f"School {i}",
            nces_id=f"13000010000{i}",
            state="GA",
            state_name="GEORGIA",
            district_nces_id=district_id,
            district_name="Sample County Schools",
            sy_status="Open",
        )
        for i in range(count)
    ]


async def _count(session: AsyncSession, model: type) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _new_job(session: AsyncSession) -> uuid.UUID:
    job = await create_import_job(session, file_name="schools.csv")
    return job.id


class TestCreateImportJob:
    """Tests for create_import_job and lookups."""

    async def test_creates_pending_job(self, async_session: AsyncSession) -> None:
        job = await create_import_job(async_session, file_name="schools.csv")

        assert job.status == "pending"
        assert job.file_type == "school_csv"
        assert job.rows_inserted == 0
        assert job.status_breakdown == {}

    async def test_get_import_status_missing_raises(self, async_session: AsyncSession) -> None:
        with pytest.raises(ImportJobNotFoundError):
            await get_import_status(async_session, uuid.uuid4())

    async def test_get_import_job_missing_returns_none(self, async_session: AsyncSession) -> None:
        assert await get_import_job(async_session, uuid.uuid4()) is None

    async def test_list_filters_by_file_type(self, async_session: AsyncSession) -> None:
        await create_import_job(async_session, file_name="a.csv", file_type="school_csv")
        await create_import_job(async_session, file_name="b.csv", file_type="district_csv")

        jobs, total = await list_import_jobs(async_session, file_type="district_csv")

        assert total == 1
        assert jobs[0].file_name == "b.csv"


class TestProcessSchoolBatch:
    """Tests for process_school_batch."""

    async def test_inserts_schools_linked_to_districts(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)
        batch = plan_batches(_rows(2), 10)[0]

        result = await process_school_batch(async_session, job_id, batch)

        assert result == BatchResult(
            success=True, inserted=2, errors=0, cumulative_inserted=2, is_last_batch=True
        )
        district = (await async_session.execute(select(District))).scalar_one()
        schools = (await async_session.execute(select(School))).scalars().all()
        assert len(schools) == 2
        assert all(s.district_id == district.id for s in schools)
        assert all(s.lea_id == "1300001" for s in schools)
        assert all(s.import_job_id == job_id for s in schools)

    async def test_ledger_counts_and_completion(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)
        batches = plan_batches(_rows(3), 2)

        first = await process_school_batch(async_session, job_id, batches[0])
        job = await get_import_status(async_session, job_id)
        assert job.status == "in_progress"
        assert job.started_at is not None
        assert first.cumulative_inserted == 2

        second = await process_school_batch(async_session, job_id, batches[1])
        job = await get_import_status(async_session, job_id)

        assert second.cumulative_inserted == 3
        assert job.status == "completed"
        assert job.completed_at is not None
        assert job.rows_inserted == 3
        assert job.batches_processed == 2
        assert job.districts_processed == 2
        assert job.status_breakdown == {"Open": 3}
        assert job.state_breakdown == {"GA": 3}

    async def test_unresolved_district_persists_with_null_link(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)
        batch = SchoolBatch(
            batch_index=0,
            total_batches=1,
            is_last_batch=True,
            schools=[SchoolRow(name="Orphan", district_nces_id="9999999")],
            districts=[],
        )

        result = await process_school_batch(async_session, job_id, batch)

        assert result.inserted == 1
        school = (await async_session.execute(select(School))).scalar_one()
        assert school.district_id is None
        assert school.lea_id == "9999999"

    async def test_failed_sub_chunk_tallied_and_run_continues(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)
        rows = [SchoolRow(name="Alpha"), SchoolRow(name=None), SchoolRow(name="Gamma")]  # type: ignore[arg-type]
        batch = SchoolBatch(batch_index=0, total_batches=1, is_last_batch=True, schools=rows, districts=[])

        result = await process_school_batch(async_session, job_id, batch, school_insert_batch_size=1)

        assert result.success is True
        assert result.inserted == 2
        assert result.errors == 1
        job = await get_import_status(async_session, job_id)
        assert job.errors == 1
        assert job.rows_inserted == 2
        assert job.status == "completed"
        names = (await async_session.execute(select(School.name).order_by(School.name))).scalars().all()
        assert names == ["Alpha", "Gamma"]

    async def test_failed_district_sub_batch_counted_as_errors(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)
        batch = SchoolBatch(
            batch_index=0,
            total_batches=1,
            is_last_batch=True,
            schools=_rows(2),
            districts=[DistrictData(nces_id=None)],  # type: ignore[arg-type]
        )

        result = await process_school_batch(async_session, job_id, batch)

        assert result.success is True
        assert result.inserted == 2
        assert result.errors == 1
        job = await get_import_status(async_session, job_id)
        assert job.errors == 1
        assert job.rows_inserted == 2
        assert await _count(async_session, District) == 0

    async def test_repeated_district_in_batch_upserted_once(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)
        batch = SchoolBatch(
            batch_index=0,
            total_batches=1,
            is_last_batch=True,
            schools=_rows(2),
            districts=[
                DistrictData(nces_id="1300001", name="Sample County Schools", state="GA"),
                DistrictData(nces_id="1300001", name="Sample Cnty Schools", state="GA"),
            ],
        )

        result = await process_school_batch(async_session, job_id, batch)

        assert result.errors == 0
        assert result.inserted == 2
        district = (await async_session.execute(select(District))).scalar_one()
        assert district.name == "Sample County Schools"
        schools = (await async_session.execute(select(School))).scalars().all()
        assert all(s.district_id == district.id for s in schools)

    async def test_cancelled_run_writes_nothing(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)
        await cancel_import_job(async_session, job_id)
        batch = plan_batches(_rows(2), 10)[0]

        result = await process_school_batch(async_session, job_id, batch)

        assert result.cancelled is True
        assert result.success is False
        assert result.inserted == 0
        assert await _count(async_session, School) == 0
        assert await _count(async_session, District) == 0

    async def test_cancellation_before_chunk_k_keeps_earlier_chunks(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)
        batches = plan_batches(_rows(3), 1)

        await process_school_batch(async_session, job_id, batches[0])
        await cancel_import_job(async_session, job_id)
        second = await process_school_batch(async_session, job_id, batches[1])
        third = await process_school_batch(async_session, job_id, batches[2])

        assert second.cancelled is True
        assert third.cancelled is True
        assert third.cumulative_inserted == 1
        assert await _count(async_session, School) == 1
        job = await get_import_status(async_session, job_id)
        assert job.status == "cancelled"
        assert job.rows_inserted == 1
        assert job.batches_processed == 1

    async def test_unknown_run_raises(self, async_session: AsyncSession) -> None:
        batch = plan_batches(_rows(1), 10)[0]
        with pytest.raises(ImportJobNotFoundError):
            await process_school_batch(async_session, uuid.uuid4(), batch)
        assert await _count(async_session, District) == 0

    async def test_completed_run_rejects_batch(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)
        batch = plan_batches(_rows(1), 10)[0]
        await process_school_batch(async_session, job_id, batch)

        with pytest.raises(ImportJobStateError):
            await process_school_batch(async_session, job_id, batch)
        assert await _count(async_session, School) == 1


class TestLedgerTransitions:
    """Tests for guarded ledger transitions and merges."""

    async def test_complete_does_not_overwrite_cancelled(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)
        await cancel_import_job(async_session, job_id)

        assert await complete_import_job(async_session, job_id) is False
        job = await get_import_status(async_session, job_id)
        assert job.status == "cancelled"

    async def test_fail_does_not_overwrite_cancelled(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)
        await cancel_import_job(async_session, job_id)

        assert await fail_import_job(async_session, job_id, "boom") is False
        job = await get_import_status(async_session, job_id)
        assert job.status == "cancelled"
        assert job.error_message is None

    async def test_cancel_finished_job_raises(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)
        await fail_import_job(async_session, job_id, "boom")

        with pytest.raises(ImportJobStateError, match="failed"):
            await cancel_import_job(async_session, job_id)

    async def test_cancel_missing_job_raises(self, async_session: AsyncSession) -> None:
        with pytest.raises(ImportJobNotFoundError):
            await cancel_import_job(async_session, uuid.uuid4())

    async def test_merge_is_additive(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)

        await merge_ledger_counts(
            async_session, job_id, rows_inserted=5, errors=1, batches_processed=1, status_breakdown={"Open": 5}
        )
        job = await merge_ledger_counts(
            async_session,
            job_id,
            rows_inserted=3,
            batches_processed=1,
            status_breakdown={"Open": 2, "Closed": 1},
            state_breakdown={"GA": 3},
        )

        assert job.rows_inserted == 8
        assert job.errors == 1
        assert job.batches_processed == 2
        assert job.status_breakdown == {"Open": 7, "Closed": 1}
        assert job.state_breakdown == {"GA": 3}


class TestCountBreakdowns:
    """Tests for count_breakdowns."""

    def test_status_fallback_chain(self) -> None:
        rows = [
            SchoolRow(name="A", sy_status="Open", operational_status="Closed", state="GA"),
            SchoolRow(name="B", operational_status="Closed", state="GA"),
            SchoolRow(name="C"),
        ]
        statuses, states = count_breakdowns(rows)

        assert statuses == {"Open": 1, "Closed": 1, "Unknown": 1}
        assert states == {"GA": 2, "Unknown": 1}


class TestRunSchoolImport:
    """Tests for the full-file driver."""

    async def test_two_row_file_end_to_end(self, async_session: AsyncSession, headered_csv: str) -> None:
        job_id = await _new_job(async_session)

        job = await run_school_import(async_session, job_id, parse_school_csv(headered_csv))

        assert job.status == "completed"
        assert job.format_label == "headered"
        assert job.total_rows == 2
        assert job.total_batches == 1
        assert job.rows_inserted == 2
        assert job.districts_processed == 1
        assert job.status_breakdown == {"Open": 2}
        district = (await async_session.execute(select(District))).scalar_one()
        assert district.nces_id == "1300001"
        assert district.name == "Sample County Schools"
        schools = (await async_session.execute(select(School))).scalars().all()
        assert len(schools) == 2
        assert {s.district_id for s in schools} == {district.id}

    async def test_progress_callback_per_batch(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)
        seen: list[tuple[int, int]] = []

        await run_school_import(
            async_session,
            job_id,
            ParseResult(rows=_rows(5)),
            batch_size=2,
            on_progress=lambda result, batch: seen.append((batch.batch_index, result.inserted)),
        )

        assert seen == [(0, 2), (1, 2), (2, 1)]

    async def test_empty_parse_fails_job(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)

        job = await run_school_import(async_session, job_id, ParseResult())

        assert job.status == "failed"
        assert job.error_message == NO_SCHOOL_DATA_MESSAGE

    async def test_stops_at_cancelled_batch(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)

        calls: list[int] = []

        def on_progress(result: BatchResult, batch: SchoolBatch) -> None:
            calls.append(batch.batch_index)

        real_process = process_school_batch

        async def process_then_cancel(session, run_id, batch, **kwargs):  # type: ignore[no-untyped-def]
            result = await real_process(session, run_id, batch, **kwargs)
            if batch.batch_index == 0:
                await cancel_import_job(session, run_id)
            return result

        with patch("schools_api.services.import_service.process_school_batch", side_effect=process_then_cancel):
            job = await run_school_import(
                async_session, job_id, ParseResult(rows=_rows(4)), batch_size=1, on_progress=on_progress
            )

        assert calls == [0, 1]
        assert job.status == "cancelled"
        assert job.rows_inserted == 1
        assert await _count(async_session, School) == 1

    async def test_unexpected_error_fails_job_and_propagates(self, async_session: AsyncSession) -> None:
        job_id = await _new_job(async_session)

        with (
            patch(
                "schools_api.services.import_service.process_school_batch",
                new_callable=AsyncMock,
                side_effect=RuntimeError("database went away"),
            ),
            pytest.raises(RuntimeError),
        ):
            await run_school_import(async_session, job_id, ParseResult(rows=_rows(1)))

        job = await get_import_status(async_session, job_id)
        assert job.status == "failed"
        assert job.error_message == "database went away"


class TestRunDistrictImport:
    """Tests for the LEA directory import driver."""

    async def test_upserts_full_records(self, async_session: AsyncSession) -> None:
        job = await create_import_job(async_session, file_name="lea.csv", file_type="district_csv")
        records = [
            DistrictRecord(nces_id="1300001", name="Sample County", state="GA", city="Macon", operational_schools=12),
            DistrictRecord(nces_id="1300002", name="Other County", state="GA", city="Athens"),
        ]

        result = await run_district_import(async_session, job.id, records)

        assert result.status == "completed"
        assert result.districts_processed == 2
        assert result.errors == 0
        district = (
            await async_session.execute(select(District).where(District.nces_id == "1300001"))
        ).scalar_one()
        assert district.city == "Macon"
        assert district.operational_schools == 12

    async def test_school_import_preserves_directory_attributes(
        self, async_session: AsyncSession, headered_csv: str
    ) -> None:
        job = await create_import_job(async_session, file_name="lea.csv", file_type="district_csv")
        await run_district_import(
            async_session, job.id, [DistrictRecord(nces_id="1300001", name="Old Name", city="Macon")]
        )

        school_job_id = await _new_job(async_session)
        await run_school_import(async_session, school_job_id, parse_school_csv(headered_csv))

        district = (
            await async_session.execute(select(District).execution_options(populate_existing=True))
        ).scalar_one()
        assert district.name == "Sample County Schools"
        assert district.city == "Macon"

    async def test_empty_records_fail_job(self, async_session: AsyncSession) -> None:
        job = await create_import_job(async_session, file_name="lea.csv", file_type="district_csv")

        result = await run_district_import(async_session, job.id, [])

        assert result.status == "failed"
