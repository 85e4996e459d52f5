"""Tests for the school service."""

import uuid

import pytest
from sqlalchemy import Text, select
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.lib.school_import import SchoolRow
from schools_api.models.district import District
from schools_api.models.school import School
from schools_api.services.school_service import (
    build_school_values,
    clear_schools,
    count_schools,
    insert_schools,
)


class TestBuildSchoolValues:
    """Tests for build_school_values."""

    def test_resolves_district_and_drops_non_columns(self) -> None:
        district_id = uuid.uuid4()
        job_id = uuid.uuid4()
        row = SchoolRow(name="Alpha", district_nces_id="10", district_name="North", state_name="GEORGIA")

        values = build_school_values(row, {"10": district_id}, job_id)

        assert values["district_id"] == district_id
        assert values["lea_id"] == "10"
        assert values["import_job_id"] == job_id
        assert "district_name" not in values
        assert "state_name" not in values
        assert "district_nces_id" not in values

    def test_unknown_district_is_none(self) -> None:
        values = build_school_values(SchoolRow(name="Alpha", district_nces_id="99"), {})
        assert values["district_id"] is None
        assert values["lea_id"] == "99"


class TestInsertSchools:
    """Tests for insert_schools."""

    async def test_inserts_in_sub_chunks(self, async_session: AsyncSession) -> None:
        rows = [SchoolRow(name=f"School {i}") for i in range(5)]

        inserted, errors = await insert_schools(async_session, rows, {}, batch_size=2)

        assert (inserted, errors) == (5, 0)
        assert await count_schools(async_session) == 5

    async def test_duplicates_are_inserted_not_merged(self, async_session: AsyncSession) -> None:
        rows = [SchoolRow(name="Alpha", nces_id="1")]

        await insert_schools(async_session, rows, {})
        await insert_schools(async_session, rows, {})

        assert await count_schools(async_session) == 2

    async def test_failing_sub_chunk_rolled_back_alone(self, async_session: AsyncSession) -> None:
        rows = [
            SchoolRow(name="Alpha"),
            SchoolRow(name="Beta"),
            SchoolRow(name=None),  # type: ignore[arg-type]
            SchoolRow(name="Delta"),
            SchoolRow(name="Echo"),
        ]

        inserted, errors = await insert_schools(async_session, rows, {}, batch_size=2)

        # [Alpha, Beta] ok, [None, Delta] fails, [Echo] ok
        assert (inserted, errors) == (3, 2)
        names = (await async_session.execute(select(School.name).order_by(School.name))).scalars().all()
        assert names == ["Alpha", "Beta", "Echo"]

    async def test_coordinates_round_trip(self, async_session: AsyncSession) -> None:
        await insert_schools(async_session, [SchoolRow(name="Alpha", latitude=0.0, longitude=-83.6)], {})

        school = (await async_session.execute(select(School))).scalar_one()
        assert school.latitude == 0.0
        assert school.longitude == -83.6

    async def test_long_directory_values_stored_unclipped(self, async_session: AsyncSession) -> None:
        row = SchoolRow(
            name="Academy for Advanced Studies in Science, Technology, Engineering and Mathematics " * 4,
            state="GEORGIA",
            website="https://www.example.org/schools/" + "campus/" * 40,
            zip="30303-1234-EXT",
        )

        inserted, errors = await insert_schools(async_session, [row], {})

        assert (inserted, errors) == (1, 0)
        school = (await async_session.execute(select(School))).scalar_one()
        assert school.name == row.name
        assert school.state == "GEORGIA"
        assert school.website == row.website


class TestDirectoryColumnTypes:
    """Directory text columns carry no length limit."""

    @pytest.mark.parametrize("model", [School, District])
    def test_string_columns_are_unbounded_text(self, model: type) -> None:
        for column in model.__table__.columns:
            if column.type.python_type is str:
                assert isinstance(column.type, Text), column.name
                assert column.type.length is None, column.name


class TestClearSchools:
    """Tests for clear_schools."""

    async def test_deletes_all_and_returns_count(self, async_session: AsyncSession) -> None:
        await insert_schools(async_session, [SchoolRow(name="A"), SchoolRow(name="B")], {})

        assert await clear_schools(async_session) == 2
        assert await count_schools(async_session) == 0

    async def test_empty_table(self, async_session: AsyncSession) -> None:
        assert await clear_schools(async_session) == 0
