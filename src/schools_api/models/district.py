"""District model: school districts (NCES local education agencies)."""

from sqlalchemy import Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from schools_api.models.base import Base, TimestampMixin, UUIDMixin


class District(Base, UUIDMixin, TimestampMixin):
    """A school district keyed by its NCES LEA identifier.

    Rows are created by either the school import (name/state only) or the
    LEA directory import (full attributes). Both upsert on ``nces_id``.
    """

    __tablename__ = "districts"

    nces_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    state_name: Mapped[str | None] = mapped_column(Text, nullable=True)

    # LEA directory attributes
    state_lea_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(Text, nullable=True)
    zip: Mapped[str | None] = mapped_column(Text, nullable=True)
    zip4: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    website: Mapped[str | None] = mapped_column(Text, nullable=True)
    lea_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    lea_type_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    charter_lea: Mapped[str | None] = mapped_column(Text, nullable=True)
    operational_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    operational_status_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    lowest_grade: Mapped[str | None] = mapped_column(Text, nullable=True)
    highest_grade: Mapped[str | None] = mapped_column(Text, nullable=True)
    operational_schools: Mapped[int | None] = mapped_column(Integer, nullable=True)
