"""School model: one row per imported school record."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from schools_api.models.base import Base, UUIDMixin


class School(Base, UUIDMixin):
    """A school as imported from an NCES directory export.

    Schools are inserted, never upserted, so the same ``nces_id`` may appear
    more than once across imports.
    """

    __tablename__ = "schools"

    nces_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    city: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    zip: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    website: Mapped[str | None] = mapped_column(Text, nullable=True)
    level: Mapped[str | None] = mapped_column(Text, nullable=True)
    school_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    operational_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    county: Mapped[str | None] = mapped_column(Text, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    # CCD directory status fields
    school_year: Mapped[str | None] = mapped_column(Text, nullable=True)
    sy_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    charter_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    magnet_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    virtual_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    title1_status: Mapped[str | None] = mapped_column(Text, nullable=True)

    # District linkage: lea_id keeps the raw NCES id for re-linking later
    district_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("districts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    lea_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    import_job_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
