"""ImportJob model: progress and cancellation ledger for one import run."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from schools_api.models.base import Base, JSONType, UUIDMixin


class ImportJob(Base, UUIDMixin):
    """Tracks a school or district import run.

    Counters are cumulative across batches. ``status`` moves
    pending -> in_progress -> completed | failed | cancelled and is
    terminal once it leaves in_progress.
    """

    __tablename__ = "import_jobs"

    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", server_default="pending", index=True
    )
    format_label: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Planned work
    total_rows: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_batches: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Cumulative counters
    rows_inserted: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    districts_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    batches_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    errors: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    scientific_notation_fixed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    status_breakdown: Mapped[dict[str, int]] = mapped_column(JSONType, nullable=False, default=dict)
    state_breakdown: Mapped[dict[str, int]] = mapped_column(JSONType, nullable=False, default=dict)

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Metadata
    triggered_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
