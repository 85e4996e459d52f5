"""Import Pydantic v2 request/response schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from schools_api.lib.school_import import DistrictData, SchoolRow
from schools_api.schemas.common import PaginationMeta


class SchoolRowPayload(BaseModel):
    """One parsed school row as sent by an external batch orchestrator."""

    name: str = Field(min_length=1)
    nces_id: str | None = None
    state: str | None = None
    state_name: str | None = None
    city: str | None = None
    address: str | None = None
    zip: str | None = None
    phone: str | None = None
    website: str | None = None
    level: str | None = None
    school_type: str | None = None
    operational_status: str | None = None
    district_nces_id: str | None = None
    district_name: str | None = None
    county: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    school_year: str | None = None
    sy_status: str | None = None
    charter_status: str | None = None
    magnet_status: str | None = None
    virtual_status: str | None = None
    title1_status: str | None = None

    def to_row(self) -> SchoolRow:
        return SchoolRow(**self.model_dump())


class DistrictPayload(BaseModel):
    """A district referenced by a batch's school rows."""

    nces_id: str = Field(min_length=1)
    name: str | None = None
    state: str | None = None
    state_name: str | None = None

    def to_district(self) -> DistrictData:
        return DistrictData(**self.model_dump())


class CreateRunRequest(BaseModel):
    """Request to open a ledger entry for an externally orchestrated run."""

    file_name: str = Field(min_length=1, max_length=255)
    total_rows: int | None = Field(default=None, ge=0)
    total_batches: int | None = Field(default=None, ge=0)
    format_label: str | None = Field(default=None, max_length=20)


class BatchRequest(BaseModel):
    """One batch of an externally orchestrated school import run."""

    run_id: UUID
    schools: list[SchoolRowPayload]
    districts: list[DistrictPayload] = Field(default_factory=list)
    batch_index: int = Field(ge=0)
    total_batches: int = Field(ge=1)
    is_last_batch: bool

    @model_validator(mode="after")
    def check_batch_index(self) -> "BatchRequest":
        if self.batch_index >= self.total_batches:
            msg = "batch_index must be less than total_batches"
            raise ValueError(msg)
        return self


class BatchResponse(BaseModel):
    """Outcome of one processed batch."""

    success: bool
    inserted: int
    errors: int
    cumulative_inserted: int
    is_last_batch: bool
    cancelled: bool = False

    model_config = {"from_attributes": True}


class ImportJobResponse(BaseModel):
    """Import job status and progress counters."""

    id: UUID
    file_name: str
    file_type: str
    status: str
    format_label: str | None = None
    total_rows: int | None = None
    total_batches: int | None = None
    rows_inserted: int = 0
    districts_processed: int = 0
    batches_processed: int = 0
    errors: int = 0
    scientific_notation_fixed: int = 0
    status_breakdown: dict[str, int] = Field(default_factory=dict)
    state_breakdown: dict[str, int] = Field(default_factory=dict)
    error_message: str | None = None
    triggered_by: UUID | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PaginatedImportJobResponse(BaseModel):
    """Paginated list of import jobs."""

    items: list[ImportJobResponse]
    pagination: PaginationMeta


class ClearSchoolsResponse(BaseModel):
    """Result of deleting every stored school."""

    deleted: int
