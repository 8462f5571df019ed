"""Pydantic schemas for stock takes."""

from datetime import datetime

from pydantic import BaseModel, Field

from coilyard.models.enums import StockTakeStatus


class FoundCoil(BaseModel):
    """A traceable coil observed at a placeholder."""
    coil_barcode: str = Field(..., min_length=1)
    found_at_placeholder_id: str = Field(..., min_length=1)
    scanned_timestamp: datetime | None = None


class NonTraceableCoil(BaseModel):
    """A coil the system cannot identify, described by hand."""
    barcode: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    estimated_weight: float = Field(..., gt=0)
    condition: str | None = None
    found_at_placeholder_id: str = Field(..., min_length=1)
    added_timestamp: datetime | None = None


class StockTakeRecord(BaseModel):
    id: str
    stock_take_date: datetime
    location: str
    bay: str
    zone: str | None = None
    coils_found: list[FoundCoil] = []
    non_traceable_coils: list[NonTraceableCoil] = []
    empty_placeholders: list[str] = []
    physical_count: int = 0
    system_count: int = 0
    variance: int = 0
    remarks: str | None = None
    status: StockTakeStatus = StockTakeStatus.COMPLETED
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"from_attributes": True}


class StockTakeCreate(BaseModel):
    """Payload for POST /api/stock-takes/.

    Observations are replayed through the draft rules (no coil twice, one
    coil per placeholder, empty-marked placeholders hold nothing) before
    the stock take is stored.
    """
    location: str = Field(..., min_length=1)
    bay: str = Field(..., min_length=1)
    zone: str | None = None
    coils_found: list[FoundCoil] = []
    non_traceable_coils: list[NonTraceableCoil] = []
    empty_placeholders: list[str] = []
    remarks: str | None = None
