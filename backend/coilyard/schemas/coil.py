"""Pydantic schemas for coils and coil movements."""

from datetime import datetime

from pydantic import BaseModel, Field

from coilyard.models.enums import CoilPriority, CoilStatus, MovementType


class CoilRecord(BaseModel):
    """A coil as the engine and the API see it."""
    id: str
    barcode: str
    coil_type: str | None = None
    weight_tons: float | None = None
    width_mm: float | None = None
    thickness_mm: float | None = None
    outer_diameter_mm: float | None = None
    supplier: str | None = None
    status: CoilStatus = CoilStatus.INCOMING
    priority: CoilPriority = CoilPriority.LOW
    current_stacking_position_id: str | None = None
    storage_location: str | None = None
    received_date: datetime | None = None
    last_moved_date: datetime | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"from_attributes": True}


class CoilReceive(BaseModel):
    """Payload for POST /api/coils/: register a coil at the gate.

    The coil starts ``incoming`` with no position; placing it is a
    separate allocation call.
    """
    barcode: str = Field(..., min_length=1, max_length=100)
    coil_type: str | None = None
    weight_tons: float | None = Field(None, ge=0)
    width_mm: float | None = Field(None, ge=0)
    thickness_mm: float | None = Field(None, ge=0)
    outer_diameter_mm: float | None = Field(None, ge=0)
    supplier: str | None = None
    priority: CoilPriority = CoilPriority.LOW
    notes: str | None = None


class MovementRecord(BaseModel):
    id: str
    coil_barcode: str
    from_location: str | None = None
    to_location: str | None = None
    movement_type: MovementType
    movement_date: datetime
    moved_by: str | None = None
    reason: str | None = None
    remarks: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"from_attributes": True}


class CoilLocation(BaseModel):
    """Response for GET /api/coils/locate."""
    barcode: str
    found: bool
    placeholder_id: str | None = None
    position_id: str | None = None
    primary_ground_location_id: str | None = None
    bay: str | None = None
    zone: str | None = None
    layer: int | None = None


class ShuffleCandidate(BaseModel):
    """One row of GET /api/allocation/shuffle-candidates."""
    coil: CoilRecord
    days_in_yard: int
    priority_score: int
    needs_shuffle: bool
    current_placeholder_id: str | None = None
    current_layer: int | None = None
