"""Pydantic schemas for stacking positions.

Create / update payloads deliberately have no ``coil_barcode`` field:
occupancy only changes through the allocation endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class PositionRecord(BaseModel):
    """A stacking position as the engine and the API see it."""
    id: str
    placeholder_id: str
    layer: int = 1
    type: str = "ground"
    primary_ground_location_id: str
    primary_ground_location_code: str | None = None
    supported_by_ground_location_ids: list[str] = []
    supported_by_ground_location_codes: list[str] = []
    bay: str | None = None
    zone: str | None = None
    coil_barcode: str | None = None
    is_active: bool = True
    is_visible: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"from_attributes": True}

    @property
    def is_occupied(self) -> bool:
        return bool(self.coil_barcode)


class PositionCreate(BaseModel):
    """Payload for POST /api/positions/."""
    placeholder_id: str | None = Field(
        None, max_length=100,
        description="Defaults to the suggested id (CODE-L1 / CODE-L{n}-B)",
    )
    layer: int = Field(1, ge=1, le=3)
    primary_ground_location_id: str
    supported_by_ground_location_ids: list[str] = Field(
        default_factory=list,
        description="Defaults to [primary_ground_location_id] for layer 1",
    )
    is_active: bool = True
    is_visible: bool = True


class PositionUpdate(BaseModel):
    """Payload for PATCH /api/positions/{position_id}."""
    placeholder_id: str | None = Field(None, min_length=1, max_length=100)
    layer: int | None = Field(None, ge=1, le=3)
    primary_ground_location_id: str | None = None
    supported_by_ground_location_ids: list[str] | None = None
    is_active: bool | None = None
    is_visible: bool | None = None


class PositionChecks(BaseModel):
    """Response for GET /api/positions/{position_id}/checks."""
    position_id: str
    placeholder_id: str
    layer: int
    occupied: bool
    can_occupy: bool
    occupy_reason: str | None
    occupy_blockers: list[str]
    can_vacate: bool
    vacate_reason: str | None
    vacate_blockers: list[str]


class StackLayer(BaseModel):
    layer: int
    occupied: int
    total: int
    positions: list[PositionRecord]


class StackView(BaseModel):
    """Response for GET /api/positions/stack/{location_id}: every position
    resting on a ground location, grouped by layer."""
    location_id: str
    location_code: str
    occupancy: str  # empty | partial | full
    top_coil: str | None
    layers: list[StackLayer]
