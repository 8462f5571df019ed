"""Pydantic schemas for ground (storage) locations."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator


class LocationRecord(BaseModel):
    """A ground location as the engine and the API see it."""
    id: str
    location_code: str
    bay: str
    zone: str
    row_num: int | None = None
    col_num: int | None = None
    capacity_tons: float = 0.0
    location_type: str = "ground"
    is_active: bool = True
    is_visible: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"from_attributes": True}


class LocationCreate(BaseModel):
    """Payload for POST /api/locations/."""
    location_code: str = Field(..., min_length=1, max_length=50)
    bay: str = Field(..., min_length=1)
    zone: str = Field(..., min_length=1)
    row_num: int | None = Field(None, ge=1)
    col_num: int | None = Field(None, ge=1)
    capacity_tons: float = Field(..., ge=0)
    location_type: str = "ground"
    is_active: bool = True
    is_visible: bool = True


class LocationUpdate(BaseModel):
    """Payload for PATCH /api/locations/{location_id}."""
    location_code: str | None = Field(None, min_length=1, max_length=50)
    bay: str | None = None
    zone: str | None = None
    row_num: int | None = Field(None, ge=1)
    col_num: int | None = Field(None, ge=1)
    capacity_tons: float | None = Field(None, ge=0)
    is_active: bool | None = None
    is_visible: bool | None = None


class BulkLocationRequest(BaseModel):
    """Payload for POST /api/locations/bulk: fill a rows x cols grid.

    Codes are ``{prefix}{n:03d}`` for n in [start_num, end_num], laid out
    row by row.
    """
    bay: str = Field(..., min_length=1)
    zone: str = Field(..., min_length=1)
    prefix: str = Field(..., min_length=1)
    start_num: int = Field(1, ge=0)
    end_num: int = Field(10, ge=0)
    rows: int = Field(2, ge=1)
    cols: int = Field(5, ge=1)
    capacity_tons: float = Field(50.0, ge=0)

    @model_validator(mode="after")
    def range_is_ordered(self):
        if self.end_num < self.start_num:
            raise ValueError("end_num must be greater than or equal to start_num")
        return self
