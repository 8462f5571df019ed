"""Pydantic schemas for allocation requests and results."""

from pydantic import BaseModel, Field

from coilyard.models.enums import AllocationAction
from coilyard.schemas.coil import CoilRecord, MovementRecord
from coilyard.schemas.position import PositionRecord


class AssignRequest(BaseModel):
    """Payload for POST /api/allocation/assign."""
    coil_barcode: str = Field(..., min_length=1)
    position_id: str
    reason: str | None = None
    moved_by: str | None = None


class RemoveRequest(BaseModel):
    """Payload for POST /api/allocation/remove."""
    position_id: str
    kind: AllocationAction = AllocationAction.RETURN
    reason: str | None = None
    moved_by: str | None = None


class ShuffleRequest(BaseModel):
    """Payload for POST /api/allocation/shuffle."""
    coil_barcode: str = Field(..., min_length=1)
    new_position_id: str
    reason: str = Field(..., min_length=1)
    remarks: str | None = None
    moved_by: str | None = None


class AllocationResult(BaseModel):
    """Outcome of one assign / remove / shuffle.

    ``from_position`` is set for remove and shuffle, ``to_position`` for
    assign and shuffle.  ``coil`` is None only when a removal cleared a
    barcode that matched no coil record.
    """
    action: AllocationAction
    coil: CoilRecord | None
    from_position: PositionRecord | None = None
    to_position: PositionRecord | None = None
    movement: MovementRecord
