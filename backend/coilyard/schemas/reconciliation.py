"""Pydantic schemas for stock-take reconciliation."""

from typing import Literal

from pydantic import BaseModel, Field

from coilyard.models.enums import ChangeType, StockTakeStatus
from coilyard.schemas.coil import CoilRecord
from coilyard.schemas.position import PositionRecord
from coilyard.schemas.stock_take import NonTraceableCoil


# ── Diff output ──────────────────────────────────────────────

class PlacementItem(BaseModel):
    """A coil found physically that the system must (re)place."""
    coil: CoilRecord
    target_placeholder_id: str
    # None when the placeholder is not an active position in scope
    target_position: PositionRecord | None = None
    current_position: PositionRecord | None = None
    reason: str


class UnplaceItem(BaseModel):
    """A coil the system must take off its recorded position."""
    coil: CoilRecord
    position: PositionRecord
    reason: str
    will_move_to: str | None = None


class MisplacedItem(BaseModel):
    """Found, but at a different placeholder than the system records."""
    coil: CoilRecord
    current_position: PositionRecord
    target_placeholder_id: str
    target_position: PositionRecord | None = None


class DiffSummary(BaseModel):
    to_place: int
    to_unplace: int
    confirmed: int
    misplaced: int
    unassigned: int
    non_traceable: int
    empty_placeholders: int
    unknown_barcodes: int
    orphaned_barcodes: int


class ReconciliationDiff(BaseModel):
    """Response for GET /api/reconciliation/{stock_take_id}."""
    stock_take_id: str
    bay: str
    zone: str | None
    scope_positions: list[PositionRecord]
    to_place: list[PlacementItem]
    to_unplace: list[UnplaceItem]
    confirmed: list[str]
    misplaced: list[MisplacedItem]
    unassigned: list[CoilRecord]
    non_traceable: list[NonTraceableCoil]
    empty_placeholders: list[str]
    # found in the stock take, no coil record
    unknown_barcodes: list[str]
    # held by a position in scope, no coil record
    orphaned_barcodes: list[str]
    summary: DiffSummary


# ── Staging / commit ─────────────────────────────────────────

class PendingChange(BaseModel):
    """One staged reconciliation action.

    ``position_id`` is the target position for ``assign`` and the source
    position for ``unassign`` / ``mark_missing``.
    """
    change_type: ChangeType
    coil_barcode: str = Field(..., min_length=1)
    position_id: str


class CommitRequest(BaseModel):
    """Payload for POST /api/reconciliation/{stock_take_id}/commit."""
    changes: list[PendingChange] = Field(..., min_length=1)
    mode: Literal["best_effort", "strict"] | None = None  # None = configured default


class ChangeResult(BaseModel):
    index: int
    change_type: ChangeType
    coil_barcode: str
    position_id: str
    success: bool
    error_code: str | None = None
    error: str | None = None


class CommitSummary(BaseModel):
    """Response for POST /api/reconciliation/{stock_take_id}/commit."""
    stock_take_id: str
    mode: Literal["best_effort", "strict"]
    total: int
    succeeded: int
    failed: int
    stock_take_status: StockTakeStatus
    # True when a change stopped halfway and left coil and position out of step
    requires_manual_review: bool = False
    results: list[ChangeResult]
