"""StackingPosition: a placeholder slot that holds at most one coil.

Layer 1 positions (type ``ground``) sit on their primary ground location.
Layer 2/3 positions (type ``bridging``) rest across two or three ground
locations; each of those must carry a position on the layer directly below,
and all of them must be occupied before the bridging slot can take a coil.

Occupancy is the presence of ``coil_barcode``.  Only the allocation
service writes that column.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from coilyard.database import Base


class StackingPosition(Base):
    __tablename__ = "stacking_positions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # Human-readable, printed on the yard label: A-01-01-L1, A-01-01-L2-B
    placeholder_id: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, index=True
    )

    # ── Geometry ─────────────────────────────────────────────
    layer: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # ground | bridging
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="ground")

    primary_ground_location_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("storage_locations.id"), nullable=False, index=True
    )
    primary_ground_location_code: Mapped[str | None] = mapped_column(String(50))

    # Ordered list of storage_locations.id this slot rests on
    supported_by_ground_location_ids: Mapped[list] = mapped_column(JSON, default=list)
    supported_by_ground_location_codes: Mapped[list] = mapped_column(JSON, default=list)

    # Copied from the primary location for fast bay/zone scoping
    bay: Mapped[str | None] = mapped_column(String(100), index=True)
    zone: Mapped[str | None] = mapped_column(String(100), index=True)

    # ── Occupancy ────────────────────────────────────────────
    coil_barcode: Mapped[str | None] = mapped_column(String(100), index=True)

    # ── Flags ────────────────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_visible: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
