"""Coil: a physical steel coil tracked through the yard.

Lifecycle:  incoming → in_yard → in_process → outgoing → shipped

``current_stacking_position_id`` is set if and only if the referenced
stacking position carries this coil's barcode.  ``storage_location``
mirrors the primary ground location code of that position for screens
that predate stacking positions.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from coilyard.database import Base


class Coil(Base):
    __tablename__ = "coils"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    barcode: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, index=True
    )

    # ── Physical ─────────────────────────────────────────────
    coil_type: Mapped[str | None] = mapped_column(String(100))
    weight_tons: Mapped[float | None] = mapped_column(Float)
    width_mm: Mapped[float | None] = mapped_column(Float)
    thickness_mm: Mapped[float | None] = mapped_column(Float)
    outer_diameter_mm: Mapped[float | None] = mapped_column(Float)
    supplier: Mapped[str | None] = mapped_column(String(255))

    # ── Status ───────────────────────────────────────────────
    # incoming | in_yard | in_process | outgoing | shipped
    status: Mapped[str] = mapped_column(String(20), default="incoming", index=True)
    # low | medium | high | urgent
    priority: Mapped[str] = mapped_column(String(20), default="low")

    # ── Placement ────────────────────────────────────────────
    current_stacking_position_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("stacking_positions.id"), index=True
    )
    storage_location: Mapped[str | None] = mapped_column(String(50))

    # ── Timeline ─────────────────────────────────────────────
    received_date: Mapped[datetime | None] = mapped_column(DateTime)
    last_moved_date: Mapped[datetime | None] = mapped_column(DateTime)

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
