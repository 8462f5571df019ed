"""StorageLocation: a physical ground cell in the yard.

Ground locations are laid out on a per-zone grid (row_num / col_num) and
are the anchor for every stacking position: a layer-1 position sits on
exactly one location, bridging positions rest on two or three.

Locations are created by yard configuration, one at a time or through the
bulk grid generator.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from coilyard.database import Base


class StorageLocation(Base):
    __tablename__ = "storage_locations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    location_code: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )

    # ── Placement ────────────────────────────────────────────
    bay: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    zone: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    row_num: Mapped[int | None] = mapped_column(Integer)
    col_num: Mapped[int | None] = mapped_column(Integer)

    # ── Capacity ─────────────────────────────────────────────
    capacity_tons: Mapped[float] = mapped_column(Float, default=0.0)
    location_type: Mapped[str] = mapped_column(String(30), default="ground")

    # ── Flags ────────────────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_visible: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
