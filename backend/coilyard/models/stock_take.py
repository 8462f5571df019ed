"""StockTake: snapshot of one physical count of a bay (or bay + zone).

The three observation lists are stored as JSON:

    coils_found:          [{"coil_barcode", "found_at_placeholder_id", "scanned_timestamp"}]
    non_traceable_coils:  [{"barcode", "description", "estimated_weight",
                            "condition", "found_at_placeholder_id", "added_timestamp"}]
    empty_placeholders:   ["A-01-01-L1", ...]

Lifecycle:  completed → reconciled   (forward only; only status changes
after reconciliation)
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from coilyard.database import Base


class StockTake(Base):
    __tablename__ = "stock_takes"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    stock_take_date: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )

    # ── Scope ────────────────────────────────────────────────
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    bay: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    zone: Mapped[str | None] = mapped_column(String(100))

    # ── Observations ─────────────────────────────────────────
    coils_found: Mapped[list] = mapped_column(JSON, default=list)
    non_traceable_coils: Mapped[list] = mapped_column(JSON, default=list)
    empty_placeholders: Mapped[list] = mapped_column(JSON, default=list)

    # ── Counts ───────────────────────────────────────────────
    physical_count: Mapped[int] = mapped_column(Integer, default=0)
    system_count: Mapped[int] = mapped_column(Integer, default=0)
    # physical_count - system_count
    variance: Mapped[int] = mapped_column(Integer, default=0)

    remarks: Mapped[str | None] = mapped_column(Text)

    # completed | reconciled
    status: Mapped[str] = mapped_column(String(20), default="completed", index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
