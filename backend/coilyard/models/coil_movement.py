"""CoilMovement: immutable audit trail of every placement change.

One row per receipt into a position, shuffle between positions, return
off a stack, or loading onto a truck.  Rows are created, never updated
or deleted.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from coilyard.database import Base


class CoilMovement(Base):
    __tablename__ = "coil_movements"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    coil_barcode: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Placeholder ids, or "Unassigned" / "Missing"
    from_location: Mapped[str | None] = mapped_column(String(100))
    to_location: Mapped[str | None] = mapped_column(String(100))

    # receipt | shuffle | return | loading
    movement_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    movement_date: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
    moved_by: Mapped[str | None] = mapped_column(String(200))
    reason: Mapped[str | None] = mapped_column(Text)
    remarks: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
