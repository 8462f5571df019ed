"""Stock-take recording.

A ``StockTakeDraft`` collects what an operator sees walking a bay: traceable
coils at their placeholders, coils with no usable barcode, and placeholders
confirmed empty.  ``submit`` freezes it into a StockTake record alongside
the system count for the same bay/zone.

Draft rules:
    - a coil is recorded at most once
    - a placeholder holds at most one coil (traceable or not)
    - a placeholder marked empty holds no coil, and is marked only once
"""

import logging
from datetime import datetime

from coilyard.middleware.exceptions import PreconditionError
from coilyard.models.enums import StockTakeStatus
from coilyard.schemas.stock_take import FoundCoil, NonTraceableCoil, StockTakeCreate, StockTakeRecord
from coilyard.store.base import YardStores

logger = logging.getLogger(__name__)


class StockTakeDraft:

    def __init__(self, location: str, bay: str, zone: str | None = None, remarks: str | None = None):
        self.location = location
        self.bay = bay
        self.zone = zone or None
        self.remarks = remarks
        self.coils_found: list[FoundCoil] = []
        self.non_traceable: list[NonTraceableCoil] = []
        self.empty_placeholders: list[str] = []

    @classmethod
    def from_payload(cls, payload: StockTakeCreate) -> "StockTakeDraft":
        """Replay a submitted payload through the draft rules."""
        draft = cls(payload.location, payload.bay, payload.zone, payload.remarks)
        for item in payload.coils_found:
            draft.record_coil(item.coil_barcode, item.found_at_placeholder_id, item.scanned_timestamp)
        for item in payload.non_traceable_coils:
            draft.add_non_traceable(item)
        for placeholder_id in payload.empty_placeholders:
            draft.mark_empty(placeholder_id)
        return draft

    def _holder(self, placeholder_id: str) -> str | None:
        for item in self.coils_found:
            if item.found_at_placeholder_id == placeholder_id:
                return item.coil_barcode
        for item in self.non_traceable:
            if item.found_at_placeholder_id == placeholder_id:
                return item.barcode
        return None

    # ── Traceable coils ──────────────────────────────────────

    def record_coil(self, barcode: str, placeholder_id: str, scanned_at: datetime | None = None) -> FoundCoil:
        barcode = (barcode or "").strip()
        placeholder_id = (placeholder_id or "").strip()
        if not barcode:
            raise PreconditionError("Please enter a barcode", error_code="MISSING_FIELDS")
        if not placeholder_id:
            raise PreconditionError("Please select or enter a placeholder ID", error_code="MISSING_FIELDS")

        for item in self.coils_found:
            if item.coil_barcode == barcode:
                raise PreconditionError(
                    f"Coil {barcode} already scanned at {item.found_at_placeholder_id}",
                    error_code="DUPLICATE_COIL",
                )
        if self._holder(placeholder_id):
            raise PreconditionError(
                f"Placeholder {placeholder_id} is already occupied by another coil",
                error_code="PLACEHOLDER_TAKEN",
            )
        if placeholder_id in self.empty_placeholders:
            raise PreconditionError(
                f"Placeholder {placeholder_id} is marked as empty",
                error_code="PLACEHOLDER_MARKED_EMPTY",
            )

        found = FoundCoil(
            coil_barcode=barcode,
            found_at_placeholder_id=placeholder_id,
            scanned_timestamp=scanned_at or datetime.utcnow(),
        )
        self.coils_found.append(found)
        return found

    def remove_coil(self, barcode: str) -> None:
        self.coils_found = [c for c in self.coils_found if c.coil_barcode != barcode]

    # ── Non-traceable coils ──────────────────────────────────

    def add_non_traceable(self, coil: NonTraceableCoil) -> NonTraceableCoil:
        if self._holder(coil.found_at_placeholder_id):
            raise PreconditionError(
                f"Placeholder {coil.found_at_placeholder_id} is already occupied",
                error_code="PLACEHOLDER_TAKEN",
            )
        if coil.found_at_placeholder_id in self.empty_placeholders:
            raise PreconditionError(
                f"Placeholder {coil.found_at_placeholder_id} is marked as empty",
                error_code="PLACEHOLDER_MARKED_EMPTY",
            )
        coil = coil.model_copy(update={"added_timestamp": coil.added_timestamp or datetime.utcnow()})
        self.non_traceable.append(coil)
        return coil

    def remove_non_traceable(self, index: int) -> NonTraceableCoil:
        return self.non_traceable.pop(index)

    # ── Empty placeholders ───────────────────────────────────

    def mark_empty(self, placeholder_id: str) -> None:
        if placeholder_id in self.empty_placeholders:
            raise PreconditionError(
                f"{placeholder_id} already marked as empty",
                error_code="ALREADY_MARKED_EMPTY",
            )
        if self._holder(placeholder_id):
            raise PreconditionError(
                f"{placeholder_id} has a coil assigned. Cannot mark as empty.",
                error_code="PLACEHOLDER_HAS_COIL",
            )
        self.empty_placeholders.append(placeholder_id)

    # ── Submit ───────────────────────────────────────────────

    @property
    def physical_count(self) -> int:
        return len(self.coils_found) + len(self.non_traceable)

    async def submit(self, stores: YardStores) -> StockTakeRecord:
        if not self.location.strip() or not self.bay:
            raise PreconditionError("Please fill in location and bay", error_code="MISSING_FIELDS")

        positions = await stores.positions.filter(bay=self.bay)
        system_count = sum(
            1 for p in positions
            if p.coil_barcode and (self.zone is None or p.zone == self.zone)
        )

        record = await stores.stock_takes.create({
            "stock_take_date": datetime.utcnow(),
            "location": self.location,
            "bay": self.bay,
            "zone": self.zone,
            "coils_found": self.coils_found,
            "non_traceable_coils": self.non_traceable,
            "empty_placeholders": self.empty_placeholders,
            "physical_count": self.physical_count,
            "system_count": system_count,
            "variance": self.physical_count - system_count,
            "remarks": self.remarks,
            "status": StockTakeStatus.COMPLETED,
        })
        logger.info(
            f"Stock take {record.id} recorded for bay {self.bay}"
            f"{'/' + self.zone if self.zone else ''}: "
            f"{record.physical_count} physical, {record.system_count} system",
            extra={"stock_take_id": record.id, "variance": record.variance},
        )
        return record
