"""Dict-backed entity stores.

Used by the test suite in place of the database.  Records are copied on
the way in and on the way out, so a caller holding a record never sees a
later write unless it reads again, the same as with a remote store.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Iterable

from coilyard.middleware.exceptions import ResourceNotFoundError
from coilyard.schemas.coil import CoilRecord, MovementRecord
from coilyard.schemas.location import LocationRecord
from coilyard.schemas.position import PositionRecord
from coilyard.schemas.stock_take import StockTakeRecord
from coilyard.store.base import EntityStore, RecordT, YardStores


class InMemoryEntityStore(EntityStore[RecordT]):

    def __init__(
        self,
        record_type: type[RecordT],
        entity_name: str,
        records: Iterable[RecordT] = (),
    ):
        self.record_type = record_type
        self.entity_name = entity_name
        self._rows: dict[str, RecordT] = {}
        for record in records:
            self._rows[record.id] = record.model_copy(deep=True)

    async def list(self) -> list[RecordT]:
        return [r.model_copy(deep=True) for r in self._rows.values()]

    async def filter(self, **criteria: Any) -> list[RecordT]:
        return [
            r.model_copy(deep=True)
            for r in self._rows.values()
            if all(getattr(r, field) == value for field, value in criteria.items())
        ]

    async def get(self, record_id: str) -> RecordT | None:
        record = self._rows.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def create(self, data: dict[str, Any]) -> RecordT:
        payload = dict(data)
        payload.setdefault("id", str(uuid.uuid4()))
        record = self.record_type.model_validate(payload)
        self._rows[record.id] = record
        return record.model_copy(deep=True)

    async def update(self, record_id: str, changes: dict[str, Any]) -> None:
        existing = self._rows.get(record_id)
        if existing is None:
            raise ResourceNotFoundError(self.entity_name, record_id)
        merged = {**existing.model_dump(), **changes}
        if "updated_at" in self.record_type.model_fields:
            merged["updated_at"] = datetime.utcnow()
        self._rows[record_id] = self.record_type.model_validate(merged)

    async def delete(self, record_id: str) -> None:
        if self._rows.pop(record_id, None) is None:
            raise ResourceNotFoundError(self.entity_name, record_id)

    async def bulk_create(self, rows: list[dict[str, Any]]) -> list[RecordT]:
        return [await self.create(row) for row in rows]


def memory_stores(
    locations: Iterable[LocationRecord] = (),
    positions: Iterable[PositionRecord] = (),
    coils: Iterable[CoilRecord] = (),
    movements: Iterable[MovementRecord] = (),
    stock_takes: Iterable[StockTakeRecord] = (),
) -> YardStores:
    """Build a full YardStores bundle seeded with the given records."""
    return YardStores(
        locations=InMemoryEntityStore(LocationRecord, "StorageLocation", locations),
        positions=InMemoryEntityStore(PositionRecord, "StackingPosition", positions),
        coils=InMemoryEntityStore(CoilRecord, "Coil", coils),
        movements=InMemoryEntityStore(MovementRecord, "CoilMovement", movements),
        stock_takes=InMemoryEntityStore(StockTakeRecord, "StockTake", stock_takes),
    )
