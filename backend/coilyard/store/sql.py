"""AsyncSession-backed entity stores.

Each write runs inside a SAVEPOINT (``begin_nested``) so that one failed
statement only undoes itself: the request-level transaction stays usable
and a reconciliation commit can carry on with its next change.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coilyard.middleware.exceptions import ResourceNotFoundError
from coilyard.models.coil import Coil
from coilyard.models.coil_movement import CoilMovement
from coilyard.models.stacking_position import StackingPosition
from coilyard.models.stock_take import StockTake
from coilyard.models.storage_location import StorageLocation
from coilyard.schemas.coil import CoilRecord, MovementRecord
from coilyard.schemas.location import LocationRecord
from coilyard.schemas.position import PositionRecord
from coilyard.schemas.stock_take import StockTakeRecord
from coilyard.store.base import EntityStore, RecordT, YardStores


def _column_value(value: Any) -> Any:
    """Convert engine-side values to what the ORM columns expect."""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_column_value(v) for v in value]
    return value


class SqlEntityStore(EntityStore[RecordT]):

    def __init__(self, db: AsyncSession, model, record_type: type[RecordT]):
        self.db = db
        self.model = model
        self.record_type = record_type
        self.entity_name = model.__name__

    def _columns(self, data: dict[str, Any]) -> dict[str, Any]:
        return {key: _column_value(value) for key, value in data.items()}

    async def list(self) -> list[RecordT]:
        result = await self.db.execute(select(self.model))
        return [self.record_type.model_validate(row) for row in result.scalars().all()]

    async def filter(self, **criteria: Any) -> list[RecordT]:
        stmt = select(self.model).where(
            *(getattr(self.model, field) == _column_value(value) for field, value in criteria.items())
        )
        result = await self.db.execute(stmt)
        return [self.record_type.model_validate(row) for row in result.scalars().all()]

    async def get(self, record_id: str) -> RecordT | None:
        row = await self.db.get(self.model, record_id)
        return self.record_type.model_validate(row) if row else None

    async def create(self, data: dict[str, Any]) -> RecordT:
        row = self.model(**self._columns(data))
        async with self.db.begin_nested():
            self.db.add(row)
        await self.db.refresh(row)
        return self.record_type.model_validate(row)

    async def update(self, record_id: str, changes: dict[str, Any]) -> None:
        row = await self.db.get(self.model, record_id)
        if row is None:
            raise ResourceNotFoundError(self.entity_name, record_id)
        async with self.db.begin_nested():
            for key, value in self._columns(changes).items():
                setattr(row, key, value)

    async def delete(self, record_id: str) -> None:
        row = await self.db.get(self.model, record_id)
        if row is None:
            raise ResourceNotFoundError(self.entity_name, record_id)
        async with self.db.begin_nested():
            await self.db.delete(row)

    async def bulk_create(self, rows: list[dict[str, Any]]) -> list[RecordT]:
        objs = [self.model(**self._columns(data)) for data in rows]
        async with self.db.begin_nested():
            self.db.add_all(objs)
        for obj in objs:
            await self.db.refresh(obj)
        return [self.record_type.model_validate(obj) for obj in objs]


def sql_stores(db: AsyncSession) -> YardStores:
    """Build the YardStores bundle over one request session."""
    return YardStores(
        locations=SqlEntityStore(db, StorageLocation, LocationRecord),
        positions=SqlEntityStore(db, StackingPosition, PositionRecord),
        coils=SqlEntityStore(db, Coil, CoilRecord),
        movements=SqlEntityStore(db, CoilMovement, MovementRecord),
        stock_takes=SqlEntityStore(db, StockTake, StockTakeRecord),
    )
