"""Entity store contract used by the yard engine.

The engine never talks to a database session directly.  It is handed a
``YardStores`` bundle with one ``EntityStore`` per entity type and calls
the seven operations below.  Two implementations ship with the package:

  - SqlEntityStore       (coilyard.store.sql)     AsyncSession-backed
  - InMemoryEntityStore  (coilyard.store.memory)  dict-backed, for tests

No transaction spans more than one call; callers that need several writes
to land together must handle a failure between them themselves.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from coilyard.schemas.coil import CoilRecord, MovementRecord
from coilyard.schemas.location import LocationRecord
from coilyard.schemas.position import PositionRecord
from coilyard.schemas.stock_take import StockTakeRecord

RecordT = TypeVar("RecordT", bound=BaseModel)


class EntityStore(ABC, Generic[RecordT]):
    """Asynchronous CRUD over one entity type.

    Records go out as pydantic models; writes take plain dicts of field
    values.  Every method may raise on a network / validation failure.
    """

    entity_name: str = "Record"

    @abstractmethod
    async def list(self) -> list[RecordT]:
        ...

    @abstractmethod
    async def filter(self, **criteria: Any) -> list[RecordT]:
        """Return records whose fields equal every given value."""

    @abstractmethod
    async def get(self, record_id: str) -> RecordT | None:
        ...

    @abstractmethod
    async def create(self, data: dict[str, Any]) -> RecordT:
        ...

    @abstractmethod
    async def update(self, record_id: str, changes: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def delete(self, record_id: str) -> None:
        ...

    @abstractmethod
    async def bulk_create(self, rows: list[dict[str, Any]]) -> list[RecordT]:
        ...


@dataclass
class YardStores:
    """One store per yard entity type, injected into every service."""
    locations: EntityStore[LocationRecord]
    positions: EntityStore[PositionRecord]
    coils: EntityStore[CoilRecord]
    movements: EntityStore[MovementRecord]
    stock_takes: EntityStore[StockTakeRecord]
