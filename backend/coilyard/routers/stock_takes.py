"""Stock take router.

Endpoints:
    POST  /api/stock-takes/                  Record a stock take
    GET   /api/stock-takes/                  List stock takes (newest first)
    GET   /api/stock-takes/{stock_take_id}   Single stock take
"""

from fastapi import APIRouter, Depends, Query, status

from coilyard.deps import get_stores
from coilyard.middleware.exceptions import ResourceNotFoundError
from coilyard.models.enums import StockTakeStatus
from coilyard.schemas.stock_take import StockTakeCreate, StockTakeRecord
from coilyard.services.stock_take import StockTakeDraft
from coilyard.store.base import YardStores

router = APIRouter()


@router.post("/", response_model=StockTakeRecord, status_code=status.HTTP_201_CREATED)
async def create_stock_take(
    body: StockTakeCreate,
    stores: YardStores = Depends(get_stores),
):
    draft = StockTakeDraft.from_payload(body)
    return await draft.submit(stores)


@router.get("/", response_model=list[StockTakeRecord])
async def list_stock_takes(
    bay: str | None = Query(None),
    status_filter: StockTakeStatus | None = Query(None, alias="status"),
    stores: YardStores = Depends(get_stores),
):
    criteria = {}
    if bay:
        criteria["bay"] = bay
    if status_filter is not None:
        criteria["status"] = status_filter
    takes = await stores.stock_takes.filter(**criteria)
    return sorted(takes, key=lambda t: t.stock_take_date, reverse=True)


@router.get("/{stock_take_id}", response_model=StockTakeRecord)
async def get_stock_take(
    stock_take_id: str,
    stores: YardStores = Depends(get_stores),
):
    take = await stores.stock_takes.get(stock_take_id)
    if take is None:
        raise ResourceNotFoundError("StockTake", stock_take_id)
    return take
