"""Reconciliation router.

Endpoints:
    GET   /api/reconciliation/{stock_take_id}           Diff of stock take vs system
    POST  /api/reconciliation/{stock_take_id}/preview   Stage changes without writing
    POST  /api/reconciliation/{stock_take_id}/commit    Apply changes, close the stock take

Pending changes live on the client until commit; ``preview`` lets it check
a list against the projected yard before asking for confirmation.
"""

from fastapi import APIRouter, Depends

from coilyard.deps import get_stores
from coilyard.middleware.exceptions import CoilYardException, ResourceNotFoundError
from coilyard.schemas.reconciliation import (
    ChangeResult,
    CommitRequest,
    CommitSummary,
    ReconciliationDiff,
)
from coilyard.services.reconciliation import (
    ReconciliationSession,
    commit_pending_changes,
    diff_stock_take,
)
from coilyard.store.base import YardStores

router = APIRouter()


@router.get("/{stock_take_id}", response_model=ReconciliationDiff)
async def get_reconciliation_diff(
    stock_take_id: str,
    stores: YardStores = Depends(get_stores),
):
    stock_take = await stores.stock_takes.get(stock_take_id)
    if stock_take is None:
        raise ResourceNotFoundError("StockTake", stock_take_id)
    return diff_stock_take(stock_take, await stores.coils.list(), await stores.positions.list())


@router.post("/{stock_take_id}/preview", response_model=list[ChangeResult])
async def preview_changes(
    stock_take_id: str,
    body: CommitRequest,
    stores: YardStores = Depends(get_stores),
):
    """Stage each change in order and report which would be rejected."""
    session = await ReconciliationSession.open(stores, stock_take_id)
    results = []
    for index, change in enumerate(body.changes):
        try:
            session.stage(change)
        except CoilYardException as exc:
            results.append(ChangeResult(
                index=index,
                change_type=change.change_type,
                coil_barcode=change.coil_barcode,
                position_id=change.position_id,
                success=False,
                error_code=exc.error_code,
                error=exc.message,
            ))
        else:
            results.append(ChangeResult(
                index=index,
                change_type=change.change_type,
                coil_barcode=change.coil_barcode,
                position_id=change.position_id,
                success=True,
            ))
    session.cancel()
    return results


@router.post("/{stock_take_id}/commit", response_model=CommitSummary)
async def commit_changes(
    stock_take_id: str,
    body: CommitRequest,
    stores: YardStores = Depends(get_stores),
):
    return await commit_pending_changes(stores, stock_take_id, body.changes, mode=body.mode)
