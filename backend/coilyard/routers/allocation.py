"""Allocation router: every change of coil occupancy goes through here.

Endpoints:
    POST  /api/allocation/assign               Place an unplaced coil
    POST  /api/allocation/remove               Lift the coil off a position
    POST  /api/allocation/shuffle              Move a placed coil
    GET   /api/allocation/shuffle-candidates   Coils ranked by shuffle priority
    GET   /api/allocation/shuffle-targets      Empty positions that can take a coil now
"""

from fastapi import APIRouter, Depends, Query

from coilyard.deps import get_stores
from coilyard.schemas.allocation import (
    AllocationResult,
    AssignRequest,
    RemoveRequest,
    ShuffleRequest,
)
from coilyard.schemas.coil import ShuffleCandidate
from coilyard.schemas.position import PositionRecord
from coilyard.services.allocation import AllocationService
from coilyard.services.position_graph import build_position_graph
from coilyard.services.shuffling import rank_shuffle_candidates, shuffle_targets
from coilyard.store.base import YardStores

router = APIRouter()


@router.post("/assign", response_model=AllocationResult)
async def assign_coil(
    body: AssignRequest,
    stores: YardStores = Depends(get_stores),
):
    return await AllocationService(stores).assign(
        body.coil_barcode, body.position_id, reason=body.reason, moved_by=body.moved_by,
    )


@router.post("/remove", response_model=AllocationResult)
async def remove_coil(
    body: RemoveRequest,
    stores: YardStores = Depends(get_stores),
):
    return await AllocationService(stores).remove(
        body.position_id, kind=body.kind, reason=body.reason, moved_by=body.moved_by,
    )


@router.post("/shuffle", response_model=AllocationResult)
async def shuffle_coil(
    body: ShuffleRequest,
    stores: YardStores = Depends(get_stores),
):
    return await AllocationService(stores).shuffle(
        body.coil_barcode,
        body.new_position_id,
        reason=body.reason,
        remarks=body.remarks,
        moved_by=body.moved_by,
    )


@router.get("/shuffle-candidates", response_model=list[ShuffleCandidate])
async def shuffle_candidates(
    needs_shuffle: bool | None = Query(None),
    stores: YardStores = Depends(get_stores),
):
    ranked = rank_shuffle_candidates(await stores.coils.list(), await stores.positions.list())
    if needs_shuffle is not None:
        ranked = [c for c in ranked if c.needs_shuffle == needs_shuffle]
    return ranked


@router.get("/shuffle-targets", response_model=list[PositionRecord])
async def list_shuffle_targets(
    bay: str | None = Query(None),
    zone: str | None = Query(None),
    stores: YardStores = Depends(get_stores),
):
    graph = build_position_graph(
        await stores.positions.list(), await stores.locations.list(), bay=bay, zone=zone,
    )
    return shuffle_targets(graph)
