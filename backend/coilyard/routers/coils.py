"""Coil router.

Endpoints:
    GET   /api/coils/              List coils (status filter)
    POST  /api/coils/              Receive a coil at the gate (status incoming)
    GET   /api/coils/locate        Where a coil sits in the yard
    GET   /api/coils/movements     Movement log (optionally for one coil)
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status

from coilyard.deps import get_stores
from coilyard.middleware.exceptions import PreconditionError
from coilyard.models.enums import CoilStatus
from coilyard.schemas.coil import CoilLocation, CoilReceive, CoilRecord, MovementRecord
from coilyard.services.allocation import movement_history
from coilyard.services.position_graph import build_position_graph
from coilyard.store.base import YardStores

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=list[CoilRecord])
async def list_coils(
    status_filter: CoilStatus | None = Query(None, alias="status"),
    stores: YardStores = Depends(get_stores),
):
    if status_filter is not None:
        coils = await stores.coils.filter(status=status_filter)
    else:
        coils = await stores.coils.list()
    return sorted(coils, key=lambda c: c.barcode)


@router.post("/", response_model=CoilRecord, status_code=status.HTTP_201_CREATED)
async def receive_coil(
    body: CoilReceive,
    stores: YardStores = Depends(get_stores),
):
    """Register a coil; it gets a position through /api/allocation/assign."""
    if await stores.coils.filter(barcode=body.barcode):
        raise PreconditionError(
            f"Coil {body.barcode} already exists",
            error_code="DUPLICATE_BARCODE",
        )
    coil = await stores.coils.create({
        **body.model_dump(),
        "status": CoilStatus.INCOMING,
        "current_stacking_position_id": None,
        "received_date": datetime.utcnow(),
    })
    logger.info(f"Coil received: {coil.barcode}", extra={"coil_barcode": coil.barcode})
    return coil


@router.get("/locate", response_model=CoilLocation)
async def locate_coil(
    barcode: str = Query(..., min_length=1),
    stores: YardStores = Depends(get_stores),
):
    graph = build_position_graph(await stores.positions.list(), await stores.locations.list())
    pos = graph.locate_coil(barcode)
    if pos is None:
        return CoilLocation(barcode=barcode, found=False)
    return CoilLocation(
        barcode=barcode,
        found=True,
        placeholder_id=pos.placeholder_id,
        position_id=pos.id,
        primary_ground_location_id=pos.primary_ground_location_id,
        bay=pos.bay,
        zone=pos.zone,
        layer=pos.layer,
    )


@router.get("/movements", response_model=list[MovementRecord])
async def list_movements(
    coil_barcode: str | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    stores: YardStores = Depends(get_stores),
):
    if coil_barcode:
        return (await movement_history(stores, coil_barcode))[:limit]
    movements = await stores.movements.list()
    movements.sort(key=lambda m: m.movement_date, reverse=True)
    return movements[:limit]
