"""Stacking position router.

Endpoints:
    GET    /api/positions/                         List positions (bay / zone filters)
    POST   /api/positions/                         Create a position (layout validated)
    PATCH  /api/positions/{position_id}            Update a position
    DELETE /api/positions/{position_id}            Delete (empty, nothing resting on it)
    GET    /api/positions/{position_id}/checks     can_occupy / can_vacate with blockers
    GET    /api/positions/{position_id}/qr         QR label SVG for the placeholder
    GET    /api/positions/stack/{location_id}      Positions on a ground location by layer
    GET    /api/positions/supports/{location_id}   Locations a bridge on it may rest on
    GET    /api/positions/summary/{bay}            Bay occupancy
"""

import io
import json

import segno
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response

from coilyard.deps import get_stores
from coilyard.middleware.exceptions import ResourceNotFoundError
from coilyard.schemas.location import LocationRecord
from coilyard.schemas.position import (
    PositionChecks,
    PositionCreate,
    PositionRecord,
    PositionUpdate,
    StackLayer,
    StackView,
)
from coilyard.services.layer_rules import can_occupy, can_vacate
from coilyard.services.position_graph import build_position_graph
from coilyard.services.yard_setup import YardSetupService, selectable_support_locations
from coilyard.store.base import YardStores

router = APIRouter()


async def _graph(stores: YardStores):
    return build_position_graph(await stores.positions.list(), await stores.locations.list())


@router.get("/", response_model=list[PositionRecord])
async def list_positions(
    bay: str | None = Query(None),
    zone: str | None = Query(None),
    stores: YardStores = Depends(get_stores),
):
    return await YardSetupService(stores).list_positions(bay=bay, zone=zone)


@router.post("/", response_model=PositionRecord, status_code=status.HTTP_201_CREATED)
async def create_position(
    body: PositionCreate,
    stores: YardStores = Depends(get_stores),
):
    return await YardSetupService(stores).create_position(body)


@router.patch("/{position_id}", response_model=PositionRecord)
async def update_position(
    position_id: str,
    body: PositionUpdate,
    stores: YardStores = Depends(get_stores),
):
    return await YardSetupService(stores).update_position(position_id, body)


@router.delete("/{position_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_position(
    position_id: str,
    stores: YardStores = Depends(get_stores),
):
    await YardSetupService(stores).delete_position(position_id)


# ── GET /api/positions/{position_id}/checks ──────────────────

@router.get("/{position_id}/checks", response_model=PositionChecks)
async def position_checks(
    position_id: str,
    stores: YardStores = Depends(get_stores),
):
    graph = await _graph(stores)
    pos = graph.position(position_id)
    if pos is None:
        raise ResourceNotFoundError("StackingPosition", position_id)
    occupy = can_occupy(pos, graph)
    vacate = can_vacate(pos, graph)
    return PositionChecks(
        position_id=pos.id,
        placeholder_id=pos.placeholder_id,
        layer=pos.layer,
        occupied=pos.is_occupied,
        can_occupy=occupy.allowed,
        occupy_reason=occupy.reason,
        occupy_blockers=occupy.blockers,
        can_vacate=vacate.allowed,
        vacate_reason=vacate.reason,
        vacate_blockers=vacate.blockers,
    )


# ── GET /api/positions/{position_id}/qr ──────────────────────

@router.get("/{position_id}/qr")
async def position_qr(
    position_id: str,
    stores: YardStores = Depends(get_stores),
):
    """Return an SVG QR label encoding the placeholder for yard signage."""
    pos = await stores.positions.get(position_id)
    if pos is None:
        raise ResourceNotFoundError("StackingPosition", position_id)

    qr_data = json.dumps({
        "type": "placeholder",
        "placeholder_id": pos.placeholder_id,
        "position_id": pos.id,
        "location": pos.primary_ground_location_code,
        "bay": pos.bay,
        "zone": pos.zone,
        "layer": pos.layer,
    }, separators=(",", ":"))

    qr = segno.make(qr_data)
    buf = io.BytesIO()
    qr.save(buf, kind="svg", scale=4, dark="#1e3a8a")
    return Response(content=buf.getvalue(), media_type="image/svg+xml")


# ── GET /api/positions/stack/{location_id} ───────────────────

@router.get("/stack/{location_id}", response_model=StackView)
async def location_stack(
    location_id: str,
    stores: YardStores = Depends(get_stores),
):
    graph = await _graph(stores)
    location = graph.locations.get(location_id)
    if location is None:
        raise ResourceNotFoundError("StorageLocation", location_id)

    stack = graph.positions_on(location_id)
    layers = []
    for layer in sorted({p.layer for p in stack}):
        on_layer = [p for p in stack if p.layer == layer]
        layers.append(StackLayer(
            layer=layer,
            occupied=sum(1 for p in on_layer if p.coil_barcode),
            total=len(on_layer),
            positions=on_layer,
        ))
    return StackView(
        location_id=location.id,
        location_code=location.location_code,
        occupancy=graph.ground_occupancy(location_id),
        top_coil=graph.top_coil(location_id),
        layers=layers,
    )


@router.get("/supports/{location_id}", response_model=list[LocationRecord])
async def support_candidates(
    location_id: str,
    stores: YardStores = Depends(get_stores),
):
    primary = await stores.locations.get(location_id)
    if primary is None:
        raise ResourceNotFoundError("StorageLocation", location_id)
    return selectable_support_locations(primary, await stores.locations.list())


@router.get("/summary/{bay}")
async def bay_summary(
    bay: str,
    stores: YardStores = Depends(get_stores),
):
    graph = await _graph(stores)
    return graph.bay_summary(bay)
